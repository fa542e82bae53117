"""
Error taxonomy for the ingestion pipeline

Each error knows the HTTP status it maps to and the message that may be shown
to the caller. The internal message and details are for logs only.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class IngestionError(Exception):
    """Base exception for ingestion failures"""

    status_code = 500
    default_error_code = "INTERNAL_ERROR"
    default_public_message = "Internal server error"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        public_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.public_message = public_message or self.default_public_message
        self.timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def is_client_error(self) -> bool:
        return self.status_code < 500


class ValidationError(IngestionError):
    status_code = 400
    default_error_code = "VALIDATION_ERROR"
    default_public_message = "Invalid request"


class UnsupportedMediaTypeError(ValidationError):
    status_code = 415
    default_error_code = "UNSUPPORTED_MEDIA_TYPE"
    default_public_message = "Invalid file type"


class PayloadTooLargeError(ValidationError):
    status_code = 413
    default_error_code = "PAYLOAD_TOO_LARGE"
    default_public_message = "File too large"


class AuthError(IngestionError):
    status_code = 401
    default_error_code = "UNAUTHORIZED"
    default_public_message = "Unauthorized"


class NotFoundError(IngestionError):
    status_code = 404
    default_error_code = "NOT_FOUND"
    default_public_message = "Video not found"


class StagingError(IngestionError):
    default_error_code = "STAGING_FAILED"
    default_public_message = "Error saving file"


class ProbeError(IngestionError):
    default_error_code = "PROBE_FAILED"
    default_public_message = "Failed to get video aspect ratio"


class RemuxError(IngestionError):
    default_error_code = "REMUX_FAILED"
    default_public_message = "Unable to process video for fast start"


class PublishError(IngestionError):
    default_error_code = "PUBLISH_FAILED"
    default_public_message = "Failed to save to object storage"


class MetadataError(IngestionError):
    default_error_code = "METADATA_FAILED"
    default_public_message = "Failed to update video metadata"
