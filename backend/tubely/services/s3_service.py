"""
AWS S3 service for publishing processed uploads
"""

import secrets

import boto3
from boto3.exceptions import Boto3Error
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from tubely.config.base import Settings
from tubely.errors import PublishError
from tubely.models.upload import ObjectReference, StagedFile
from tubely.utils.logger import get_logger

logger = get_logger(__name__)


def media_type_extension(media_type: str) -> str:
    """File extension implied by a media type: video/mp4 -> mp4"""
    _, _, subtype = media_type.partition("/")
    return subtype or "bin"


def build_object_key(prefix: str, media_type: str) -> str:
    """Generate a fresh, never reused key: <prefix>/<random>.<ext>"""
    name = secrets.token_urlsafe(32)
    return f"{prefix}/{name}.{media_type_extension(media_type)}"


class S3Publisher:
    def __init__(self, settings: Settings, client=None):
        self.bucket = settings.S3_BUCKET
        self.region = settings.AWS_REGION
        self.public_host = settings.S3_OBJECT_HOST

        if client is not None:
            self.client = client
            self.enabled = bool(self.bucket)
            return

        if not self.bucket:
            logger.warning("S3 bucket not configured - publishing disabled")
            self.enabled = False
            self.client = None
            return

        self.enabled = True
        # Retries stay off: a failed upload is reported, the client resubmits
        client_config = Config(
            connect_timeout=settings.S3_CONNECT_TIMEOUT,
            read_timeout=settings.S3_READ_TIMEOUT,
            retries={"total_max_attempts": 1, "mode": "standard"},
        )
        # Empty keys fall back to the default credential chain
        self.client = boto3.client(
            's3',
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            region_name=settings.AWS_REGION,
            endpoint_url=settings.AWS_ENDPOINT_URL,
            config=client_config,
        )

        logger.info(f"S3 publisher initialized for bucket: {self.bucket}")

    def object_url(self, key: str) -> str:
        """Public URL of an object, derived from its key alone"""
        return f"https://{self.bucket}.{self.public_host}/{key}"

    async def publish(self, staged: StagedFile, key: str, media_type: str) -> ObjectReference:
        """
        Upload a staged file to S3 under key

        Args:
            staged: Finalized local file
            key: Object key; an existing object under it is overwritten
            media_type: Stored as the object's Content-Type

        Returns:
            ObjectReference for the stored object
        """
        if not self.enabled:
            raise PublishError("S3 not configured - cannot upload file", error_code="S3_DISABLED")

        await run_in_threadpool(self._upload, staged, key, media_type)

        logger.info(f"Successfully uploaded to S3: {key} ({staged.size / (1024 * 1024):.1f}MB)")
        return ObjectReference(
            bucket=self.bucket,
            key=key,
            url=self.object_url(key),
            content_type=media_type,
        )

    def _upload(self, staged: StagedFile, key: str, media_type: str) -> None:
        try:
            with staged.open() as body:
                self.client.upload_fileobj(
                    body,
                    self.bucket,
                    key,
                    ExtraArgs={'ContentType': media_type},
                )
        except (BotoCoreError, ClientError, Boto3Error, OSError) as e:
            raise PublishError(
                f"Failed to upload {key} to S3: {e}",
                details={"bucket": self.bucket, "key": key},
            ) from e

    def is_configured(self) -> bool:
        return self.enabled

