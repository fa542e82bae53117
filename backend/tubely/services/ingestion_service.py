"""
Upload ingestion pipeline

Authenticate -> authorize ownership -> validate -> stage -> probe -> remux ->
publish -> commit metadata. Routes call authorize() before reading the request
body, then hand the owner and record to ingest_video() or ingest_thumbnail().
The first failure ends the request; staged files are removed on every exit
path and metadata is only written once the object is stored.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Type

from starlette.concurrency import run_in_threadpool

from tubely.config.base import Settings
from tubely.errors import (
    AuthError,
    IngestionError,
    MetadataError,
    ProbeError,
    PublishError,
    RemuxError,
    StagingError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from tubely.models.video import Video
from tubely.services.auth_service import Authenticator
from tubely.services.media.core import MediaProber, MediaRemuxer
from tubely.services.metadata_service import VideoRepository
from tubely.services.s3_service import S3Publisher, build_object_key
from tubely.services.staging_service import StagingManager
from tubely.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

THUMBNAIL_PREFIX = "thumbnails"


def parse_video_id(video_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(video_id))
    except ValueError as e:
        raise ValidationError(f"Invalid video id: {video_id!r}", public_message="Invalid ID") from e


def parse_media_type(content_type: Optional[str]) -> str:
    """Media type without parameters: 'video/mp4; codecs=avc1' -> 'video/mp4'"""
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if not media_type:
        raise ValidationError("Upload has no Content-Type", public_message="Missing Content-Type for upload")
    if "/" not in media_type:
        raise ValidationError(
            f"Malformed Content-Type: {content_type!r}",
            public_message="Unable to parse media type",
        )
    return media_type


class IngestionOrchestrator:
    """Request-scoped controller for video and thumbnail uploads"""

    def __init__(
        self,
        settings: Settings,
        authenticator: Authenticator,
        repository: VideoRepository,
        stager: StagingManager,
        prober: MediaProber,
        remuxer: MediaRemuxer,
        publisher: S3Publisher,
    ):
        self.settings = settings
        self.authenticator = authenticator
        self.repository = repository
        self.stager = stager
        self.prober = prober
        self.remuxer = remuxer
        self.publisher = publisher

    async def authorize(self, authorization: Optional[str], video_id: str):
        """
        Resolve the caller and load a video they own

        Returns:
            (user_id, video) tuple
        """
        video_uuid = parse_video_id(video_id)
        user_id = self.authenticator.authenticate_header(authorization)

        video = await self.repository.get_video(video_uuid)
        if video.user_id != user_id:
            raise AuthError(
                f"User {user_id} does not own video {video_uuid}",
                details={"video_id": str(video_uuid), "user_id": str(user_id)},
                public_message="Not authorized to access this video",
            )
        return user_id, video

    async def ingest_video(self, user_id: uuid.UUID, video: Video, upload) -> Video:
        """
        Store an uploaded MP4 as a fast-start object and record its URL

        The caller must already be authorized for the video (see authorize()),
        so the request body is only read on behalf of the owner.

        Args:
            user_id: Authenticated caller
            video: Video record owned by the caller
            upload: UploadFile from the form (or anything with read() and content_type)

        Returns:
            The updated video record
        """
        media_type = self._check_upload(upload, self.settings.ALLOWED_VIDEO_TYPES)
        context = {"video_id": str(video.id), "user_id": str(user_id)}

        logger.info(f"Uploading video {video.id} by user {user_id}")
        metrics = PerformanceLogger("ingest.video")

        with self.stager.workspace() as area:
            with self._stage("stage", StagingError, context):
                staged = await area.stage(upload, self.settings.MAX_VIDEO_SIZE, media_type, name="video")
            metrics.metric("staged_size", staged.size, "bytes")

            with self._stage("probe", ProbeError, context):
                orientation = await run_in_threadpool(self.prober.probe, staged)

            with self._stage("remux", RemuxError, context):
                processed = await run_in_threadpool(self.remuxer.remux, staged)
                processed = area.adopt(processed.path, media_type)
            metrics.metric("remuxed_size", processed.size, "bytes")

            with self._stage("publish", PublishError, context):
                key = build_object_key(orientation.value, media_type)
                reference = await self.publisher.publish(processed, key, media_type)

        updated = await self._commit(video, {"video_url": reference.url}, reference.key, context)
        logger.info(f"Successfully uploaded video at: {reference.url}")
        return updated

    async def ingest_thumbnail(self, user_id: uuid.UUID, video: Video, upload) -> Video:
        """Store an uploaded image as the thumbnail of a video the caller owns"""
        media_type = self._check_upload(upload, self.settings.ALLOWED_THUMBNAIL_TYPES)
        context = {"video_id": str(video.id), "user_id": str(user_id)}

        logger.info(f"Uploading thumbnail for video {video.id} by user {user_id}")

        with self.stager.workspace() as area:
            with self._stage("stage", StagingError, context):
                staged = await area.stage(upload, self.settings.MAX_THUMBNAIL_SIZE, media_type, name="thumbnail")

            with self._stage("publish", PublishError, context):
                key = build_object_key(THUMBNAIL_PREFIX, media_type)
                reference = await self.publisher.publish(staged, key, media_type)

        return await self._commit(video, {"thumbnail_url": reference.url}, reference.key, context)

    def _check_upload(self, upload, allowed: List[str]) -> str:
        if upload is None:
            raise ValidationError("No file in form", public_message="Unable to parse form file")

        media_type = parse_media_type(getattr(upload, "content_type", None))
        if media_type not in allowed:
            raise UnsupportedMediaTypeError(
                f"Media type {media_type} not in {allowed}",
                details={"media_type": media_type},
            )
        return media_type

    async def _commit(self, video: Video, changes: dict, key: str, context: dict) -> Video:
        updated = video.model_copy(update={**changes, "updated_at": datetime.now(timezone.utc)})
        try:
            with self._stage("commit", MetadataError, context):
                return await self.repository.update_video(updated)
        except IngestionError:
            # The stored object stays behind unreferenced
            logger.error(f"Orphaned object {key} in bucket {self.publisher.bucket} for video {video.id}")
            raise

    @contextmanager
    def _stage(self, stage: str, error_cls: Type[IngestionError], context: dict) -> Iterator[None]:
        """Time a pipeline stage, log failures with context, wrap unexpected errors"""
        perf = PerformanceLogger(f"ingest.{stage}")
        perf.start(stage)
        try:
            yield
        except IngestionError as e:
            e.details.update(context)
            e.details.setdefault("stage", stage)
            self._log_failure(e)
            raise
        except Exception as e:
            error = error_cls(f"Unexpected error during {stage}: {e}", details={**context, "stage": stage})
            logger.exception(f"{stage} failed for video {context.get('video_id')}")
            raise error from e
        perf.end(", ".join(f"{k}={v}" for k, v in context.items()))

    def _log_failure(self, error: IngestionError) -> None:
        details = error.details
        message = (
            f"{error.error_code} during {details.get('stage')} "
            f"(video={details.get('video_id')}, user={details.get('user_id')}): {error}"
        )
        if error.is_client_error:
            logger.warning(message)
        else:
            logger.error(message)
