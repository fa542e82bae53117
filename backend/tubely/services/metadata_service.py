"""
Video metadata store
Redis-backed in production, in-memory for development and tests
"""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

import redis
from pydantic import ValidationError as PydanticValidationError

from tubely.config.base import Settings
from tubely.errors import MetadataError, NotFoundError
from tubely.models.video import Video, VideoCreate
from tubely.utils.logger import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_video(params: VideoCreate, user_id: uuid.UUID) -> Video:
    now = _now()
    return Video(
        id=uuid.uuid4(),
        created_at=now,
        updated_at=now,
        title=params.title,
        description=params.description,
        user_id=user_id,
    )


class VideoRepository(ABC):
    """Read/write access to video records"""

    backend = "abstract"

    @abstractmethod
    async def create_video(self, params: VideoCreate, user_id: uuid.UUID) -> Video:
        """Persist a new record owned by user_id"""

    @abstractmethod
    async def get_video(self, video_id: uuid.UUID) -> Video:
        """Load a record, raising NotFoundError when it does not exist"""

    @abstractmethod
    async def update_video(self, video: Video) -> Video:
        """Replace the stored record with video"""


class InMemoryVideoRepository(VideoRepository):
    """Thread-safe dict store, lost on restart"""

    backend = "memory"

    def __init__(self):
        self._videos: Dict[uuid.UUID, Video] = {}
        self._lock = threading.RLock()

    async def create_video(self, params: VideoCreate, user_id: uuid.UUID) -> Video:
        video = _new_video(params, user_id)
        with self._lock:
            self._videos[video.id] = video
        logger.info(f"Created video {video.id} for user {user_id}")
        return video

    async def get_video(self, video_id: uuid.UUID) -> Video:
        with self._lock:
            video = self._videos.get(video_id)
        if video is None:
            raise NotFoundError(f"Video {video_id} does not exist", details={"video_id": str(video_id)})
        return video

    async def update_video(self, video: Video) -> Video:
        with self._lock:
            if video.id not in self._videos:
                raise NotFoundError(f"Video {video.id} does not exist", details={"video_id": str(video.id)})
            self._videos[video.id] = video
        return video

    def __len__(self) -> int:
        with self._lock:
            return len(self._videos)


class RedisVideoRepository(VideoRepository):
    """Records stored as JSON documents under video:<id>"""

    backend = "redis"
    KEY_PREFIX = "video"

    def __init__(self, settings: Optional[Settings] = None, client=None):
        if client is not None:
            self.redis_client = client
        else:
            self.redis_client = redis.Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                password=settings.REDIS_PASSWORD or None,
                db=settings.REDIS_DB,
                decode_responses=True
            )
            logger.info(f"Using Redis metadata store at {settings.REDIS_HOST}:{settings.REDIS_PORT}")

    def _key(self, video_id: uuid.UUID) -> str:
        return f"{self.KEY_PREFIX}:{video_id}"

    async def create_video(self, params: VideoCreate, user_id: uuid.UUID) -> Video:
        video = _new_video(params, user_id)
        try:
            self.redis_client.set(self._key(video.id), video.model_dump_json())
        except redis.RedisError as e:
            raise MetadataError(f"Redis SET failed for video {video.id}: {e}") from e
        logger.info(f"Created video {video.id} for user {user_id}")
        return video

    async def get_video(self, video_id: uuid.UUID) -> Video:
        try:
            value = self.redis_client.get(self._key(video_id))
        except redis.RedisError as e:
            raise MetadataError(
                f"Redis GET failed for video {video_id}: {e}",
                details={"video_id": str(video_id)},
            ) from e

        if value is None:
            raise NotFoundError(f"Video {video_id} does not exist", details={"video_id": str(video_id)})
        if isinstance(value, bytes):
            value = value.decode('utf-8')

        try:
            return Video.model_validate_json(value)
        except PydanticValidationError as e:
            raise MetadataError(
                f"Corrupt record for video {video_id}: {e}",
                details={"video_id": str(video_id)},
            ) from e

    async def update_video(self, video: Video) -> Video:
        try:
            # xx: only overwrite an existing record
            stored = self.redis_client.set(self._key(video.id), video.model_dump_json(), xx=True)
        except redis.RedisError as e:
            raise MetadataError(
                f"Redis SET failed for video {video.id}: {e}",
                details={"video_id": str(video.id)},
            ) from e

        if not stored:
            raise NotFoundError(f"Video {video.id} does not exist", details={"video_id": str(video.id)})
        return video


def build_video_repository(settings: Settings) -> VideoRepository:
    """Pick the metadata backend named by METADATA_BACKEND"""
    backend = settings.METADATA_BACKEND.lower()
    if backend == "memory":
        logger.warning("Using in-memory metadata store - records are lost on restart")
        return InMemoryVideoRepository()
    if backend == "redis":
        return RedisVideoRepository(settings)
    raise ValueError(f"Unknown METADATA_BACKEND: {settings.METADATA_BACKEND}")
