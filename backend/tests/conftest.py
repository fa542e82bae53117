"""
Pytest configuration and fixtures for testing
"""

import asyncio
import io
import os
import shutil
import uuid

# Keep the module-level app in tubely.main away from Redis and log files
os.environ.setdefault("METADATA_BACKEND", "memory")
os.environ.setdefault("LOG_FILE", "")

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import Headers, UploadFile

from tubely.config.base import Settings
from tubely.errors import ProbeError, RemuxError
from tubely.main import create_app
from tubely.models.upload import StagedFile
from tubely.models.video import VideoCreate
from tubely.services.auth_service import Authenticator
from tubely.services.ingestion_service import IngestionOrchestrator
from tubely.services.media.core import MediaProber, MediaRemuxer, StreamInfo
from tubely.services.metadata_service import InMemoryVideoRepository
from tubely.services.s3_service import S3Publisher
from tubely.services.staging_service import StagingManager

SAMPLE_MP4 = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00mp42isom" + b"\x00" * 4096
SAMPLE_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 512


def run_sync(coro):
    """Run a coroutine on a private loop, leaving any test loop alone"""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def leftovers(directory: str) -> list:
    """Everything still present under a staging directory"""
    if not os.path.exists(directory):
        return []
    return os.listdir(directory)


def make_upload(data: bytes, content_type: str = "video/mp4", filename: str = "clip.mp4") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class FakeProber(MediaProber):
    """Returns canned stream dimensions instead of running ffprobe"""

    def __init__(self, width: int = 1920, height: int = 1080, streams=None, error: Exception = None):
        super().__init__("fake-probe")
        self.streams = streams if streams is not None else [StreamInfo(0, "video", width, height)]
        self.error = error
        self.calls = []

    def is_available(self) -> bool:
        return True

    def probe_streams(self, path: str):
        self.calls.append(path)
        if self.error:
            raise self.error
        return self.streams


class FakeRemuxer(MediaRemuxer):
    """Copies the input next to itself instead of running ffmpeg"""

    def __init__(self, error: Exception = None):
        super().__init__("fake-remux")
        self.error = error
        self.calls = []

    def is_available(self) -> bool:
        return True

    def remux(self, staged: StagedFile) -> StagedFile:
        self.calls.append(staged.path)
        if self.error:
            raise self.error
        output = staged.path + ".processing"
        shutil.copyfile(staged.path, output)
        return StagedFile(path=output, size=os.path.getsize(output), content_type=staged.content_type)


class FakeS3Client:
    """Minimal boto3 S3 client keeping objects in a dict"""

    def __init__(self, error: Exception = None):
        self.objects = {}
        self.error = error
        self.calls = 0

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None):
        self.calls += 1
        if self.error:
            raise self.error
        self.objects[(Bucket, Key)] = {
            "body": Fileobj.read(),
            "content_type": (ExtraArgs or {}).get("ContentType"),
        }


@pytest.fixture
def settings(tmp_path):
    return Settings(
        STAGING_DIR=str(tmp_path / "staging"),
        METADATA_BACKEND="memory",
        S3_BUCKET="tubely-test",
        AWS_REGION="us-east-2",
        SECRET_KEY="test-secret",
        MAX_VIDEO_SIZE=64 * 1024,
        MAX_THUMBNAIL_SIZE=8 * 1024,
        UPLOAD_ENVELOPE_SLACK=4096,
        LOG_FILE=None,
    )


@pytest.fixture
def staging_dir(settings):
    return settings.STAGING_DIR


@pytest.fixture
def authenticator(settings):
    return Authenticator(settings)


@pytest.fixture
def repository():
    return InMemoryVideoRepository()


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def publisher(settings, s3_client):
    return S3Publisher(settings, client=s3_client)


@pytest.fixture
def prober():
    return FakeProber()


@pytest.fixture
def remuxer():
    return FakeRemuxer()


@pytest.fixture
def orchestrator(settings, authenticator, repository, publisher, prober, remuxer):
    return IngestionOrchestrator(
        settings=settings,
        authenticator=authenticator,
        repository=repository,
        stager=StagingManager(settings),
        prober=prober,
        remuxer=remuxer,
        publisher=publisher,
    )


@pytest.fixture
def owner_id():
    return uuid.uuid4()


@pytest.fixture
def owner_token(authenticator, owner_id):
    return authenticator.issue_token(owner_id)


@pytest.fixture
def stranger_token(authenticator):
    return authenticator.issue_token(uuid.uuid4())


@pytest.fixture
def video(repository, owner_id):
    """A video record owned by owner_id"""
    params = VideoCreate(title="Boots on the trail", description="first hike")
    return run_sync(repository.create_video(params, owner_id))


@pytest.fixture
def app(settings, orchestrator):
    return create_app(settings, orchestrator)


@pytest.fixture
def client(app):
    """Create a test client for FastAPI app"""
    return TestClient(app)


@pytest.fixture
def failing_probe():
    return FakeProber(error=ProbeError("ffprobe exited with status 1"))


@pytest.fixture
def failing_remux():
    return FakeRemuxer(error=RemuxError("ffmpeg exited with status 1"))
