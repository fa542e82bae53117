"""
Ingestion pipeline with faked media tools and storage
"""

import logging
import re
import uuid
from unittest.mock import AsyncMock

import pytest

from conftest import SAMPLE_MP4, SAMPLE_PNG, FakeProber, FakeRemuxer, leftovers, make_upload
from tubely.errors import (
    AuthError,
    MetadataError,
    NotFoundError,
    PayloadTooLargeError,
    ProbeError,
    PublishError,
    RemuxError,
    UnsupportedMediaTypeError,
    ValidationError,
)
from tubely.services.ingestion_service import IngestionOrchestrator, parse_media_type, parse_video_id
from tubely.services.staging_service import StagingManager

VIDEO_URL = re.compile(r"^https://tubely-test\.s3\.us-east-2\.amazonaws\.com/(landscape|portrait|other)/[A-Za-z0-9_-]{43}\.mp4$")


def with_tools(orchestrator, prober=None, remuxer=None):
    return IngestionOrchestrator(
        settings=orchestrator.settings,
        authenticator=orchestrator.authenticator,
        repository=orchestrator.repository,
        stager=StagingManager(orchestrator.settings),
        prober=prober or orchestrator.prober,
        remuxer=remuxer or orchestrator.remuxer,
        publisher=orchestrator.publisher,
    )


def test_parse_video_id():
    video_id = uuid.uuid4()
    assert parse_video_id(str(video_id)) == video_id

    with pytest.raises(ValidationError) as exc_info:
        parse_video_id("not-a-uuid")
    assert exc_info.value.public_message == "Invalid ID"


@pytest.mark.parametrize("header,expected", [
    ("video/mp4", "video/mp4"),
    ("Video/MP4", "video/mp4"),
    ("video/mp4; codecs=\"avc1.42E01E\"", "video/mp4"),
])
def test_parse_media_type(header, expected):
    assert parse_media_type(header) == expected


@pytest.mark.parametrize("header", [None, "", "   ", "mp4"])
def test_parse_media_type_rejects(header):
    with pytest.raises(ValidationError):
        parse_media_type(header)


class TestAuthorize:
    @pytest.mark.asyncio
    async def test_owner(self, orchestrator, video, owner_id, owner_token):
        user_id, loaded = await orchestrator.authorize(f"Bearer {owner_token}", str(video.id))

        assert user_id == owner_id
        assert loaded == video

    @pytest.mark.asyncio
    async def test_stranger(self, orchestrator, video, stranger_token, repository):
        with pytest.raises(AuthError) as exc_info:
            await orchestrator.authorize(f"Bearer {stranger_token}", str(video.id))

        assert exc_info.value.public_message == "Not authorized to access this video"
        assert (await repository.get_video(video.id)) == video

    @pytest.mark.asyncio
    async def test_missing_token(self, orchestrator, video):
        with pytest.raises(AuthError) as exc_info:
            await orchestrator.authorize(None, str(video.id))
        assert exc_info.value.public_message == "Couldn't find bearer token"

    @pytest.mark.asyncio
    async def test_invalid_id_checked_first(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.authorize(None, "not-a-uuid")

    @pytest.mark.asyncio
    async def test_unknown_video(self, orchestrator, owner_token):
        with pytest.raises(NotFoundError):
            await orchestrator.authorize(f"Bearer {owner_token}", str(uuid.uuid4()))


class TestIngestVideo:
    @pytest.mark.asyncio
    async def test_full_pipeline(self, orchestrator, video, s3_client, repository, staging_dir):
        updated = await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert VIDEO_URL.match(updated.video_url)
        assert "/landscape/" in updated.video_url
        assert updated.updated_at > video.updated_at
        assert (await repository.get_video(video.id)).video_url == updated.video_url

        [(bucket, key)] = s3_client.objects
        assert updated.video_url.endswith(key)
        assert s3_client.objects[(bucket, key)] == {"body": SAMPLE_MP4, "content_type": "video/mp4"}
        assert leftovers(staging_dir) == []

    @pytest.mark.asyncio
    async def test_portrait_prefix(self, orchestrator, video):
        orchestrator = with_tools(orchestrator, prober=FakeProber(1080, 1920))

        updated = await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert "/portrait/" in updated.video_url

    @pytest.mark.asyncio
    async def test_probe_and_remux_see_staged_files(self, orchestrator, video, prober, remuxer, staging_dir):
        await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert len(prober.calls) == 1
        assert remuxer.calls == prober.calls
        assert prober.calls[0].startswith(staging_dir)

    @pytest.mark.asyncio
    async def test_reupload_overwrites_url(self, orchestrator, video, s3_client):
        first = await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))
        second = await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert first.video_url != second.video_url
        assert len(s3_client.objects) == 2

    @pytest.mark.asyncio
    async def test_logs_staged_and_remuxed_sizes(self, orchestrator, video, caplog):
        caplog.set_level(logging.INFO)

        await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        metrics = [r.getMessage() for r in caplog.records if r.name == "perf.ingest.video"]
        assert f"METRIC | staged_size: {len(SAMPLE_MP4)} bytes" in metrics
        assert f"METRIC | remuxed_size: {len(SAMPLE_MP4)} bytes" in metrics

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_type", ["video/quicktime", "image/png", "application/octet-stream", "video/webm"])
    async def test_unsupported_media_type(self, orchestrator, video, s3_client, staging_dir, content_type):
        with pytest.raises(UnsupportedMediaTypeError) as exc_info:
            await orchestrator.ingest_video(
                video.user_id, video, make_upload(SAMPLE_MP4, content_type=content_type)
            )

        assert exc_info.value.status_code == 415
        assert s3_client.calls == 0
        assert leftovers(staging_dir) == []

    @pytest.mark.asyncio
    async def test_missing_file(self, orchestrator, video):
        with pytest.raises(ValidationError) as exc_info:
            await orchestrator.ingest_video(video.user_id, video, None)

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_oversized_upload(self, orchestrator, video, s3_client, staging_dir, settings):
        data = b"\x00" * (settings.MAX_VIDEO_SIZE + 1)

        with pytest.raises(PayloadTooLargeError):
            await orchestrator.ingest_video(video.user_id, video, make_upload(data))

        assert s3_client.calls == 0
        assert leftovers(staging_dir) == []

    @pytest.mark.asyncio
    async def test_probe_failure_cleans_up(self, orchestrator, video, failing_probe, s3_client, repository, staging_dir):
        orchestrator = with_tools(orchestrator, prober=failing_probe)

        with pytest.raises(ProbeError) as exc_info:
            await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert exc_info.value.details["stage"] == "probe"
        assert exc_info.value.details["video_id"] == str(video.id)
        assert s3_client.calls == 0
        assert leftovers(staging_dir) == []
        assert (await repository.get_video(video.id)).video_url is None

    @pytest.mark.asyncio
    async def test_remux_failure_cleans_up(self, orchestrator, video, failing_remux, s3_client, repository, staging_dir):
        orchestrator = with_tools(orchestrator, remuxer=failing_remux)

        with pytest.raises(RemuxError):
            await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert s3_client.calls == 0
        assert leftovers(staging_dir) == []
        assert (await repository.get_video(video.id)).video_url is None

    @pytest.mark.asyncio
    async def test_unexpected_remux_error_is_wrapped(self, orchestrator, video, staging_dir):
        orchestrator = with_tools(orchestrator, remuxer=FakeRemuxer(error=OSError("disk full")))

        with pytest.raises(RemuxError) as exc_info:
            await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert "disk full" in str(exc_info.value)
        assert exc_info.value.details["stage"] == "remux"
        assert leftovers(staging_dir) == []

    @pytest.mark.asyncio
    async def test_publish_failure_leaves_metadata_alone(self, orchestrator, video, s3_client, repository, staging_dir):
        s3_client.error = OSError("connection reset")

        with pytest.raises(PublishError):
            await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert s3_client.objects == {}
        assert leftovers(staging_dir) == []
        assert (await repository.get_video(video.id)).video_url is None

    @pytest.mark.asyncio
    async def test_commit_failure_keeps_uploaded_object(self, orchestrator, video, s3_client, repository, staging_dir):
        repository.update_video = AsyncMock(side_effect=MetadataError("redis down"))

        with pytest.raises(MetadataError) as exc_info:
            await orchestrator.ingest_video(video.user_id, video, make_upload(SAMPLE_MP4))

        assert exc_info.value.details["stage"] == "commit"
        assert len(s3_client.objects) == 1
        assert leftovers(staging_dir) == []


class TestIngestThumbnail:
    @pytest.mark.asyncio
    async def test_thumbnail_upload(self, orchestrator, video, s3_client, prober, staging_dir):
        updated = await orchestrator.ingest_thumbnail(
            video.user_id, video, make_upload(SAMPLE_PNG, "image/png", "thumb.png")
        )

        assert re.match(r"^https://tubely-test\.s3\.us-east-2\.amazonaws\.com/thumbnails/[A-Za-z0-9_-]{43}\.png$", updated.thumbnail_url)
        assert updated.video_url is None
        [(_, key)] = s3_client.objects
        assert s3_client.objects[("tubely-test", key)]["content_type"] == "image/png"
        assert prober.calls == []
        assert leftovers(staging_dir) == []

    @pytest.mark.asyncio
    async def test_thumbnail_rejects_video(self, orchestrator, video):
        with pytest.raises(UnsupportedMediaTypeError):
            await orchestrator.ingest_thumbnail(video.user_id, video, make_upload(SAMPLE_MP4))

    @pytest.mark.asyncio
    async def test_thumbnail_size_cap(self, orchestrator, video, settings, staging_dir):
        data = b"\xff\xd8" + b"\x00" * settings.MAX_THUMBNAIL_SIZE

        with pytest.raises(PayloadTooLargeError):
            await orchestrator.ingest_thumbnail(
                video.user_id, video, make_upload(data, "image/jpeg", "thumb.jpg")
            )
        assert leftovers(staging_dir) == []
