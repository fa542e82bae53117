"""
Video routes - record management and media uploads

Upload routes authorize the caller before touching the request body, so a
caller who does not own the video never gets a single byte spooled to disk.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from starlette.datastructures import FormData, UploadFile

from tubely.models.video import Video, VideoCreate
from tubely.services.ingestion_service import IngestionOrchestrator
from tubely.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/videos", tags=["Videos"])


def get_orchestrator(request: Request) -> IngestionOrchestrator:
    return request.app.state.orchestrator


def form_file(form: FormData, field: str) -> Optional[UploadFile]:
    """The uploaded file under field, or None if it is missing or a plain value"""
    upload = form.get(field)
    return upload if isinstance(upload, UploadFile) else None


@router.post("", response_model=Video, status_code=201)
async def create_video(
    params: VideoCreate,
    authorization: Optional[str] = Header(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """Create an empty video record owned by the caller"""
    user_id = orchestrator.authenticator.authenticate_header(authorization)
    return await orchestrator.repository.create_video(params, user_id)


@router.get("/{video_id}", response_model=Video)
async def get_video(
    video_id: str,
    authorization: Optional[str] = Header(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    _, video = await orchestrator.authorize(authorization, video_id)
    return video


@router.post("/{video_id}", response_model=Video)
async def upload_video(
    video_id: str,
    request: Request,
    authorization: Optional[str] = Header(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """Upload an MP4 (form field "video"), remux it for fast start and publish it to S3"""
    user_id, video = await orchestrator.authorize(authorization, video_id)
    async with request.form() as form:
        return await orchestrator.ingest_video(user_id, video, form_file(form, "video"))


@router.post("/{video_id}/thumbnail", response_model=Video)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    authorization: Optional[str] = Header(None),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
):
    """Upload a JPEG or PNG thumbnail (form field "thumbnail")"""
    user_id, video = await orchestrator.authorize(authorization, video_id)
    async with request.form() as form:
        return await orchestrator.ingest_thumbnail(user_id, video, form_file(form, "thumbnail"))
