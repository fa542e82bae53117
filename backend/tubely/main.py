"""
FastAPI Entry Point for Tubely
"""

import re
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers

from tubely.config import Settings, get_settings
from tubely.errors import IngestionError, PayloadTooLargeError
from tubely.routers.videos import router as videos_router
from tubely.services.auth_service import Authenticator
from tubely.services.ingestion_service import IngestionOrchestrator
from tubely.services.media import build_media_tools
from tubely.services.metadata_service import build_video_repository
from tubely.services.s3_service import S3Publisher
from tubely.services.staging_service import StagingManager
from tubely.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

VIDEO_UPLOAD_PATH = re.compile(r"^/api/videos/[^/]+/?$")
THUMBNAIL_UPLOAD_PATH = re.compile(r"^/api/videos/[^/]+/thumbnail/?$")


class UploadLimitMiddleware:
    """
    Cap request bodies on the upload routes

    A declared Content-Length over the cap is refused before the body is read.
    Bodies without one (chunked transfer) are counted as they arrive and cut
    off with 413 as soon as they pass the cap, so at most cap + slack bytes
    are ever consumed.
    """

    def __init__(self, app, settings: Settings):
        self.app = app
        self.slack = settings.UPLOAD_ENVELOPE_SLACK
        self.limits = [
            (THUMBNAIL_UPLOAD_PATH, settings.MAX_THUMBNAIL_SIZE),
            (VIDEO_UPLOAD_PATH, settings.MAX_VIDEO_SIZE),
        ]

    def limit_for(self, path: str) -> Optional[int]:
        for pattern, limit in self.limits:
            if pattern.match(path):
                return limit
        return None

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        limit = self.limit_for(path)
        if limit is None:
            await self.app(scope, receive, send)
            return

        ceiling = limit + self.slack
        declared = Headers(scope=scope).get("content-length")
        if declared is not None:
            try:
                declared_size = int(declared)
            except ValueError:
                response = JSONResponse(status_code=400, content={"error": "Invalid Content-Length"})
                await response(scope, receive, send)
                return
            if declared_size > ceiling:
                logger.warning(f"Rejected {path}: Content-Length {declared_size} over limit {limit}")
                await self._too_large(scope, receive, send)
                return

        received = 0
        response_started = False

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > ceiling:
                    raise PayloadTooLargeError(
                        f"Request body for {path} passed {ceiling} bytes",
                        error_code="BODY_TOO_LARGE",
                        details={"path": path, "limit": limit, "received": received},
                    )
            return message

        async def tracking_send(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except PayloadTooLargeError as e:
            # Only reached when nothing inside the app turned it into a response
            if response_started:
                raise
            logger.warning(f"Rejected {path}: {e}")
            await self._too_large(scope, receive, send)

    @staticmethod
    async def _too_large(scope, receive, send):
        response = JSONResponse(status_code=413, content={"error": PayloadTooLargeError.default_public_message})
        await response(scope, receive, send)


def build_orchestrator(settings: Settings) -> IngestionOrchestrator:
    """Wire the production adapters"""
    prober, remuxer = build_media_tools(settings)
    return IngestionOrchestrator(
        settings=settings,
        authenticator=Authenticator(settings),
        repository=build_video_repository(settings),
        stager=StagingManager(settings),
        prober=prober,
        remuxer=remuxer,
        publisher=S3Publisher(settings),
    )


async def ingestion_error_handler(request: Request, exc: IngestionError):
    # Pipeline stages log their own failures with context
    if "stage" not in exc.details:
        message = f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc}"
        if exc.is_client_error:
            logger.warning(message)
        else:
            logger.error(message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[IngestionOrchestrator] = None,
) -> FastAPI:
    settings = settings or get_settings()
    orchestrator = orchestrator or build_orchestrator(settings)

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Video ingestion: staging, fast-start remuxing and S3 publishing",
        version=settings.VERSION,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(UploadLimitMiddleware, settings=settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.DEBUG else settings.ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=86400
    )

    app.add_exception_handler(IngestionError, ingestion_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(videos_router)

    @app.get("/")
    async def root():
        return {"message": f"{settings.APP_NAME} API", "version": settings.VERSION}

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "services": {
                "ffprobe": "available" if orchestrator.prober.is_available() else "unavailable",
                "ffmpeg": "available" if orchestrator.remuxer.is_available() else "unavailable",
                "s3": "configured" if orchestrator.publisher.is_configured() else "unconfigured",
                "metadata": orchestrator.repository.backend,
            }
        }

    logger.info(f"{settings.APP_NAME} API initialized (metadata={orchestrator.repository.backend})")
    return app


settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
app = create_app(settings)


def run():
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()
