"""
Local staging of uploaded files

Every request gets its own private directory. Anything written there (the raw
upload, the remuxed copy) is removed when the workspace context exits,
whether the pipeline succeeded or not.
"""

import inspect
import os
import shutil
import tempfile
from contextlib import contextmanager
from typing import Iterator, Optional

from tubely.config.base import Settings
from tubely.errors import IngestionError, PayloadTooLargeError, StagingError, ValidationError
from tubely.models.upload import StagedFile
from tubely.utils.logger import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB


class StagingArea:
    """A private directory holding the staged files of one request"""

    def __init__(self, path: str, chunk_size: int = CHUNK_SIZE):
        self.path = path
        self.chunk_size = chunk_size

    async def stage(self, reader, size_limit: int, content_type: str, name: str = "upload") -> StagedFile:
        """
        Stream a reader into a new file in this workspace

        Args:
            reader: Object with a read(size) method, sync or async (FastAPI UploadFile)
            size_limit: Maximum number of bytes accepted
            content_type: Declared media type of the payload
            name: Filename prefix for the staged file

        Returns:
            StagedFile for the complete payload
        """
        fd, path = tempfile.mkstemp(prefix=f"{name}-", dir=self.path)
        written = 0

        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = reader.read(self.chunk_size)
                    if inspect.isawaitable(chunk):
                        chunk = await chunk
                    if not chunk:
                        break

                    written += len(chunk)
                    if written > size_limit:
                        raise PayloadTooLargeError(
                            f"Upload exceeds {size_limit} bytes",
                            details={"limit": size_limit},
                        )
                    out.write(chunk)
        except IngestionError:
            self._discard(path)
            raise
        except Exception as e:
            self._discard(path)
            raise StagingError(
                f"Failed to stage upload: {e}",
                details={"path": path, "bytes_written": written},
            ) from e

        if written == 0:
            self._discard(path)
            raise ValidationError("Uploaded file is empty", public_message="Uploaded file is empty")

        logger.info(f"Staged {written / (1024 * 1024):.1f}MB to {path}")
        return StagedFile(path=path, size=written, content_type=content_type)

    def adopt(self, path: str, content_type: str) -> StagedFile:
        """Wrap a file another stage produced inside this workspace"""
        if os.path.dirname(os.path.abspath(path)) != os.path.abspath(self.path):
            raise StagingError(
                f"Refusing to adopt file outside the workspace: {path}",
                details={"path": path, "workspace": self.path},
            )
        return StagedFile(path=path, size=os.path.getsize(path), content_type=content_type)

    def _discard(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


class StagingManager:
    """Creates per-request staging workspaces"""

    def __init__(self, settings: Settings, chunk_size: int = CHUNK_SIZE):
        self.base_dir: Optional[str] = settings.STAGING_DIR
        self.chunk_size = chunk_size

    @contextmanager
    def workspace(self) -> Iterator[StagingArea]:
        """Yield a fresh private staging area and remove it on exit"""
        if self.base_dir:
            os.makedirs(self.base_dir, exist_ok=True)

        try:
            path = tempfile.mkdtemp(prefix="tubely-", dir=self.base_dir)
        except OSError as e:
            raise StagingError(f"Unable to create staging directory: {e}") from e

        try:
            yield StagingArea(path, chunk_size=self.chunk_size)
        finally:
            shutil.rmtree(path, ignore_errors=True)
            if os.path.exists(path):
                logger.error(f"Failed to remove staging directory {path}")
            else:
                logger.debug(f"Removed staging directory {path}")
