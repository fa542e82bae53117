"""
FFmpeg-backed media tools
Shells out to ffprobe for stream metadata and ffmpeg for fast-start remuxing
"""

import json
import os
import shutil
import subprocess
from typing import List

from tubely.errors import ProbeError, RemuxError
from tubely.models.upload import StagedFile
from tubely.services.media.core import MediaProber, MediaRemuxer, StreamInfo

STDERR_TAIL = 2000


def _tail(text: str) -> str:
    return (text or "")[-STDERR_TAIL:]


class FFprobeProber(MediaProber):
    """Stream inspection through ffprobe JSON output"""

    def __init__(self, binary: str = "ffprobe", timeout: int = 60):
        super().__init__("ffprobe")
        self.binary = binary
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def probe_streams(self, path: str) -> List[StreamInfo]:
        cmd = [
            self.binary,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            path,
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise ProbeError(f"ffprobe not found: {self.binary}", error_code="TOOL_MISSING") from e
        except subprocess.TimeoutExpired as e:
            raise ProbeError(
                f"ffprobe timed out after {self.timeout}s",
                error_code="PROBE_TIMEOUT",
                details={"path": path},
            ) from e

        if result.returncode != 0:
            raise ProbeError(
                f"ffprobe exited with status {result.returncode}",
                error_code="PROBE_EXIT_STATUS",
                details={"path": path, "stderr": _tail(result.stderr)},
            )

        try:
            output = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProbeError(
                f"Unparseable ffprobe output: {e}",
                error_code="PROBE_BAD_OUTPUT",
                details={"path": path},
            ) from e

        streams = []
        for position, stream in enumerate(output.get("streams") or []):
            streams.append(StreamInfo(
                index=int(stream.get("index", position)),
                codec_type=stream.get("codec_type", ""),
                width=int(stream.get("width") or 0),
                height=int(stream.get("height") or 0),
            ))

        self.logger.debug(f"ffprobe found {len(streams)} streams in {path}")
        return streams


class FFmpegRemuxer(MediaRemuxer):
    """Moves the moov atom to the front with a stream copy"""

    OUTPUT_SUFFIX = ".processing"

    def __init__(self, binary: str = "ffmpeg", timeout: int = 600):
        super().__init__("ffmpeg")
        self.binary = binary
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def remux(self, staged: StagedFile) -> StagedFile:
        output_path = staged.path + self.OUTPUT_SUFFIX
        cmd = [
            self.binary,
            "-y",
            "-v", "error",
            "-i", staged.path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise RemuxError(f"ffmpeg not found: {self.binary}", error_code="TOOL_MISSING") from e
        except subprocess.TimeoutExpired as e:
            raise RemuxError(
                f"ffmpeg timed out after {self.timeout}s",
                error_code="REMUX_TIMEOUT",
                details={"path": staged.path},
            ) from e

        if result.returncode != 0:
            raise RemuxError(
                f"ffmpeg exited with status {result.returncode}",
                error_code="REMUX_EXIT_STATUS",
                details={"path": staged.path, "stderr": _tail(result.stderr)},
            )

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise RemuxError(
                "ffmpeg produced no output file",
                error_code="REMUX_NO_OUTPUT",
                details={"path": staged.path, "output": output_path},
            )

        size = os.path.getsize(output_path)
        self.logger.info(f"Remuxed {staged.path} for fast start ({size / (1024 * 1024):.1f}MB)")
        return StagedFile(path=output_path, size=size, content_type=staged.content_type)
