"""
Media inspection and remuxing core
Abstractions over external media tools, plus orientation classification
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List

from tubely.errors import ProbeError
from tubely.models.upload import StagedFile
from tubely.utils.logger import get_logger

logger = get_logger(__name__)


class Orientation(str, Enum):
    """Aspect ratio bucket, also the object key prefix"""
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


@dataclass
class StreamInfo:
    """Dimensions of one stream reported by the prober"""
    index: int
    codec_type: str
    width: int
    height: int


def classify_orientation(width: int, height: int) -> Orientation:
    """
    Classify exact 16:9 and 9:16 frames

    Uses integer division, so near-16:9 sizes such as 854x480 land in OTHER.
    """
    if width == 16 * height // 9:
        return Orientation.LANDSCAPE
    if height == 16 * width // 9:
        return Orientation.PORTRAIT
    return Orientation.OTHER


class MediaProber(ABC):
    """Abstract base class for stream inspectors"""

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"{__name__}.{name}")

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this prober can run on the system"""

    @abstractmethod
    def probe_streams(self, path: str) -> List[StreamInfo]:
        """Return every stream found in the container"""

    def probe(self, staged: StagedFile) -> Orientation:
        """Classify the first video stream of a staged file"""
        streams = [s for s in self.probe_streams(staged.path) if s.codec_type == "video"]
        if not streams:
            raise ProbeError(
                "No video streams found",
                error_code="NO_VIDEO_STREAM",
                details={"path": staged.path},
            )

        first = streams[0]
        if first.width <= 0 or first.height <= 0:
            raise ProbeError(
                f"Invalid stream dimensions {first.width}x{first.height}",
                error_code="INVALID_DIMENSIONS",
                details={"path": staged.path, "stream_index": first.index},
            )

        orientation = classify_orientation(first.width, first.height)
        self.logger.info(f"Stream {first.index} is {first.width}x{first.height} -> {orientation.value}")
        return orientation


class MediaRemuxer(ABC):
    """Abstract base class for fast-start remuxers"""

    def __init__(self, name: str):
        self.name = name
        self.logger = get_logger(f"{__name__}.{name}")

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this remuxer can run on the system"""

    @abstractmethod
    def remux(self, staged: StagedFile) -> StagedFile:
        """
        Write a fast-start copy of a staged file next to it

        The input file is left in place; cleanup belongs to the caller.
        """
