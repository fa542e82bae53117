"""
Media tooling package
Stream probing and fast-start remuxing behind swappable adapters
"""

from .core import (
    MediaProber,
    MediaRemuxer,
    Orientation,
    StreamInfo,
    classify_orientation,
)

from .ffmpeg_processor import FFmpegRemuxer, FFprobeProber

from tubely.config.base import Settings


def build_media_tools(settings: Settings):
    """Create the production prober and remuxer for the given settings"""
    prober = FFprobeProber(binary=settings.FFPROBE_PATH, timeout=settings.PROBE_TIMEOUT)
    remuxer = FFmpegRemuxer(binary=settings.FFMPEG_PATH, timeout=settings.REMUX_TIMEOUT)
    return prober, remuxer


__all__ = [
    'MediaProber',
    'MediaRemuxer',
    'Orientation',
    'StreamInfo',
    'classify_orientation',
    'FFprobeProber',
    'FFmpegRemuxer',
    'build_media_tools',
]
