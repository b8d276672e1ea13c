"""
Prompt Architect Media Module

Turns image and video files into encoded stills for analysis.
"""

from .preprocessor import (
    EncodedFrame,
    FFmpegFrameSampler,
    FrameSampler,
    MediaPayload,
    MediaPreprocessor,
    detect_media_kind,
    sample_timestamps,
)

__all__ = [
    "EncodedFrame",
    "FFmpegFrameSampler",
    "FrameSampler",
    "MediaPayload",
    "MediaPreprocessor",
    "detect_media_kind",
    "sample_timestamps",
]
