"""
Prompt Architect Media Preprocessor

Converts an uploaded file into analyzable form: one JPEG still for images,
or three time-ordered JPEG stills sampled from a video.
"""

import asyncio
import base64
import io
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union

from PIL import Image, UnidentifiedImageError

from prompt_architect.core.config import MediaConfig
from prompt_architect.core.constants import JPEG_MIME_TYPE, VIDEO_FRAME_COUNT, MediaKind
from prompt_architect.core.exceptions import (
    FrameExtractionError,
    MediaLoadError,
    MediaTimeoutError,
    UnsupportedMediaError,
)
from prompt_architect.core.logging_config import get_logger

logger = get_logger("media.preprocessor")


@dataclass(frozen=True)
class EncodedFrame:
    """A single encoded still."""
    data: bytes
    mime_type: str = JPEG_MIME_TYPE
    timestamp: Optional[float] = None

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class MediaPayload:
    """Encoded still image, or ordered stills sampled from a video."""
    kind: MediaKind
    frames: Tuple[EncodedFrame, ...]
    source: str = ""

    def __post_init__(self):
        if not self.frames:
            raise ValueError("MediaPayload requires at least one frame")
        if self.kind == MediaKind.VIDEO and len(self.frames) != VIDEO_FRAME_COUNT:
            raise ValueError(f"Video payload requires {VIDEO_FRAME_COUNT} frames, got {len(self.frames)}")

    @property
    def is_video(self) -> bool:
        return self.kind == MediaKind.VIDEO

    @classmethod
    def from_image_bytes(cls, data: bytes, source: str = "",
                         mime_type: str = JPEG_MIME_TYPE) -> 'MediaPayload':
        """Wrap already-encoded image bytes without re-encoding."""
        return cls(kind=MediaKind.IMAGE, frames=(EncodedFrame(data, mime_type),), source=source)


def detect_media_kind(path: Union[str, Path], mime_type: Optional[str] = None) -> MediaKind:
    """Anything declared as video/* is a video; every other file is an image."""
    mime_type = mime_type or mimetypes.guess_type(str(path))[0] or ""
    return MediaKind.VIDEO if mime_type.startswith("video/") else MediaKind.IMAGE


def sample_timestamps(duration: float, start_offset: float = 0.1,
                      end_offset: float = 0.1) -> Tuple[float, float, float]:
    """
    Target timestamps for video sampling: start, middle and near-end.

    Each timestamp is clamped into [0, duration], so the result is always
    three ascending values even for clips shorter than the offsets.
    """
    duration = max(0.0, float(duration))
    targets = (start_offset, duration / 2, duration - end_offset)
    clamped = [min(max(t, 0.0), duration) for t in targets]
    return tuple(sorted(clamped))


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    """Encode a Pillow image as JPEG, flattening alpha and palettes."""
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class FrameSampler(Protocol):
    """Black-box video sampler: reports duration and captures single stills."""

    async def duration(self, path: Path) -> float:
        ...

    async def capture(self, path: Path, timestamp: float) -> bytes:
        ...


class FFmpegFrameSampler:
    """Frame sampler backed by the ffprobe and ffmpeg binaries."""

    def __init__(self, ffmpeg_binary: str = "ffmpeg", ffprobe_binary: str = "ffprobe"):
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary

    async def _run(self, cmd: list, path: Path) -> Tuple[int, bytes, bytes]:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise MediaLoadError(str(path), f"{cmd[0]} is not installed")
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise
        return process.returncode, stdout, stderr

    async def duration(self, path: Path) -> float:
        cmd = [
            self.ffprobe_binary,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        returncode, stdout, stderr = await self._run(cmd, path)
        if returncode != 0:
            raise MediaLoadError(str(path), stderr.decode("utf-8", errors="ignore").strip())
        try:
            return float(stdout.decode("utf-8").strip())
        except ValueError:
            raise MediaLoadError(str(path), "video duration is unknown")

    async def capture(self, path: Path, timestamp: float) -> bytes:
        cmd = [
            self.ffmpeg_binary,
            "-v", "error",
            "-ss", f"{timestamp:.3f}",
            "-i", str(path),
            "-frames:v", "1",
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "-",
        ]
        returncode, stdout, stderr = await self._run(cmd, path)
        if returncode != 0 or not stdout:
            reason = stderr.decode("utf-8", errors="ignore").strip() or "no frame decoded"
            raise FrameExtractionError(str(path), timestamp, reason)
        return stdout


class MediaPreprocessor:
    """
    Produces a MediaPayload from an image or video file.

    Every sampler call is bounded by MediaConfig.load_timeout so a video that
    never becomes seekable fails with MediaTimeoutError instead of stalling.
    """

    def __init__(self, config: MediaConfig = None, sampler: FrameSampler = None):
        self.config = config or MediaConfig()
        self.sampler = sampler or FFmpegFrameSampler(
            self.config.ffmpeg_binary, self.config.ffprobe_binary
        )

    async def prepare(
        self,
        path: Union[str, Path],
        kind: Optional[MediaKind] = None
    ) -> MediaPayload:
        """
        Prepare a file for analysis.

        Args:
            path: File to ingest
            kind: Declared media kind; detected from the file type when omitted

        Returns:
            MediaPayload with one frame (image) or three frames (video)
        """
        path = Path(path)
        if not path.is_file():
            raise MediaLoadError(str(path), "file not found")

        kind = kind or detect_media_kind(path)
        if kind == MediaKind.IMAGE:
            return await asyncio.to_thread(self._prepare_image, path)
        if kind == MediaKind.VIDEO:
            return await self._prepare_video(path)
        raise UnsupportedMediaError(f"Unsupported media kind: {kind}")

    def _prepare_image(self, path: Path) -> MediaPayload:
        try:
            with Image.open(path) as image:
                data = encode_jpeg(image, self.config.jpeg_quality)
        except (UnidentifiedImageError, OSError) as e:
            raise MediaLoadError(str(path), str(e))

        logger.info(f"Ingested image {path.name} ({len(data)} bytes)")
        return MediaPayload(kind=MediaKind.IMAGE, frames=(EncodedFrame(data),), source=str(path))

    async def _prepare_video(self, path: Path) -> MediaPayload:
        duration = await self._bounded(self.sampler.duration(path), path)
        timestamps = sample_timestamps(duration, self.config.start_offset, self.config.end_offset)
        logger.debug(f"Sampling {path.name} (duration {duration:.2f}s) at {timestamps}")

        frames = []
        for timestamp in timestamps:
            raw = await self._bounded(self.sampler.capture(path, timestamp), path)
            data = await asyncio.to_thread(self._normalize_frame, raw, path, timestamp)
            frames.append(EncodedFrame(data, timestamp=timestamp))

        logger.info(f"Ingested video {path.name}: {len(frames)} frames")
        return MediaPayload(kind=MediaKind.VIDEO, frames=tuple(frames), source=str(path))

    def _normalize_frame(self, raw: bytes, path: Path, timestamp: float) -> bytes:
        try:
            with Image.open(io.BytesIO(raw)) as image:
                return encode_jpeg(image, self.config.jpeg_quality)
        except (UnidentifiedImageError, OSError) as e:
            raise FrameExtractionError(str(path), timestamp, str(e))

    async def _bounded(self, awaitable, path: Path):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.config.load_timeout)
        except asyncio.TimeoutError:
            raise MediaTimeoutError(str(path), self.config.load_timeout)
