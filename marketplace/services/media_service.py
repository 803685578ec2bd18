"""
Media ingestion helpers: upload validation, ffprobe metadata and OpenCV thumbnails.
"""
import asyncio
import json
import logging
import subprocess
from dataclasses import dataclass
from math import gcd
from pathlib import Path
from typing import Optional, Sequence

import cv2

from marketplace.core.config import Settings
from marketplace.core.exceptions import MediaProcessingException, ValidationException

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0


@dataclass
class VideoMetadata:
    """Technical properties of a probed video file."""
    duration: float
    width: int
    height: int
    fps: float
    bitrate: int
    codec: Optional[str]
    size: int

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def aspect_ratio(self) -> str:
        if not self.width or not self.height:
            return "unknown"
        divisor = gcd(self.width, self.height)
        return f"{self.width // divisor}:{self.height // divisor}"


def validate_video_file(
    filename: Optional[str],
    content_type: Optional[str],
    size: Optional[int],
    max_size: int,
    allowed_formats: Sequence[str],
) -> None:
    """
    Check an uploaded file against the size limit, extension allow-list and MIME type.

    Raises:
        ValidationException: With a message naming the failed check
    """
    if not filename:
        raise ValidationException("Video file is required")

    if size is not None and size > max_size:
        raise ValidationException(f"File too large. Maximum size is {max_size // (1024 * 1024)}MB")

    extension = Path(filename).suffix.lower().lstrip(".")
    if extension not in {fmt.lower() for fmt in allowed_formats}:
        raise ValidationException(
            f"Unsupported format. Allowed formats: {', '.join(allowed_formats)}"
        )

    if not content_type or not content_type.startswith("video/"):
        raise ValidationException("Invalid file type. Please upload a video file")


def _parse_frame_rate(value: Optional[str]) -> float:
    """Parse ffprobe's "30000/1001" style rate; DEFAULT_FPS when absent or zero."""
    if not value:
        return DEFAULT_FPS
    try:
        if "/" in value:
            num, den = value.split("/", 1)
            fps = float(num) / float(den)
        else:
            fps = float(value)
    except (ValueError, ZeroDivisionError):
        return DEFAULT_FPS
    return round(fps, 3) if fps > 0 else DEFAULT_FPS


def probe_video(path: Path, timeout: int = 60) -> VideoMetadata:
    """
    Read duration, dimensions, frame rate, bitrate and codec with ffprobe.

    Raises:
        MediaProcessingException: If ffprobe fails or finds no video stream
    """
    try:
        result = subprocess.run(
            [
                "ffprobe",
                "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                str(path),
            ],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise MediaProcessingException("probe", f"ffprobe timed out after {timeout}s") from e
    except OSError as e:
        raise MediaProcessingException("probe", f"ffprobe could not run: {e}") from e

    if result.returncode != 0:
        raise MediaProcessingException("probe", result.stderr.strip() or f"ffprobe exit code {result.returncode}")

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise MediaProcessingException("probe", f"Unreadable ffprobe output: {e}") from e

    video_stream = next(
        (stream for stream in data.get("streams", []) if stream.get("codec_type") == "video"),
        None,
    )
    if video_stream is None:
        raise MediaProcessingException("probe", "No video stream found")

    format_data = data.get("format", {})
    metadata = VideoMetadata(
        duration=float(format_data.get("duration") or video_stream.get("duration") or 0.0),
        width=int(video_stream.get("width") or 0),
        height=int(video_stream.get("height") or 0),
        fps=_parse_frame_rate(video_stream.get("r_frame_rate")),
        bitrate=int(format_data.get("bit_rate") or 0),
        codec=video_stream.get("codec_name"),
        size=int(format_data.get("size") or 0),
    )
    logger.info(
        f"Metadata extracted: duration={metadata.duration}s, codec={metadata.codec}, "
        f"resolution={metadata.resolution}, fps={metadata.fps}"
    )
    return metadata


def extract_thumbnail(
    video_path: Path,
    output_path: Path,
    offset_seconds: float = 2.0,
    width: int = 1280,
    height: int = 720,
    jpeg_quality: int = 85,
) -> Path:
    """
    Grab the frame at offset_seconds and write it as a resized JPEG.

    Videos shorter than the offset fall back to their first frame.

    Raises:
        MediaProcessingException: If the video cannot be read or the image written
    """
    cap = cv2.VideoCapture(str(video_path))
    try:
        if not cap.isOpened():
            raise MediaProcessingException("thumbnail", f"Could not open video file: {video_path.name}")

        fps = cap.get(cv2.CAP_PROP_FPS)
        frame_count = cap.get(cv2.CAP_PROP_FRAME_COUNT)
        frame_number = int(offset_seconds * fps) if fps > 0 else 0
        if frame_count and frame_number >= frame_count:
            frame_number = 0

        cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number)
        ret, frame = cap.read()
        if not ret or frame is None:
            raise MediaProcessingException("thumbnail", f"Could not read frame {frame_number}")

        try:
            frame_resized = cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)
            written = cv2.imwrite(str(output_path), frame_resized, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
        except cv2.error as e:
            raise MediaProcessingException("thumbnail", f"OpenCV failed on frame {frame_number}: {e}") from e
        if not written:
            raise MediaProcessingException("thumbnail", f"Could not save thumbnail to {output_path.name}")
    finally:
        cap.release()

    logger.info(f"Generated thumbnail: {output_path}")
    return output_path


class MediaService:
    """Async facade over the blocking probe and thumbnail helpers."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def validate(self, filename: Optional[str], content_type: Optional[str], size: Optional[int]) -> None:
        validate_video_file(
            filename,
            content_type,
            size,
            max_size=self.settings.max_upload_size_bytes,
            allowed_formats=self.settings.allowed_video_formats,
        )

    async def probe(self, path: Path) -> VideoMetadata:
        return await asyncio.to_thread(probe_video, path, self.settings.ffprobe_timeout_seconds)

    async def thumbnail(self, video_path: Path, output_path: Path) -> Path:
        return await asyncio.to_thread(
            extract_thumbnail,
            video_path,
            output_path,
            self.settings.thumbnail_time_offset,
            self.settings.thumbnail_width,
            self.settings.thumbnail_height,
            self.settings.thumbnail_jpeg_quality,
        )
