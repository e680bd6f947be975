"""
Pitch video compression with ffmpeg.

Output is a single MP4 (H.264 + AAC 128k, faststart) scaled down to fit the
profile's bounding box; the input is never upscaled. Compression works on
temporary files and leaves the caller's bytes untouched.
"""
from __future__ import annotations

import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .config import settings
from .exceptions import EncodingFailureError
from .logger import logger

AUDIO_BITRATE = "128k"


@dataclass(frozen=True)
class CompressionOptions:
    crf: int = 28
    preset: str = "medium"
    max_width: int = 1280
    max_height: int = 720
    audio_bitrate: str = AUDIO_BITRATE


DEFAULT_PROFILE = CompressionOptions()
FAST_PROFILE = CompressionOptions(crf=32, preset="fast", max_width=854, max_height=480)
PROFILES = {"default": DEFAULT_PROFILE, "fast": FAST_PROFILE}


@dataclass(frozen=True)
class CompressionResult:
    data: bytes
    input_size: int
    output_size: int

    @property
    def reduction(self) -> float:
        """Size reduction ratio, (input - output) / input."""
        return (self.input_size - self.output_size) / self.input_size


def build_ffmpeg_args(input_path: Path, output_path: Path, options: CompressionOptions) -> List[str]:
    scale = (
        f"scale='min({options.max_width},iw)':'min({options.max_height},ih)'"
        ":force_original_aspect_ratio=decrease"
        # libx264 needs even dimensions
        ",scale=trunc(iw/2)*2:trunc(ih/2)*2"
    )
    return [
        settings.FFMPEG_BINARY,
        "-hide_banner",
        "-loglevel", "error",
        "-i", str(input_path),
        "-c:v", "libx264",
        "-crf", str(options.crf),
        "-preset", options.preset,
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", options.audio_bitrate,
        "-movflags", "+faststart",
        "-vf", scale,
        "-f", "mp4",
        "-y",
        str(output_path),
    ]


def compress(raw: bytes, options: CompressionOptions = DEFAULT_PROFILE) -> CompressionResult:
    """
    Compress raw video bytes.

    Raises EncodingFailureError when ffmpeg is missing, fails, times out or
    produces nothing. The original bytes stay valid and can be uploaded as-is.
    """
    if not raw:
        raise EncodingFailureError("Cannot compress empty input")

    with tempfile.TemporaryDirectory(prefix="pitchpipe-") as tmp:
        input_path = Path(tmp) / "input"
        output_path = Path(tmp) / "output.mp4"
        input_path.write_bytes(raw)

        args = build_ffmpeg_args(input_path, output_path, options)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=settings.COMPRESSION_TIMEOUT_SECONDS,
            )
        except FileNotFoundError:
            raise EncodingFailureError(f"ffmpeg binary not found: {settings.FFMPEG_BINARY}")
        except subprocess.TimeoutExpired:
            raise EncodingFailureError(
                f"ffmpeg timed out after {settings.COMPRESSION_TIMEOUT_SECONDS}s"
            )

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise EncodingFailureError(f"ffmpeg failed (rc={result.returncode}): {stderr[:300]}")

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise EncodingFailureError("ffmpeg produced no output")

        data = output_path.read_bytes()

    compressed = CompressionResult(data=data, input_size=len(raw), output_size=len(data))
    logger.info(
        f"Compression finished: {compressed.input_size} -> {compressed.output_size} bytes",
        extra={
            "crf": options.crf,
            "preset": options.preset,
            "input_size": compressed.input_size,
            "output_size": compressed.output_size,
            "reduction": round(compressed.reduction, 4),
        }
    )
    return compressed


def quick_compress(raw: bytes) -> CompressionResult:
    return compress(raw, FAST_PROFILE)
