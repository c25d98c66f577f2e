"""
Media preparation before upload: image compression, audio cropping and
waveform extraction for the cropper preview.
"""
import io
import json
import os
import shutil
import subprocess
import tempfile
import uuid
from typing import List, Optional

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from rumori.backend import run_in_thread
from rumori.config import Settings, get_settings
from rumori.exceptions import MediaProcessingError, ValidationError
from rumori.logger import get_logger

logger = get_logger("media_service")

SAMPLE_RATE = 44100
INITIAL_JPEG_QUALITY = 80
MIN_JPEG_QUALITY = 10
JPEG_QUALITY_STEP = 10
WAVEFORM_POINTS = 1000


def compress_image(image_data: bytes, max_size_mb: float = 1.0) -> bytes:
    """
    Re-encode an image as JPEG, lowering quality until it fits.

    Quality starts at 80 and drops by 10 while the result is larger than
    ``max_size_mb``; the last attempt is returned even if still too large.
    """
    try:
        image = Image.open(io.BytesIO(image_data))
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError) as e:
        raise MediaProcessingError("Failed to read image", str(e)) from e

    if image.mode in ("RGBA", "LA", "P"):
        image = image.convert("RGBA")
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        image = background
    elif image.mode != "RGB":
        image = image.convert("RGB")

    max_bytes = max_size_mb * 1024 * 1024
    quality = INITIAL_JPEG_QUALITY
    while True:
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality, optimize=True)
        compressed = buffer.getvalue()
        if len(compressed) <= max_bytes or quality <= MIN_JPEG_QUALITY:
            break
        quality -= JPEG_QUALITY_STEP

    logger.debug(f"Compressed image {len(image_data)} -> {len(compressed)} bytes at quality {quality}")
    return compressed


def downsample_waveform(samples: np.ndarray, target_points: int = WAVEFORM_POINTS) -> np.ndarray:
    """Reduce samples to roughly ``target_points`` by taking each chunk's peak."""
    samples = np.asarray(samples, dtype=np.float32)
    if samples.size == 0:
        return samples
    factor = max(1, samples.size // target_points)
    return np.maximum.reduceat(samples, np.arange(0, samples.size, factor))


class MediaService:
    """Image and audio preparation, shelling out to ffmpeg for audio."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._ffmpeg_checked = False

    def _verify_ffmpeg(self) -> None:
        """Verify that ffmpeg and ffprobe are available."""
        if self._ffmpeg_checked:
            return
        for tool in ("ffmpeg", "ffprobe"):
            if shutil.which(tool) is None:
                logger.error(f"{tool} not found on PATH")
                raise MediaProcessingError(f"{tool} not available")
        self._ffmpeg_checked = True

    def _run(self, cmd: List[str], operation: str, text: bool = True) -> subprocess.CompletedProcess:
        logger.debug(f"Running {operation}: {' '.join(cmd)}")
        try:
            return subprocess.run(cmd, capture_output=True, text=text, timeout=120, check=True)
        except subprocess.CalledProcessError as e:
            logger.error(f"{cmd[0]} failed for {operation}: {e.stderr}")
            raise MediaProcessingError(f"Audio processing failed for {operation}", str(e.stderr)) from e
        except subprocess.TimeoutExpired as e:
            logger.error(f"{cmd[0]} timeout for {operation}")
            raise MediaProcessingError(f"Audio processing timeout for {operation}") from e

    async def compress_image(self, image_data: bytes, max_size_mb: Optional[float] = None) -> bytes:
        return await run_in_thread(
            compress_image, image_data, max_size_mb or self.settings.max_image_size_mb
        )

    def _probe_duration(self, path: str) -> float:
        self._verify_ffmpeg()
        result = self._run(
            ["ffprobe", "-v", "quiet", "-print_format", "json", "-show_format", path],
            "duration probe",
        )
        try:
            return float(json.loads(result.stdout)["format"]["duration"])
        except (ValueError, KeyError, TypeError) as e:
            raise MediaProcessingError("Failed to read audio duration", str(e)) from e

    async def get_audio_duration(self, path: str) -> float:
        return await run_in_thread(self._probe_duration, path)

    def _crop(self, path: str, start: float, end: float) -> str:
        duration = self._probe_duration(path)
        if not (0 <= start < end <= duration):
            raise ValidationError(
                f"Invalid time range {start:.2f}-{end:.2f} for audio of {duration:.2f}s"
            )
        output_path = os.path.join(tempfile.gettempdir(), f"{uuid.uuid4()}.m4a")
        self._run([
            "ffmpeg",
            "-ss", f"{start:.3f}",
            "-i", path,
            "-t", f"{end - start:.3f}",
            "-vn",
            "-c:a", "aac",
            "-b:a", "256k",
            "-y",
            output_path,
        ], "audio crop")
        logger.info(f"Cropped {path} [{start:.2f}s-{end:.2f}s] to {output_path}")
        return output_path

    async def crop_audio(self, path: str, start: float, end: float) -> str:
        """Cut ``[start, end)`` seconds into a new temporary ``.m4a`` file."""
        return await run_in_thread(self._crop, path, start, end)

    def default_crop_window(self, duration: float) -> tuple:
        """Initial selection of the cropper: the first segment of the track."""
        return 0.0, min(self.settings.audio_segment_seconds, duration)

    def _decode_samples(self, path: str) -> np.ndarray:
        self._verify_ffmpeg()
        result = self._run([
            "ffmpeg", "-v", "quiet",
            "-i", path,
            "-f", "s16le",
            "-ac", "1",
            "-ar", str(SAMPLE_RATE),
            "-",
        ], "waveform decode", text=False)
        samples = np.frombuffer(result.stdout, dtype="<i2").astype(np.float32)
        return samples / np.iinfo(np.int16).max

    async def load_waveform(self, path: str, target_points: int = WAVEFORM_POINTS) -> np.ndarray:
        """Mono peaks normalised to [-1, 1], downsampled for display."""
        samples = await run_in_thread(self._decode_samples, path)
        return downsample_waveform(samples, target_points)
