import base64
import io
import subprocess
from typing import Optional
from PIL import Image, UnidentifiedImageError
from shot_breakdown.config import settings
from shot_breakdown.core.video import FrameCapturer
from shot_breakdown.exceptions import CaptureError, LoadError
from shot_breakdown.models.video import VideoBlob
from shot_breakdown.utils.logger import logger

class FrameExtractor(FrameCapturer):
    def __init__(
        self,
        ffmpeg_binary: Optional[str] = None,
        max_dimension: Optional[int] = None,
        quality: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.ffmpeg_binary = ffmpeg_binary or settings.FFMPEG_BINARY
        self.max_dimension = max_dimension or settings.FRAME_MAX_DIMENSION
        self.quality = quality or settings.FRAME_JPEG_QUALITY
        self.timeout = timeout or settings.FRAME_TIMEOUT

    def capture(self, blob: VideoBlob, timestamp: float) -> str:
        png = self._grab_frame(blob.path, timestamp)
        jpeg = self._render_thumbnail(png)
        b64 = base64.b64encode(jpeg).decode("ascii")
        return f"data:image/jpeg;base64,{b64}"

    def _grab_frame(self, video_path: str, timestamp: float) -> bytes:
        # No clamping: seeking past the end is left to ffmpeg and surfaces as "no frame".
        cmd = [
            self.ffmpeg_binary,
            "-v", "error",
            "-ss", str(timestamp),
            "-i", video_path,
            "-an",
            "-frames:v", "1",
            "-f", "image2pipe",
            "-vcodec", "png",
            "pipe:1"
        ]
        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=self.timeout)
        except FileNotFoundError as e:
            raise LoadError(f"ffmpeg not found ({self.ffmpeg_binary})") from e
        except subprocess.TimeoutExpired as e:
            raise LoadError(f"Timed out loading frame at {timestamp}s") from e
        if proc.returncode != 0:
            detail = proc.stderr.decode("utf-8", errors="replace").strip().splitlines()
            raise LoadError(f"Error loading video for frame capture at {timestamp}s: {detail[-1] if detail else proc.returncode}")
        if not proc.stdout:
            raise LoadError(f"No frame decoded at {timestamp}s")
        return proc.stdout

    def _render_thumbnail(self, png: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(png)) as img:
                frame = img.convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise CaptureError(f"Could not decode captured frame: {e}") from e
        width, height = frame.size
        if not width or not height:
            raise CaptureError("Captured frame has no pixels")
        scale = min(1.0, self.max_dimension / max(width, height))
        if scale < 1.0:
            frame = frame.resize((max(1, round(width * scale)), max(1, round(height * scale))), Image.Resampling.LANCZOS)
        out = io.BytesIO()
        try:
            frame.save(out, format="JPEG", quality=self.quality)
            logger.debug(f"Rendered {frame.width}x{frame.height} thumbnail ({out.tell()} bytes)")
        except OSError as e:
            raise CaptureError(f"Could not encode thumbnail: {e}") from e
        finally:
            frame.close()
        return out.getvalue()

frame_extractor = FrameExtractor()
