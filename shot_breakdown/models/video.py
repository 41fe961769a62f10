import mimetypes
import os
from typing import Optional
from pydantic import BaseModel, ConfigDict
from shot_breakdown.exceptions import ReadError

class VideoBlob(BaseModel):
    """A user-provided video file with its declared media type."""
    model_config = ConfigDict(frozen=True)

    path: str
    mime_type: str
    name: str

    @classmethod
    def from_path(cls, path: str, mime_type: Optional[str] = None) -> "VideoBlob":
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path)
        return cls(path=path, mime_type=mime_type or "application/octet-stream", name=os.path.basename(path))

    @property
    def size(self) -> int:
        try:
            return os.path.getsize(self.path)
        except OSError as e:
            raise ReadError(f"Cannot read video file {self.name}: {e}") from e

class EncodedVideo(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: str  # base64 text
    mime_type: str
