from typing import Optional
from shot_breakdown.config import settings
from shot_breakdown.exceptions import ReadError, ValidationError
from shot_breakdown.models.video import VideoBlob

def validate_upload(blob: VideoBlob, max_bytes: Optional[int] = None) -> None:
    """Reject files that are not videos or are larger than the upload limit."""
    limit = settings.max_upload_bytes if max_bytes is None else max_bytes
    if not (blob.mime_type or "").startswith("video/"):
        raise ValidationError(f"{blob.name} is not a video file (got {blob.mime_type or 'unknown type'})")
    try:
        size = blob.size
    except ReadError as e:
        raise ValidationError(str(e)) from e
    if size > limit:
        raise ValidationError(
            f"{blob.name} is {size / 1024 / 1024:.1f} MB; the limit is {limit / 1024 / 1024:.0f} MB"
        )
