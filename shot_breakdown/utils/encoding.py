import base64
from shot_breakdown.exceptions import EncodeError, ReadError
from shot_breakdown.models.video import EncodedVideo, VideoBlob

def encode_video(blob: VideoBlob) -> EncodedVideo:
    """Read the whole blob once and return it as base64 text with its media type."""
    if not blob.mime_type:
        raise EncodeError(f"Video file {blob.name} has no media type")
    try:
        with open(blob.path, "rb") as f:
            raw = f.read()
    except OSError as e:
        raise ReadError(f"Failed to read video file {blob.name}: {e}") from e
    return EncodedVideo(data=base64.b64encode(raw).decode("ascii"), mime_type=blob.mime_type)
