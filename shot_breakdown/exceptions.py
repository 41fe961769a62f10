"""Exception hierarchy for shot_breakdown."""

from typing import Optional


class ShotBreakdownError(Exception):
    """Base exception for shot_breakdown."""
    pass


class ValidationError(ShotBreakdownError):
    """Uploaded file rejected before entering the pipeline (type or size)."""
    pass


class PipelineBusyError(ShotBreakdownError):
    """A run was submitted while the pipeline was not idle."""
    pass


class EncodingError(ShotBreakdownError):
    """Base exception for video encoding failures."""
    pass


class ReadError(EncodingError):
    """The video byte stream could not be read."""
    pass


class EncodeError(EncodingError):
    """The video could not be turned into a transmittable payload."""
    pass


class AnalysisError(ShotBreakdownError):
    """Base exception for remote shot analysis failures."""
    pass


class EmptyResponseError(AnalysisError):
    """The model returned no response body."""

    def __init__(self, message: str = "No response from Gemini"):
        super().__init__(message)


class SchemaViolationError(AnalysisError):
    """The response body did not match the shot schema."""
    pass


class RemoteError(AnalysisError):
    """Transport or provider-side failure."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class AnalysisTimeoutError(RemoteError):
    """The remote call did not answer within the configured timeout."""

    def __init__(self, timeout: float):
        super().__init__(f"Gemini did not respond within {timeout:g}s")
        self.timeout = timeout


class FrameExtractionError(ShotBreakdownError):
    """Base exception for thumbnail capture failures."""
    pass


class LoadError(FrameExtractionError):
    """The video could not be opened or decoded at the requested time."""
    pass


class CaptureError(FrameExtractionError):
    """The decoded frame could not be rendered into a still image."""
    pass
