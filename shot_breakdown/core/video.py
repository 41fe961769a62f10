from abc import ABC, abstractmethod
from typing import List
from shot_breakdown.models.shot import Shot
from shot_breakdown.models.video import VideoBlob

class ShotAnalyzer(ABC):
    @abstractmethod
    async def analyze(self, payload: str, mime_type: str) -> List[Shot]:
        """Segment a base64 video payload into an ordered list of shots."""
        pass

class FrameCapturer(ABC):
    @abstractmethod
    def capture(self, blob: VideoBlob, timestamp: float) -> str:
        """Return a still of the frame at `timestamp` as a data URL."""
        pass
