import asyncio
import threading
from typing import Iterable, List, Optional

import pytest

from shot_breakdown.core.video import FrameCapturer, ShotAnalyzer
from shot_breakdown.exceptions import LoadError
from shot_breakdown.models.shot import Shot
from shot_breakdown.models.video import VideoBlob


def make_shot(start: float, end: Optional[float] = None, **overrides) -> Shot:
    fields = dict(
        start_time_seconds=start,
        end_time_seconds=end if end is not None else start + 2.0,
        description=f"Shot starting at {start}s",
        shot_type="Wide shot",
        camera_movement="Static",
        mood="Calm",
        image_prompt="A quiet harbor at dawn, soft golden light, teal and orange grade, static wide frame",
    )
    fields.update(overrides)
    return Shot(**fields)


def make_shots(count: int) -> List[Shot]:
    return [make_shot(i * 2.0) for i in range(count)]


class FakeAnalyzer(ShotAnalyzer):
    def __init__(self, shots: Iterable[Shot] = (), exc: Optional[Exception] = None, delay: float = 0.0):
        self.shots = list(shots)
        self.exc = exc
        self.delay = delay
        self.calls = []

    async def analyze(self, payload, mime_type):
        self.calls.append((payload, mime_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return list(self.shots)


class FakeExtractor(FrameCapturer):
    """Thumbnail is derived from the timestamp; listed timestamps fail with LoadError."""

    def __init__(self, fail_at: Iterable[float] = (), gate: Optional[threading.Event] = None):
        self.fail_at = set(fail_at)
        self.gate = gate
        self.calls = []
        self._lock = threading.Lock()

    def capture(self, blob, timestamp):
        if self.gate is not None:
            self.gate.wait(5)
        with self._lock:
            self.calls.append(timestamp)
        if timestamp in self.fail_at:
            raise LoadError("Error loading video for frame capture")
        return f"data:image/jpeg;base64,frame-{timestamp}"


@pytest.fixture
def video_blob(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 2048)
    return VideoBlob.from_path(str(path))


@pytest.fixture
def text_blob(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("not a video")
    return VideoBlob.from_path(str(path))
