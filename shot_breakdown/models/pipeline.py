from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from shot_breakdown.models.shot import Shot

class PipelineStage(str, Enum):
    IDLE = "IDLE"
    PROCESSING_VIDEO = "PROCESSING_VIDEO"  # encoding the upload
    ANALYZING = "ANALYZING"  # waiting for Gemini
    EXTRACTING_FRAMES = "EXTRACTING_FRAMES"  # capturing thumbnails
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

ACTIVE_STAGES = (PipelineStage.PROCESSING_VIDEO, PipelineStage.ANALYZING, PipelineStage.EXTRACTING_FRAMES)

STAGE_LABELS = {
    PipelineStage.PROCESSING_VIDEO: "Step 1 of 3",
    PipelineStage.ANALYZING: "Step 2 of 3",
    PipelineStage.EXTRACTING_FRAMES: "Step 3 of 3",
}

class PipelineSnapshot(BaseModel):
    """Immutable view of one pipeline run, pushed to listeners after every change."""
    model_config = ConfigDict(frozen=True)

    run_id: int = 0
    stage: PipelineStage = PipelineStage.IDLE
    message: str = ""
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    error_message: Optional[str] = None
    shots: Tuple[Shot, ...] = ()
    # None until a validated shot list exists
    thumbnails: Optional[Dict[int, str]] = None
    failed_frames: FrozenSet[int] = frozenset()
    video_name: Optional[str] = None
    video_size: Optional[int] = None

    @property
    def stage_label(self) -> str:
        return STAGE_LABELS.get(self.stage, "")

    @property
    def is_active(self) -> bool:
        return self.stage in ACTIVE_STAGES

    @property
    def frames_settled(self) -> int:
        return len(self.thumbnails or {}) + len(self.failed_frames)

    def thumbnail_for(self, index: int) -> Optional[str]:
        return (self.thumbnails or {}).get(index)
