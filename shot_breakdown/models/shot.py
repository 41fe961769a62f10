from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

def format_time(seconds: float) -> str:
    m, s = divmod(int(seconds), 60)
    return f"{m:02d}:{s:02d}"

class Shot(BaseModel):
    """One continuous camera take, as segmented by the analysis model."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    start_time_seconds: float = Field(ge=0)
    end_time_seconds: float
    start_time_formatted: Optional[str] = None  # display only, never used for seeking
    description: str = Field(min_length=1)
    shot_type: str = Field(min_length=1)
    camera_movement: str = Field(min_length=1)
    mood: str = Field(min_length=1)
    image_prompt: str = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _fill_formatted_start(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("startTimeFormatted") or data.get("start_time_formatted"):
            return data
        start = data.get("startTimeSeconds", data.get("start_time_seconds"))
        if isinstance(start, (int, float)) and start >= 0:
            data = {**data, "startTimeFormatted": format_time(start)}
        return data

    @model_validator(mode="after")
    def _check_times(self) -> "Shot":
        if self.end_time_seconds <= self.start_time_seconds:
            raise ValueError(
                f"endTimeSeconds ({self.end_time_seconds}) must be greater than "
                f"startTimeSeconds ({self.start_time_seconds})"
            )
        return self

    @property
    def duration(self) -> float:
        return self.end_time_seconds - self.start_time_seconds

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
