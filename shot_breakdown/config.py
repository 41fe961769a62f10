from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Gemini Configuration
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    ANALYSIS_TEMPERATURE: Optional[float] = None
    ANALYSIS_TIMEOUT: float = 300.0
    ANALYSIS_MAX_ATTEMPTS: int = 1

    # Language Settings
    OUTPUT_LANG: str = "English"

    # System Settings
    LOG_LEVEL: str = "INFO"
    MAX_UPLOAD_MB: float = 20.0

    # Frame Extraction
    FFMPEG_BINARY: str = "ffmpeg"
    FRAME_CONCURRENCY: int = 4
    FRAME_STAGGER_SECONDS: float = 0.2
    FRAME_TIMEOUT: float = 30.0
    FRAME_MAX_DIMENSION: int = 640
    FRAME_JPEG_QUALITY: int = 70

    # Progress
    PROGRESS_TICK_SECONDS: float = 0.4

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def max_upload_bytes(self) -> int:
        return int(self.MAX_UPLOAD_MB * 1024 * 1024)

settings = Settings()
