import logging
from typing import Optional
from rich.logging import RichHandler
from shot_breakdown.config import settings

# transport loggers that log every Gemini request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "google_genai")

def setup_logger(name: str = "shot_breakdown", level: Optional[str] = None) -> logging.Logger:
    """Route records through rich and keep the Gemini SDK's transport chatter at WARNING."""
    level = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=level == "DEBUG", markup=False)]
    )
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    log = logging.getLogger(name)
    log.setLevel(level)
    return log

logger = setup_logger()
