from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
from google.genai import errors
from shot_breakdown.config import settings
from shot_breakdown.exceptions import AnalysisTimeoutError

def api_retry():
    # ANALYSIS_MAX_ATTEMPTS defaults to 1, i.e. a single attempt
    return retry(
        stop=stop_after_attempt(max(1, settings.ANALYSIS_MAX_ATTEMPTS)),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((
            errors.ServerError,
            AnalysisTimeoutError
        )),
        reraise=True
    )
