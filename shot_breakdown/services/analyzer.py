import asyncio
import base64
import binascii
import json
import os
from typing import Any, List, Optional
from google import genai
from google.genai import errors, types
from jinja2 import Environment, FileSystemLoader
from pydantic import ValidationError as PydanticValidationError
from shot_breakdown.config import settings
from shot_breakdown.core.video import ShotAnalyzer
from shot_breakdown.exceptions import (
    AnalysisError,
    AnalysisTimeoutError,
    EmptyResponseError,
    EncodeError,
    RemoteError,
    SchemaViolationError,
)
from shot_breakdown.models.shot import Shot
from shot_breakdown.utils.logger import logger
from shot_breakdown.utils.retry import api_retry

PROMPTS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "prompts")

# (wire name, type, description) in the order the model should emit them
SHOT_FIELDS = [
    ("startTimeSeconds", types.Type.NUMBER, "Start time of the shot in seconds"),
    ("endTimeSeconds", types.Type.NUMBER, "End time of the shot in seconds"),
    ("startTimeFormatted", types.Type.STRING, "Start time formatted as MM:SS"),
    ("description", types.Type.STRING, "Detailed description of the action and content"),
    ("shotType", types.Type.STRING, "Cinematic shot type (e.g. Medium Shot, Close Up)"),
    ("cameraMovement", types.Type.STRING, "Camera movement technique"),
    ("mood", types.Type.STRING, "The emotional tone or atmosphere"),
    ("imagePrompt", types.Type.STRING, "A detailed prompt for generating a similar image"),
]

REQUIRED_FIELDS = [
    "startTimeSeconds",
    "endTimeSeconds",
    "description",
    "shotType",
    "cameraMovement",
    "mood",
    "imagePrompt",
]

def build_response_schema() -> types.Schema:
    return types.Schema(
        type=types.Type.ARRAY,
        items=types.Schema(
            type=types.Type.OBJECT,
            properties={
                name: types.Schema(type=kind, description=description)
                for name, kind, description in SHOT_FIELDS
            },
            required=REQUIRED_FIELDS,
        ),
    )

def _describe_errors(e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "shot"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)

def parse_shots(text: Optional[str]) -> List[Shot]:
    """Parse and validate a Gemini response body. All shots or an exception, never a subset."""
    if text is None or not text.strip():
        raise EmptyResponseError()
    body = text.strip()
    if body.startswith("```"):
        end_idx = body.rfind("```")
        if end_idx > 0:
            body = body[body.find("\n") + 1:end_idx].strip()
    try:
        data: Any = json.loads(body)
    except json.JSONDecodeError as e:
        raise SchemaViolationError(f"Gemini response is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise SchemaViolationError(f"Expected a JSON array of shots, got {type(data).__name__}")

    shots = []
    for i, item in enumerate(data):
        try:
            shots.append(Shot.model_validate(item))
        except PydanticValidationError as e:
            raise SchemaViolationError(f"Shot {i} does not match the schema ({_describe_errors(e)})") from e
    # stable: equal start times keep the model's order
    shots.sort(key=lambda s: s.start_time_seconds)
    return shots

class GeminiShotAnalyzer(ShotAnalyzer):
    def __init__(
        self,
        client: Optional[genai.Client] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        language: Optional[str] = None,
    ):
        self._client = client
        self.model = model or settings.GEMINI_MODEL
        self.timeout = timeout or settings.ANALYSIS_TIMEOUT
        self.language = language or settings.OUTPUT_LANG
        self.env = Environment(loader=FileSystemLoader(PROMPTS_DIR))
        self.template = self.env.get_template("shot_analysis.jinja2")

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not settings.GEMINI_API_KEY:
                raise RemoteError("GEMINI_API_KEY is not set. Add it to your environment or .env file.")
            self._client = genai.Client(api_key=settings.GEMINI_API_KEY)
        return self._client

    def build_prompt(self, mime_type: Optional[str] = None) -> str:
        return self.template.render(language=self.language, mime_type=mime_type)

    def build_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=build_response_schema(),
            temperature=settings.ANALYSIS_TEMPERATURE,
        )

    @api_retry()
    async def _call_model(self, contents: list, config: types.GenerateContentConfig) -> Optional[str]:
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.generate_content(model=self.model, contents=contents, config=config),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Gemini call exceeded {self.timeout:g}s")
            raise AnalysisTimeoutError(self.timeout) from e
        return response.text

    async def analyze(self, payload: str, mime_type: str) -> List[Shot]:
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodeError(f"Video payload is not valid base64: {e}") from e

        contents = [
            types.Part.from_bytes(data=raw, mime_type=mime_type),
            self.build_prompt(mime_type),
        ]
        logger.info(f"Sending {len(raw) / 1024 / 1024:.1f} MB {mime_type} to {self.model}...")
        try:
            text = await self._call_model(contents, self.build_config())
        except AnalysisError:
            raise
        except errors.APIError as e:
            logger.error(f"Gemini API error: {e}")
            raise RemoteError(e.message or str(e), code=e.code) from e
        except Exception as e:
            logger.error(f"Error calling Gemini API: {e}")
            raise RemoteError(str(e) or type(e).__name__) from e

        shots = parse_shots(text)
        logger.info(f"Gemini detected {len(shots)} shots.")
        return shots
