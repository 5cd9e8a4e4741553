# config.py

import os
from typing import Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from schema_models import DifficultyGuideline, PointRange

load_dotenv()

# --- helpers ---
def _get_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")

def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default

def _get_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default

def _get_optional_int(name: str) -> Optional[int]:
    v = os.getenv(name)
    if v is None or not v.strip():
        return None
    try:
        return int(v)
    except ValueError:
        return None

# --- Auth ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
DEEPSEEK_API_KEY = os.getenv("DEEPSEEK_API_KEY", "")  # optional; enables STEM routing

# --- Models ---
MODEL_OPENAI = os.getenv("MODEL_OPENAI", "gpt-4o-mini")
MODEL_DEEPSEEK = os.getenv("MODEL_DEEPSEEK", "deepseek-chat")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
DEEPSEEK_BASE_URL = os.getenv("DEEPSEEK_BASE_URL", "https://api.deepseek.com/beta")

# --- Limits ---
MAX_CONTENT_LENGTH = _get_int("MAX_CONTENT_LENGTH", 75_000)  # admission cap on source text
MAX_CHUNK_SIZE     = _get_int("MAX_CHUNK_SIZE", 12_000)      # chars per chunk

# --- Sampling / output budget ---
QUIZ_TEMPERATURE       = _get_float("QUIZ_TEMPERATURE", 0.3)
QUIZ_MAX_OUTPUT_TOKENS = _get_int("QUIZ_MAX_OUTPUT_TOKENS", 2000)
STEM_MAX_OUTPUT_TOKENS = _get_int("STEM_MAX_OUTPUT_TOKENS", 4000)  # LaTeX + worked steps run long

# --- Client-side timeout / retry controls ---
REQUEST_TIMEOUT_SECONDS = _get_float("REQUEST_TIMEOUT_SECONDS", 60.0)
BACKEND_MAX_ATTEMPTS    = _get_int("BACKEND_MAX_ATTEMPTS", 3)  # transport errors only

# --- Chunk failure policy: fail_fast | best_effort ---
FAILURE_POLICY    = os.getenv("FAILURE_POLICY", "fail_fast").strip().lower()
MIN_SUCCESS_RATIO = _get_float("MIN_SUCCESS_RATIO", 0.5)

# --- Option shuffling (unset = fresh randomness per run) ---
SHUFFLE_SEED = _get_optional_int("SHUFFLE_SEED")

# --- Logging ---
LOG_LEVEL     = os.getenv("LOG_LEVEL", "INFO")
LOG_TIMESTAMP = _get_bool("LOG_TIMESTAMP", False)

# --- Difficulty guidelines (read-only) ---
DIFFICULTY_GUIDELINES: Dict[str, DifficultyGuideline] = {
    "middle_school": DifficultyGuideline(
        complexity="basic concepts and definitions",
        language="simple and clear language",
        points=PointRange(min=1, max=2),
    ),
    "high_school": DifficultyGuideline(
        complexity="intermediate concepts and basic applications",
        language="straightforward academic language",
        points=PointRange(min=2, max=3),
    ),
    "university": DifficultyGuideline(
        complexity="advanced concepts and practical applications",
        language="technical academic language",
        points=PointRange(min=3, max=4),
    ),
    "post_graduate": DifficultyGuideline(
        complexity="expert-level concepts and complex analysis",
        language="sophisticated technical language",
        points=PointRange(min=4, max=5),
    ),
}


class PipelineConfig(BaseModel):
    """
    Immutable settings for one pipeline run.

    The module-level constants above only provide defaults; callers pass a
    PipelineConfig explicitly and override per call with
    ``config.model_copy(update={...})``.
    """
    model_config = ConfigDict(frozen=True)

    openai_api_key: str = ""
    deepseek_api_key: str = ""
    openai_model: str = MODEL_OPENAI
    deepseek_model: str = MODEL_DEEPSEEK
    openai_base_url: Optional[str] = OPENAI_BASE_URL
    deepseek_base_url: str = DEEPSEEK_BASE_URL

    max_content_length: int = Field(default=MAX_CONTENT_LENGTH, ge=1)
    max_chunk_size: int = Field(default=MAX_CHUNK_SIZE, ge=1)

    temperature: float = Field(default=QUIZ_TEMPERATURE, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=QUIZ_MAX_OUTPUT_TOKENS, ge=1)
    stem_max_output_tokens: int = Field(default=STEM_MAX_OUTPUT_TOKENS, ge=1)

    request_timeout_seconds: float = Field(default=REQUEST_TIMEOUT_SECONDS, gt=0)
    backend_max_attempts: int = Field(default=BACKEND_MAX_ATTEMPTS, ge=1)

    failure_policy: Literal["fail_fast", "best_effort"] = "fail_fast"
    min_success_ratio: float = Field(default=MIN_SUCCESS_RATIO, ge=0.0, le=1.0)

    shuffle_seed: Optional[int] = SHUFFLE_SEED

    difficulty_guidelines: Dict[str, DifficultyGuideline] = Field(
        default_factory=lambda: dict(DIFFICULTY_GUIDELINES)
    )

    def guideline_for(self, difficulty: str) -> DifficultyGuideline:
        return self.difficulty_guidelines[difficulty]


def load_config(**overrides) -> PipelineConfig:
    """Build a PipelineConfig from the environment, applying keyword overrides last."""
    values = {
        "openai_api_key": OPENAI_API_KEY,
        "deepseek_api_key": DEEPSEEK_API_KEY,
        "failure_policy": FAILURE_POLICY if FAILURE_POLICY in ("fail_fast", "best_effort") else "fail_fast",
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return PipelineConfig(**values)
