# schema_models.py

import re
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from errors import InputError

Difficulty = Literal["middle_school", "high_school", "university", "post_graduate"]
DIFFICULTY_LEVELS: Tuple[str, ...] = ("middle_school", "high_school", "university", "post_graduate")

OPTION_KEYS: Tuple[str, ...] = ("A", "B", "C", "D")


def normalize_difficulty(value: Any) -> str:
    """Map 'High School', 'high-school', 'HIGH_SCHOOL' ... to the canonical level."""
    if not isinstance(value, str):
        raise InputError(f"Invalid difficulty level: {value!r}")
    v = re.sub(r"[\s\-]+", "_", value.strip().lower())
    if v not in DIFFICULTY_LEVELS:
        raise InputError(
            f"Invalid difficulty level: {value!r} (expected one of {', '.join(DIFFICULTY_LEVELS)})"
        )
    return v


# --------------------------
# Difficulty guideline
# --------------------------
class PointRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: int
    max: int

    @model_validator(mode="after")
    def _ordered(self):
        assert self.min <= self.max, "points.min must not exceed points.max"
        return self

class DifficultyGuideline(BaseModel):
    model_config = ConfigDict(frozen=True)

    complexity: str
    language: str
    points: PointRange


# --------------------------
# Request / chunk schema
# --------------------------
class Topic(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    numQuestions: int = Field(ge=1)

    @field_validator("description")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        assert v, "topic description must not be empty"
        return v

class ContentChunk(BaseModel):
    content: str
    topics: List[Topic]
    startIndex: int = Field(ge=0)

    @property
    def total_questions(self) -> int:
        return sum(t.numQuestions for t in self.topics)

class QuizRequest(BaseModel):
    content: str
    topics: List[Topic] = Field(min_length=1)
    difficulty: str

    @field_validator("difficulty")
    @classmethod
    def _canonical_difficulty(cls, v: str) -> str:
        return normalize_difficulty(v)


# --------------------------
# Question schema
# --------------------------
class Question(BaseModel):
    """
    Shape check for one parsed model question. Questions themselves stay plain
    dicts; this model only decides whether the required fields are present.
    """
    model_config = ConfigDict(extra="allow")

    question: str
    options: Dict[str, Any]
    correctAnswer: Literal["A", "B", "C", "D"]
    topic: str
    points: Any = None
    explanation: Optional[str] = None
    difficulty: Optional[str] = None
    conceptTested: Optional[str] = None
    learningObjective: Optional[str] = None
    formula: Optional[str] = None
    visualizationPrompt: Optional[str] = None
    generatedBy: Optional[str] = None
    mobileOptimized: Optional[bool] = None

    @field_validator("question", "topic")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        assert v.strip(), "must not be empty"
        return v

    @model_validator(mode="after")
    def _check_options(self):
        missing = [k for k in OPTION_KEYS if not str(self.options.get(k, "")).strip()]
        assert not missing, f"options missing {', '.join(missing)}"
        return self


# --------------------------
# Pipeline results
# --------------------------
class ValidationWarning(BaseModel):
    index: Optional[int] = None
    field: str
    original: Any = None
    repaired: Any = None
    reason: str

class ChunkResult(BaseModel):
    index: int
    startIndex: int
    model: Optional[str] = None
    stem: bool = False
    ok: bool = False
    questions: List[Dict[str, Any]] = Field(default_factory=list)
    topicCounts: Dict[str, int] = Field(default_factory=dict)
    error: Optional[str] = None
    stage: Optional[str] = None

class QuizMetadata(BaseModel):
    topics: List[str]
    difficulty: str
    totalPoints: float
    estimatedDuration: int
    modelsUsed: List[str]
    stemTopicsDetected: bool
    chunksProcessed: int = 0
    chunksFailed: int = 0
    warnings: List[ValidationWarning] = Field(default_factory=list)

class QuizResponse(BaseModel):
    quizQuestions: List[Dict[str, Any]]
    metadata: QuizMetadata
