# errors.py

from typing import Any, Dict, Optional


class QuizGenerationError(RuntimeError):
    """Base failure of the quiz pipeline; ``stage`` names where it happened."""

    stage = "generation"

    def __init__(self, message: str, *, chunk_index: Optional[int] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.chunk_index = chunk_index
        if stage:
            self.stage = stage

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.message, "stage": self.stage}
        if self.chunk_index is not None:
            out["chunkIndex"] = self.chunk_index
        return out

    def __str__(self) -> str:
        if self.chunk_index is None:
            return self.message
        return f"[chunk {self.chunk_index}] {self.message}"


class InputError(QuizGenerationError, ValueError):
    stage = "input"


class ConfigurationError(QuizGenerationError):
    stage = "config"


class BackendError(QuizGenerationError):
    """Non-2xx, transport failure or empty payload from a model backend."""

    stage = "backend"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        model: Optional[str] = None,
        chunk_index: Optional[int] = None,
    ):
        super().__init__(message, chunk_index=chunk_index)
        self.status_code = status_code
        self.model = model

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.status_code is not None:
            out["statusCode"] = self.status_code
        if self.model:
            out["model"] = self.model
        return out


class ResponseParseError(QuizGenerationError):
    """Model output that is still not usable JSON after cleanup."""

    stage = "parse"

    def __init__(
        self,
        message: str,
        *,
        raw_content: Optional[str] = None,
        cleaned_content: Optional[str] = None,
        chunk_index: Optional[int] = None,
    ):
        super().__init__(message, chunk_index=chunk_index)
        self.raw_content = raw_content
        self.cleaned_content = cleaned_content
