# quiz_service.py

import logging
import random
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from assemble import total_points, validate_and_normalize_questions
from backends import ModelBackend, build_backends
from chunking import split_content_into_chunks
from config import PipelineConfig, load_config
from errors import (
    BackendError,
    InputError,
    QuizGenerationError,
    ResponseParseError,
)
from generate import generate_quiz_from_chunks
from schema_models import QuizMetadata, QuizRequest, QuizResponse, ValidationWarning
from topics import StemClassifier

log = logging.getLogger("quiz_service")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

MIN_ESTIMATED_MINUTES = 15


def parse_request(body: Any) -> QuizRequest:
    """Validate an inbound body into a QuizRequest; any problem is an InputError."""
    if isinstance(body, QuizRequest):
        return body
    if not isinstance(body, dict):
        raise InputError("Request body must be a JSON object")
    try:
        return QuizRequest.model_validate(body)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first["loc"]) or "body"
        raise InputError(f"Invalid {where}: {first['msg']}") from e


def generate_quiz(
    request: Any,
    config: Optional[PipelineConfig] = None,
    backends: Optional[Mapping[str, ModelBackend]] = None,
    classifier: Optional[StemClassifier] = None,
    rng: Optional[random.Random] = None,
) -> QuizResponse:
    """
    Full pipeline for one request: admit -> chunk -> generate -> validate.
    Raises a QuizGenerationError subclass describing the failing stage.
    """
    req = parse_request(request)
    config = config or load_config()
    warnings: List[ValidationWarning] = []

    content = req.content
    if not content.strip():
        raise InputError("Content is empty but questions were requested")
    if len(content) > config.max_content_length:
        warnings.append(ValidationWarning(
            field="content",
            original=len(content),
            repaired=config.max_content_length,
            reason=f"content truncated to {config.max_content_length} characters",
        ))
        log.warning("[Quiz] Content length %d exceeds %d; truncating",
                    len(content), config.max_content_length)
        content = content[: config.max_content_length]

    log.info("[Quiz] Processing request with content length %d, %d topic(s), difficulty=%s",
             len(content), len(req.topics), req.difficulty)

    if backends is None:
        backends = build_backends(config)

    chunks = split_content_into_chunks(content, req.topics, config.max_chunk_size)
    outcome = generate_quiz_from_chunks(
        chunks, req.difficulty, backends, config, classifier=classifier, rng=rng,
    )
    warnings.extend(outcome.warnings)

    questions = validate_and_normalize_questions(
        outcome.questions, req.difficulty, config.difficulty_guidelines, warnings,
    )

    metadata = QuizMetadata(
        topics=[t.description for t in req.topics],
        difficulty=req.difficulty,
        totalPoints=total_points(questions),
        estimatedDuration=max(MIN_ESTIMATED_MINUTES, len(questions)),
        modelsUsed=sorted(outcome.models_used),
        stemTopicsDetected=outcome.stem_detected,
        chunksProcessed=len(outcome.chunk_results),
        chunksFailed=len(outcome.failed_chunks),
        warnings=warnings,
    )
    log.info("[Quiz] Done: %d question(s), %s point(s), models=%s",
             len(questions), metadata.totalPoints, metadata.modelsUsed)
    return QuizResponse(quizQuestions=questions, metadata=metadata)


def status_for(error: Exception) -> int:
    if isinstance(error, InputError):
        return 400
    if isinstance(error, (BackendError, ResponseParseError)):
        return 502
    return 500


def handle_request(
    body: Any,
    config: Optional[PipelineConfig] = None,
    backends: Optional[Mapping[str, ModelBackend]] = None,
    classifier: Optional[StemClassifier] = None,
    method: str = "POST",
) -> Tuple[int, Dict[str, str], Optional[Dict[str, Any]]]:
    """
    HTTP-function boundary. Returns (status, headers, json_payload); every
    response carries the CORS headers. An OPTIONS preflight gets the headers
    and no payload.
    """
    if method.upper() == "OPTIONS":
        return 200, dict(CORS_HEADERS), None

    headers = {**CORS_HEADERS, "Content-Type": "application/json"}
    try:
        response = generate_quiz(body, config=config, backends=backends, classifier=classifier)
        return 200, headers, response.model_dump(mode="json")
    except QuizGenerationError as e:
        log.error("[Quiz] Error in generate-quiz (%s stage): %s", e.stage, e)
        return status_for(e), headers, e.to_dict()
    except Exception as e:
        log.exception("[Quiz] Unexpected error in generate-quiz")
        return 500, headers, {"error": str(e) or type(e).__name__, "stage": "internal"}
