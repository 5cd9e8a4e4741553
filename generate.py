# generate.py

import logging
import random
from typing import Any, Dict, List, Mapping, Optional, Set

from pydantic import BaseModel, Field

from assemble import count_by_topic, shuffle_questions
from backends import CompletionParams, ModelBackend, select_model
from config import PipelineConfig
from errors import QuizGenerationError
from prompts import generate_prompt_for_chunk, system_prompt_for
from sanitize import preview, parse_questions
from schema_models import ChunkResult, ContentChunk, ValidationWarning
from topics import DEFAULT_CLASSIFIER, StemClassifier

log = logging.getLogger("generate")


class GenerationOutcome(BaseModel):
    questions: List[Dict[str, Any]] = Field(default_factory=list)
    models_used: Set[str] = Field(default_factory=set)
    stem_detected: bool = False
    chunk_results: List[ChunkResult] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)

    @property
    def failed_chunks(self) -> List[ChunkResult]:
        return [r for r in self.chunk_results if not r.ok]


def _count_warnings(chunk_index: int, chunk: ContentChunk, got: Dict[str, int]) -> List[ValidationWarning]:
    """Per-topic shortfall/overshoot versus what the chunk asked for."""
    out: List[ValidationWarning] = []
    for t in chunk.topics:
        n = got.get(t.description, 0)
        if n != t.numQuestions:
            out.append(ValidationWarning(
                index=chunk_index,
                field="topicCount",
                original=t.numQuestions,
                repaired=n,
                reason=f"chunk {chunk_index}: '{t.description}' requested {t.numQuestions}, model returned {n}",
            ))
    requested = {t.description for t in chunk.topics}
    for name, n in got.items():
        if name not in requested:
            out.append(ValidationWarning(
                index=chunk_index,
                field="topic",
                original=name,
                repaired=n,
                reason=f"chunk {chunk_index}: model returned {n} question(s) for unrequested topic '{name}'",
            ))
    return out


def generate_chunk(
    index: int,
    chunk: ContentChunk,
    difficulty: str,
    backends: Mapping[str, ModelBackend],
    config: PipelineConfig,
    classifier: Optional[StemClassifier] = None,
) -> List[Dict[str, Any]]:
    """
    One chunk end to end: classify, route, prompt, call, sanitize, parse.
    Returns the parsed questions tagged with generatedBy; raises on any failure.
    """
    classifier = classifier or DEFAULT_CLASSIFIER
    stem = classifier.contains_stem(chunk)
    model = select_model(stem, backends)
    backend = backends[model]

    prompt = generate_prompt_for_chunk(chunk, difficulty, classifier, config.difficulty_guidelines)
    params = CompletionParams(
        system=system_prompt_for(stem),
        temperature=config.temperature,
        max_tokens=config.stem_max_output_tokens if stem else config.max_output_tokens,
    )
    log.info("[Dispatch] Chunk %d (start=%d, %d chars, %d question(s)) -> %s%s",
             index, chunk.startIndex, len(chunk.content), chunk.total_questions,
             model, " [STEM]" if stem else "")

    raw = backend.complete(prompt, params)
    log.debug("[Dispatch] Chunk %d raw preview: %s", index, preview(raw))

    questions = parse_questions(raw)
    for q in questions:
        q["generatedBy"] = model
    return questions


def generate_quiz_from_chunks(
    chunks: List[ContentChunk],
    difficulty: str,
    backends: Mapping[str, ModelBackend],
    config: PipelineConfig,
    classifier: Optional[StemClassifier] = None,
    rng: Optional[random.Random] = None,
) -> GenerationOutcome:
    """
    Generate questions chunk by chunk, strictly in order, then shuffle options.

    ``config.failure_policy``:
      - fail_fast:   the first failing chunk aborts the run (its error is re-raised
                     with chunk_index set)
      - best_effort: failures are recorded; the run only fails when fewer than
                     ``min_success_ratio`` of the chunks (or none at all) succeed
    """
    classifier = classifier or DEFAULT_CLASSIFIER
    if rng is None and config.shuffle_seed is not None:
        rng = random.Random(config.shuffle_seed)

    outcome = GenerationOutcome()
    per_topic: Dict[str, int] = {}
    attempted = 0

    for index, chunk in enumerate(chunks):
        if chunk.total_questions <= 0:
            log.info("[Dispatch] Chunk %d has no questions allocated; skipped", index)
            continue
        stem = classifier.contains_stem(chunk)
        outcome.stem_detected = outcome.stem_detected or stem
        result = ChunkResult(index=index, startIndex=chunk.startIndex, stem=stem,
                             model=select_model(stem, backends))
        attempted += 1
        log.info("[Dispatch] Processing chunk %d of %d", index + 1, len(chunks))

        try:
            questions = generate_chunk(index, chunk, difficulty, backends, config, classifier)
        except QuizGenerationError as e:
            if e.chunk_index is None:
                e.chunk_index = index
            result.error = e.message
            result.stage = e.stage
            outcome.chunk_results.append(result)
            log.error("[Dispatch] Chunk %d failed at %s stage: %s", index, e.stage, e.message)
            if config.failure_policy == "fail_fast":
                raise
            continue

        got = count_by_topic(questions)
        log.info("[Dispatch] Topic distribution in response: %s", got)
        for name, n in got.items():
            per_topic[name] = per_topic.get(name, 0) + n
        outcome.warnings.extend(_count_warnings(index, chunk, got))

        result.ok = True
        result.questions = questions
        result.topicCounts = got
        outcome.chunk_results.append(result)
        outcome.models_used.add(result.model)
        outcome.questions.extend(questions)

    failed = len(outcome.failed_chunks)
    if failed:
        succeeded = attempted - failed
        ratio = succeeded / attempted if attempted else 0.0
        if succeeded == 0 or ratio < config.min_success_ratio:
            first = outcome.failed_chunks[0]
            raise QuizGenerationError(
                f"Only {succeeded} of {attempted} chunk(s) succeeded "
                f"(minimum success ratio {config.min_success_ratio:.2f}); "
                f"first failure at chunk {first.index} ({first.stage}): {first.error}",
                stage="generation",
            )
        log.warning("[Dispatch] Continuing with %d of %d chunk(s) after failures", succeeded, attempted)

    log.info("[Dispatch] Generated a total of %d question(s)", len(outcome.questions))
    log.info("[Dispatch] Final distribution of questions by topic: %s", per_topic)

    shuffle_questions(outcome.questions, rng)
    return outcome
