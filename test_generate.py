# test_generate.py

import json

import pytest

from backends import DEEPSEEK, OPENAI
from conftest import FakeBackend, make_question, questions_json
from errors import BackendError, QuizGenerationError, ResponseParseError
from generate import generate_chunk, generate_quiz_from_chunks
from schema_models import ContentChunk, Topic

TEXT = "Plain source text about the subject. It has sentences."


def _chunk(start=0, **topics):
    return ContentChunk(
        content=TEXT,
        topics=[Topic(description=d.replace("_", " "), numQuestions=n) for d, n in topics.items()],
        startIndex=start,
    )


def test_generic_chunk_goes_to_openai(config):
    openai_b = FakeBackend(OPENAI, [questions_json("Cell Biology", 3)])
    deepseek_b = FakeBackend(DEEPSEEK)
    chunk = _chunk(Cell_Biology=3)

    questions = generate_chunk(0, chunk, "high_school", {OPENAI: openai_b, DEEPSEEK: deepseek_b}, config)

    assert len(questions) == 3
    assert all(q["generatedBy"] == OPENAI for q in questions)
    assert deepseek_b.calls == []
    prompt, params = openai_b.calls[0]
    assert "LaTeX" not in prompt
    assert params.max_tokens == config.max_output_tokens
    assert params.temperature == config.temperature


def test_stem_chunk_goes_to_deepseek_with_larger_budget(config):
    deepseek_b = FakeBackend(DEEPSEEK, [questions_json("Calculus", 2)])
    backends = {OPENAI: FakeBackend(OPENAI), DEEPSEEK: deepseek_b}

    questions = generate_chunk(0, _chunk(Calculus=2), "university", backends, config)

    assert {q["generatedBy"] for q in questions} == {DEEPSEEK}
    prompt, params = deepseek_b.calls[0]
    assert "$$...$$" in prompt
    assert "LaTeX" in params.system
    assert params.max_tokens == config.stem_max_output_tokens


def test_stem_chunk_falls_back_to_openai(config):
    openai_b = FakeBackend(OPENAI, [questions_json("Calculus", 1)])
    outcome = generate_quiz_from_chunks([_chunk(Calculus=1)], "university", {OPENAI: openai_b}, config)
    assert outcome.models_used == {OPENAI}
    assert outcome.stem_detected is True
    assert "$...$" in openai_b.calls[0][0]


def test_chunks_are_processed_in_order_and_concatenated(config, rng):
    openai_b = FakeBackend(OPENAI, [questions_json("First", 2), questions_json("Second", 1)])
    chunks = [_chunk(0, First=2), _chunk(len(TEXT), Second=1)]

    outcome = generate_quiz_from_chunks(chunks, "high_school", {OPENAI: openai_b}, config, rng=rng)

    assert [q["topic"] for q in outcome.questions] == ["First", "First", "Second"]
    assert [r.index for r in outcome.chunk_results] == [0, 1]
    assert all(r.ok for r in outcome.chunk_results)
    assert outcome.warnings == []


def test_options_are_shuffled_with_correct_text_kept(config, rng):
    openai_b = FakeBackend(OPENAI, [questions_json("Cells", 8, correct="B")])
    outcome = generate_quiz_from_chunks([_chunk(Cells=8)], "high_school", {OPENAI: openai_b}, config, rng=rng)

    for n, q in enumerate(outcome.questions, start=1):
        assert q["options"][q["correctAnswer"]] == f"Cells b{n}"
    assert {q["correctAnswer"] for q in outcome.questions} != {"B"}


def test_fail_fast_reraises_with_chunk_index(config):
    openai_b = FakeBackend(OPENAI, [
        questions_json("First", 1),
        BackendError("OpenAI API error 500", status_code=500, model=OPENAI),
    ])
    chunks = [_chunk(0, First=1), _chunk(len(TEXT), Second=1)]

    with pytest.raises(BackendError) as info:
        generate_quiz_from_chunks(chunks, "high_school", {OPENAI: openai_b}, config)

    assert info.value.chunk_index == 1
    assert info.value.to_dict()["chunkIndex"] == 1


def test_parse_failure_carries_chunk_index(config):
    openai_b = FakeBackend(OPENAI, ["I am not JSON at all"])
    with pytest.raises(ResponseParseError) as info:
        generate_quiz_from_chunks([_chunk(Cells=1)], "high_school", {OPENAI: openai_b}, config)
    assert info.value.chunk_index == 0
    assert info.value.raw_content == "I am not JSON at all"


def test_best_effort_keeps_going_above_the_ratio(config):
    cfg = config.model_copy(update={"failure_policy": "best_effort", "min_success_ratio": 0.5})
    openai_b = FakeBackend(OPENAI, [
        "garbage",
        questions_json("Second", 2),
    ])
    chunks = [_chunk(0, First=1), _chunk(len(TEXT), Second=2)]

    outcome = generate_quiz_from_chunks(chunks, "high_school", {OPENAI: openai_b}, cfg)

    assert [q["topic"] for q in outcome.questions] == ["Second", "Second"]
    [failed] = outcome.failed_chunks
    assert failed.index == 0 and failed.stage == "parse"


def test_best_effort_fails_below_the_ratio(config):
    cfg = config.model_copy(update={"failure_policy": "best_effort", "min_success_ratio": 0.75})
    openai_b = FakeBackend(OPENAI, [BackendError("down"), questions_json("Second", 1)])
    chunks = [_chunk(0, First=1), _chunk(len(TEXT), Second=1)]

    with pytest.raises(QuizGenerationError, match="Only 1 of 2 chunk"):
        generate_quiz_from_chunks(chunks, "high_school", {OPENAI: openai_b}, cfg)


def test_best_effort_with_nothing_succeeding_fails(config):
    cfg = config.model_copy(update={"failure_policy": "best_effort", "min_success_ratio": 0.0})
    openai_b = FakeBackend(OPENAI, [BackendError("down")])
    with pytest.raises(QuizGenerationError) as info:
        generate_quiz_from_chunks([_chunk(Cells=1)], "high_school", {OPENAI: openai_b}, cfg)
    assert info.value.stage == "generation"


def test_count_mismatches_become_warnings(config):
    reply = json.dumps([make_question("Cells", 1), make_question("Viruses", 2)])
    openai_b = FakeBackend(OPENAI, [reply])

    outcome = generate_quiz_from_chunks([_chunk(Cells=3)], "high_school", {OPENAI: openai_b}, config)

    fields = sorted((w.field, w.original, w.repaired) for w in outcome.warnings)
    assert fields == [("topic", "Viruses", 1), ("topicCount", 3, 1)]
    assert len(outcome.questions) == 2


def test_seed_from_config_makes_shuffle_reproducible(config):
    cfg = config.model_copy(update={"shuffle_seed": 99})
    runs = []
    for _ in range(2):
        openai_b = FakeBackend(OPENAI, [questions_json("Cells", 4)])
        outcome = generate_quiz_from_chunks([_chunk(Cells=4)], "high_school", {OPENAI: openai_b}, cfg)
        runs.append([q["correctAnswer"] for q in outcome.questions])
    assert runs[0] == runs[1]
