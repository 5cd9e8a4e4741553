# test_assemble.py

import math
import random

import pytest

from assemble import (
    count_by_topic,
    shuffle_question_options,
    shuffle_questions,
    total_points,
    validate_and_normalize_questions,
)
from config import DIFFICULTY_GUIDELINES
from conftest import make_question
from errors import InputError

POINT_INPUTS = [-5, 0, 1, 2, 2.5, 3, 4, 5, 99, "4", " 3 points", "abc", "", None, True,
                float("inf"), float("-inf"), math.nan, [], {"n": 3}]


@pytest.mark.parametrize("level", list(DIFFICULTY_GUIDELINES))
def test_points_always_land_inside_the_level_range(level):
    rng = DIFFICULTY_GUIDELINES[level].points
    questions = [make_question("Cells", i, points=p) for i, p in enumerate(POINT_INPUTS)]

    out = validate_and_normalize_questions(questions, level)

    assert len(out) == len(POINT_INPUTS)
    for q in out:
        assert isinstance(q["points"], (int, float))
        assert rng.min <= q["points"] <= rng.max
        assert q["difficulty"] == level
        assert q["validated_at"].endswith("+00:00")


@pytest.mark.parametrize("value,expected", [
    (7, 3), (-1, 2), ("3", 3), ("abc", 2), (None, 2), (2.5, 2.5), (2, 2),
])
def test_high_school_point_repairs(value, expected):
    [q] = validate_and_normalize_questions([make_question("Cells", points=value)], "high_school")
    assert q["points"] == expected


def test_repairs_are_reported_as_warnings():
    warnings = []
    questions = [
        make_question("Cells", 1, points=2),
        make_question("Cells", 2, points=10),
        make_question("Cells", 3, points="n/a"),
    ]
    validate_and_normalize_questions(questions, "high_school", warnings=warnings)

    assert [(w.index, w.field) for w in warnings] == [(1, "points"), (2, "points")]
    assert warnings[0].original == 10 and warnings[0].repaired == 3
    assert warnings[1].repaired == 2


def test_difficulty_is_normalized_and_stamped():
    q = make_question("Cells")
    q["difficulty"] = "whatever the model said"
    validate_and_normalize_questions([q], "High School")
    assert q["difficulty"] == "high_school"


def test_unknown_difficulty_is_an_input_error():
    with pytest.raises(InputError):
        validate_and_normalize_questions([make_question("Cells")], "kindergarten")


def test_validation_mutates_in_place_and_keeps_order():
    questions = [make_question("A", 1), make_question("B", 2)]
    out = validate_and_normalize_questions(questions, "middle_school")
    assert out is questions
    assert [q["topic"] for q in out] == ["A", "B"]


@pytest.mark.parametrize("seed", range(10))
@pytest.mark.parametrize("correct", ["A", "B", "C", "D"])
def test_shuffle_keeps_options_and_correct_text(seed, correct):
    q = make_question("Cells", points=2, correct=correct)
    texts = set(q["options"].values())
    right = q["options"][correct]

    shuffle_question_options(q, random.Random(seed))

    assert set(q["options"]) == {"A", "B", "C", "D"}
    assert set(q["options"].values()) == texts
    assert q["options"][q["correctAnswer"]] == right


def test_shuffle_moves_the_correct_answer_around():
    rng = random.Random(7)
    positions = set()
    for _ in range(200):
        q = shuffle_question_options(make_question("Cells"), rng)
        positions.add(q["correctAnswer"])
    assert positions == {"A", "B", "C", "D"}


def test_shuffle_follows_key_when_texts_repeat():
    q = make_question("Cells")
    q["options"] = {"A": "same", "B": "same", "C": "other", "D": "same"}
    q["correctAnswer"] = "C"
    for seed in range(20):
        shuffle_question_options(q, random.Random(seed))
        assert q["options"][q["correctAnswer"]] == "other"


def test_shuffle_leaves_malformed_questions_alone():
    no_options = {"question": "Q?", "correctAnswer": "A"}
    assert shuffle_question_options(dict(no_options)) == no_options

    bad_key = make_question("Cells")
    bad_key["correctAnswer"] = "E"
    before = dict(bad_key["options"])
    shuffle_question_options(bad_key, random.Random(1))
    assert bad_key["options"] == before
    assert bad_key["correctAnswer"] == "E"


def test_shuffle_questions_is_reproducible_with_a_seed():
    a = [make_question("Cells", i) for i in range(5)]
    b = [make_question("Cells", i) for i in range(5)]
    shuffle_questions(a, random.Random(42))
    shuffle_questions(b, random.Random(42))
    assert a == b


def test_qa_helpers():
    qs = [make_question("A", 1, points=2), make_question("A", 2, points=3), make_question("B", 3, points=2.5)]
    assert count_by_topic(qs) == {"A": 2, "B": 1}
    assert total_points(qs) == 7.5
    assert total_points(qs[:2]) == 5
