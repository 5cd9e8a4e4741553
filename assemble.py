# assemble.py

import logging
import math
import random
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from config import DIFFICULTY_GUIDELINES
from schema_models import DifficultyGuideline, ValidationWarning, normalize_difficulty

log = logging.getLogger("assemble")

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


# -----------------------
# Points
# -----------------------
def _coerce_points(value: Any) -> float:
    """
    Number as-is; string by its leading integer ("3", " 4 points" -> 3, 4);
    anything else NaN.
    """
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        m = _LEADING_INT_RE.match(value)
        return float(m.group(1)) if m else math.nan
    return math.nan


def _clamp_points(value: Any, lo: int, hi: int) -> Tuple[Any, Optional[str]]:
    """Return (points, reason) where reason is None when nothing was repaired."""
    num = _coerce_points(value)
    if math.isnan(num):
        return lo, "not a number; defaulted to minimum"
    clamped = min(max(num, lo), hi)
    out: Any = int(clamped) if float(clamped).is_integer() else clamped
    if clamped != num:
        return out, f"outside {lo}-{hi}; clamped"
    if not isinstance(value, (int, float)):
        return out, "coerced from string"
    return out, None


def validate_and_normalize_questions(
    questions: List[Dict[str, Any]],
    difficulty: str,
    guidelines: Optional[Mapping[str, DifficultyGuideline]] = None,
    warnings: Optional[List[ValidationWarning]] = None,
) -> List[Dict[str, Any]]:
    """
    Repair every question in place; never drops one.

    - points: coerced to a number, clamped to the difficulty's range, NaN -> min
    - difficulty: stamped with the canonical level
    - validated_at: UTC ISO-8601 timestamp

    Repairs are appended to ``warnings`` when a list is supplied.
    """
    level = normalize_difficulty(difficulty)
    guideline = (guidelines or DIFFICULTY_GUIDELINES)[level]
    lo, hi = guideline.points.min, guideline.points.max
    stamp = datetime.now(timezone.utc).isoformat()

    repaired = 0
    for i, q in enumerate(questions):
        original = q.get("points")
        points, reason = _clamp_points(original, lo, hi)
        if reason:
            repaired += 1
            if warnings is not None:
                warnings.append(ValidationWarning(
                    index=i, field="points", original=original, repaired=points, reason=reason,
                ))
        q["points"] = points
        q["difficulty"] = level
        q["validated_at"] = stamp

    log.info("[Validate] Validated %d question(s); %d point value(s) repaired", len(questions), repaired)
    return questions


# -----------------------
# Option shuffling
# -----------------------
def shuffle_question_options(question: Dict[str, Any], rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """
    Shuffle the answer options and move correctAnswer with its text.

    The set of option texts and the text behind correctAnswer are unchanged;
    only which key holds which text changes. Keys are reassigned A, B, C, D...
    in shuffled order. Questions without options or correctAnswer, or whose
    correctAnswer is not one of the option keys, are returned untouched.
    """
    options = question.get("options")
    correct = question.get("correctAnswer")
    if not isinstance(options, dict) or not options or not correct:
        return question
    if correct not in options:
        log.warning("[Shuffle] correctAnswer %r not among option keys %s; left as is",
                    correct, sorted(options))
        return question

    pairs = list(options.items())
    (rng or random).shuffle(pairs)

    new_options: Dict[str, Any] = {}
    new_correct = correct
    for i, (old_key, text) in enumerate(pairs):
        key = chr(ord("A") + i)
        new_options[key] = text
        # track by original key; option texts may repeat
        if old_key == correct:
            new_correct = key

    question["options"] = new_options
    question["correctAnswer"] = new_correct
    return question


def shuffle_questions(questions: List[Dict[str, Any]], rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    for q in questions:
        shuffle_question_options(q, rng)
    return questions


# -----------------------
# QA helpers
# -----------------------
def count_by_topic(questions: List[Dict[str, Any]]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for q in questions:
        t = q.get("topic") or "(none)"
        counts[t] = counts.get(t, 0) + 1
    return counts


def total_points(questions: List[Dict[str, Any]]) -> float:
    total = sum(q.get("points") or 0 for q in questions)
    return int(total) if float(total).is_integer() else total
