# sanitize.py

import json
import logging
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from errors import ResponseParseError
from schema_models import Question

log = logging.getLogger("sanitize")

_ZW_CHARS = "".join(["\u200b", "\u200c", "\u200d", "\ufeff", "\u2060"])
_LEADING_FENCE_RE = re.compile(r"^\s*```[\w+-]*[ \t]*\n?")
_TRAILING_FENCE_RE = re.compile(r"\n?[ \t]*```\s*$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
# Legal JSON escapes are consumed whole; any other backslash gets doubled. \b \f \n \r \t
# followed by a lowercase letter is LaTeX (\frac, \times, \nabla), not a control character.
_ESCAPE_RE = re.compile(r'\\(u[0-9a-fA-F]{4}|["\\/]|[bfnrt](?![a-z]))|\\')

_ID_TOKEN_RE = re.compile(r"\b(?:resp|run|msg|file|batch|job|ft|rs|chatcmpl)[_-][A-Za-z0-9\-\._]+\b")
_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9\-\._]+")
_KEY_RE = re.compile(r"\bsk-[A-Za-z0-9\-_]{8,}")


def _obf(s: object) -> str:
    """Obfuscate IDs/tokens for logs."""
    if s is None:
        return "None"
    if not isinstance(s, str):
        s = str(s)
    s = _ID_TOKEN_RE.sub("[redacted]", s)
    s = _BEARER_RE.sub("Bearer [redacted]", s)
    s = _KEY_RE.sub("sk-[redacted]", s)
    return s


def preview(s: object, n: int = 400) -> str:
    """Safe preview w/ redaction and length cap."""
    if s is None:
        return "None"
    if not isinstance(s, str):
        try:
            s = json.dumps(s, ensure_ascii=False)
        except Exception:
            s = str(s)
    s = _obf(s)
    return s[:n] + ("..." if len(s) > n else "")


def _strip_code_fences(s: str) -> str:
    s = _LEADING_FENCE_RE.sub("", s.strip(), count=1)
    s = _TRAILING_FENCE_RE.sub("", s, count=1)
    # fences sitting after leading prose ("Here you go:\n```json")
    return s.replace("```", "")


def _strip_comments(s: str) -> str:
    """
    Remove // line comments and /* */ block comments that sit outside JSON
    strings, so "https://..." inside a value survives. Scanning starts at the
    first '['; prose before it is left for _slice_array to drop.
    """
    start = s.find("[")
    if start > 0:
        return s[:start] + _strip_comments(s[start:])
    out: List[str] = []
    i, n = 0, len(s)
    in_string = False
    while i < n:
        ch = s[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(s[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif s.startswith("//", i):
            nl = s.find("\n", i)
            i = n if nl == -1 else nl
        elif s.startswith("/*", i):
            end = s.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _slice_array(s: str) -> str:
    start = s.find("[")
    end = s.rfind("]")
    if start != -1 and end > start:
        return s[start : end + 1]
    return s


def _escape_stray_backslashes(s: str) -> str:
    return _ESCAPE_RE.sub(lambda m: m.group(0) if m.group(1) else "\\\\", s)


def _loads(s: str) -> Any:
    # strict=False lets raw newlines/tabs inside strings through
    return json.loads(s, strict=False)


def cleanup_json_content(raw: str) -> str:
    """
    Turn raw model output into a JSON array string.

    Steps, in order: code fences, // comments, /* */ comments, trailing commas,
    slice from the first '[' to the last ']', escape stray LaTeX backslashes.
    The result is test-parsed; raises ResponseParseError (carrying the
    original text) if it does not parse.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ResponseParseError("Model returned empty content", raw_content=raw)

    cleaned = raw.translate({ord(c): None for c in _ZW_CHARS})
    cleaned = _strip_code_fences(cleaned)
    cleaned = _strip_comments(cleaned)
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    cleaned = _slice_array(cleaned).strip()
    repaired = _escape_stray_backslashes(cleaned)
    if repaired != cleaned:
        log.debug("[Sanitize] Escaped stray backslashes")

    try:
        _loads(repaired)
        return repaired
    except json.JSONDecodeError as e:
        log.error("[Sanitize] JSON parse failed (%s). Cleaned preview: %s", e, preview(repaired))
        raise ResponseParseError(
            f"Failed to parse questions: {e}",
            raw_content=raw,
            cleaned_content=repaired,
        ) from e


def check_required_fields(items: List[Dict[str, Any]]) -> None:
    """Raise ResponseParseError naming the first question that lacks required fields."""
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ResponseParseError(f"Question at index {i} is not an object: {preview(item, 120)}")
        try:
            Question.model_validate(item)
        except ValidationError as e:
            reasons = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'question'}: {err['msg']}" for err in e.errors()
            )
            raise ResponseParseError(
                f"Question at index {i} is missing required fields ({reasons})",
                cleaned_content=preview(item, 800),
            ) from e


def parse_questions(raw: str) -> List[Dict[str, Any]]:
    """cleanup_json_content + json load + shape check of every question."""
    cleaned = cleanup_json_content(raw)
    data = _loads(cleaned)
    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        raise ResponseParseError(
            f"Expected a JSON array of questions, got {type(data).__name__}",
            raw_content=raw,
            cleaned_content=cleaned,
        )
    check_required_fields(data)
    return data
