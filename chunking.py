# chunking.py
import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from config import MAX_CHUNK_SIZE
from schema_models import ContentChunk, Topic

log = logging.getLogger("chunking")

SENTENCE_END = ".!?"


def read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _trim_to_sentence(window: str) -> str:
    """Cut the window back to its last '.', '!' or '?'; keep it whole if there is none."""
    cut = max(window.rfind(ch) for ch in SENTENCE_END)
    if cut > 0:
        return window[: cut + 1]
    return window


def _allocate(
    topics: Sequence[Topic],
    remaining: Dict[str, int],
    questions_for_chunk: int,
) -> List[Topic]:
    """
    Split questions_for_chunk across the topics that still have budget,
    proportional to each topic's share of the outstanding total.
    """
    outstanding = sum(remaining.values())
    counts: Dict[str, int] = {}
    for t in topics:
        left = remaining[t.description]
        if left <= 0:
            continue
        share = left / outstanding
        # round-half-up, matching Math.round rather than banker's rounding
        n = max(1, math.floor(questions_for_chunk * share + 0.5))
        counts[t.description] = min(n, left)

    # Rounding and the floor-at-1 can overshoot; take the excess off the largest topic.
    excess = sum(counts.values()) - questions_for_chunk
    while excess > 0:
        largest = max(counts, key=lambda d: counts[d])
        if counts[largest] <= 0:
            break
        take = min(excess, counts[largest])
        counts[largest] -= take
        excess -= take

    return [
        Topic(description=t.description, numQuestions=counts[t.description])
        for t in topics
        if counts.get(t.description, 0) > 0
    ]


def split_content_into_chunks(
    content: str,
    topics: Sequence[Topic],
    max_chunk_size: Optional[int] = None,
) -> List[ContentChunk]:
    """
    Walk ``content`` left to right in windows of at most ``max_chunk_size``
    characters and give each window its share of the requested questions.

      1) A window that stops short of the end is trimmed back to its last
         sentence terminator, so chunks prefer to end on a sentence.
      2) The chunk's question budget is ceil(remaining/total * requested), min 1,
         spread over topics by their share of what is still unallocated.
      3) No topic is ever given more than it has left; once every topic is
         spent, chunking stops.

    The returned chunks are contiguous: each startIndex equals the previous
    startIndex plus the previous chunk's length.
    """
    size = max_chunk_size or MAX_CHUNK_SIZE
    if size < 1:
        raise ValueError("max_chunk_size must be positive")
    if not content:
        return []

    total_len = len(content)
    total_questions = sum(t.numQuestions for t in topics)
    remaining: Dict[str, int] = {}
    for t in topics:
        remaining[t.description] = remaining.get(t.description, 0) + t.numQuestions
    # Duplicate descriptions are merged into one budget.
    unique_topics = list({t.description: t for t in topics}.values())

    log.info("[Chunker] Total questions requested: %d across %d topic(s)", total_questions, len(unique_topics))

    chunks: List[ContentChunk] = []
    cursor = 0
    while cursor < total_len and any(v > 0 for v in remaining.values()):
        content_percentage = (total_len - cursor) / total_len
        questions_for_chunk = max(1, math.ceil(content_percentage * total_questions))

        chunk_topics = _allocate(unique_topics, remaining, questions_for_chunk)
        if not chunk_topics:
            break

        end = min(total_len, cursor + size)
        piece = content[cursor:end]
        if end < total_len:
            piece = _trim_to_sentence(piece)

        chunks.append(ContentChunk(content=piece, topics=chunk_topics, startIndex=cursor))
        for t in chunk_topics:
            remaining[t.description] -= t.numQuestions

        log.debug(
            "[Chunker] Chunk %d at %d (%d chars): %s",
            len(chunks) - 1, cursor, len(piece),
            ", ".join(f"{t.description} ({t.numQuestions})" for t in chunk_topics),
        )
        cursor += len(piece)

    log.info("[Chunker] Content split into %d chunk(s); %d of %d chars covered",
             len(chunks), cursor, total_len)
    return chunks
