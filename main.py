# main.py

import argparse
import json
import logging
import random
from pathlib import Path
from typing import List, Optional

from assemble import count_by_topic
from chunking import read_text
from config import LOG_LEVEL, LOG_TIMESTAMP, load_config
from errors import QuizGenerationError
from quiz_service import generate_quiz
from schema_models import DIFFICULTY_LEVELS

DATA = Path("data")

SOURCE = DATA / "source.txt"
FINAL = DATA / "quiz_final.json"


def setup_logging(level: str = LOG_LEVEL, timestamp: bool = LOG_TIMESTAMP) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s" if timestamp
        else "%(levelname)s [%(name)s] %(message)s",
    )
    # SDK transport chatter
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def _parse_topic(value: str) -> dict:
    """'Cell Biology=6' -> {"description": "Cell Biology", "numQuestions": 6}"""
    desc, sep, count = value.rpartition("=")
    if not sep or not desc.strip():
        raise argparse.ArgumentTypeError(f"Topic must look like 'Description=N', got {value!r}")
    try:
        n = int(count)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Question count must be an integer in {value!r}")
    return {"description": desc.strip(), "numQuestions": n}


def _load_topics(args) -> List[dict]:
    topics: List[dict] = list(args.topic or [])
    if args.topics_json:
        data = json.loads(Path(args.topics_json).read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data = data.get("topics", [])
        topics.extend(data)
    return topics


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a multiple-choice quiz from source text")
    parser.add_argument("--source", type=Path, default=SOURCE, help=f"Source text file (default: {SOURCE})")
    parser.add_argument("--topic", action="append", type=_parse_topic, metavar="DESC=N",
                        help="Topic and question count; repeatable")
    parser.add_argument("--topics-json", help="JSON file with a topics list (or {\"topics\": [...]})")
    parser.add_argument("--difficulty", default="high_school", help=f"One of: {', '.join(DIFFICULTY_LEVELS)}")
    parser.add_argument("--out", type=Path, default=FINAL, help=f"Output JSON path (default: {FINAL})")
    parser.add_argument("--best-effort", action="store_true",
                        help="Keep going when a chunk fails instead of aborting the run")
    parser.add_argument("--min-success-ratio", type=float, default=None,
                        help="With --best-effort: fraction of chunks that must succeed")
    parser.add_argument("--max-chunk-size", type=int, default=None, help="Characters per chunk")
    parser.add_argument("--seed", type=int, default=None, help="Seed for option shuffling")
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    print(f"[Main] Using source: {args.source}")
    if not args.source.exists():
        print(f"[Main] Missing source file: {args.source}")
        return 2

    topics = _load_topics(args)
    if not topics:
        print("[Main] No topics given; use --topic 'Description=N' or --topics-json")
        return 2

    text = read_text(args.source)
    print(f"[Main] Loaded source text ({len(text)} chars). Generating...")

    config = load_config(
        failure_policy="best_effort" if args.best_effort else None,
        min_success_ratio=args.min_success_ratio,
        max_chunk_size=args.max_chunk_size,
        shuffle_seed=args.seed,
    )
    rng = random.Random(args.seed) if args.seed is not None else None

    try:
        response = generate_quiz(
            {"content": text, "topics": topics, "difficulty": args.difficulty},
            config=config,
            rng=rng,
        )
    except QuizGenerationError as e:
        print(f"[Main] Generation failed ({e.stage} stage): {e}")
        return 1

    args.out.parent.mkdir(parents=True, exist_ok=True)
    args.out.write_text(
        json.dumps(response.model_dump(mode="json"), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )

    meta = response.metadata
    print(f"[Quiz] Final questions: {len(response.quizQuestions)} → {args.out}")
    print("[QA] By topic:", count_by_topic(response.quizQuestions))
    print("[QA] Total points:", meta.totalPoints, "| Estimated minutes:", meta.estimatedDuration)
    print("[QA] Models used:", meta.modelsUsed, "| STEM detected:", meta.stemTopicsDetected)
    if meta.chunksFailed:
        print(f"[QA][warn] {meta.chunksFailed} of {meta.chunksProcessed} chunk(s) failed")
    if meta.warnings:
        print(f"[QA] {len(meta.warnings)} repair/count warning(s):")
        for w in meta.warnings[:20]:
            print(f"  - {w.field}: {w.reason}")
    return 0


def cli() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    cli()
