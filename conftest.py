# conftest.py

import json
import random
from typing import Callable, List, Optional, Union

import pytest

from backends import CompletionParams, ModelBackend
from config import PipelineConfig

Reply = Union[str, Exception, Callable[[str, CompletionParams], str]]


class FakeBackend(ModelBackend):
    """Scripted backend: returns (or raises) the queued replies in order."""

    def __init__(self, name: str, replies: Optional[List[Reply]] = None, max_attempts: int = 1):
        super().__init__(client=None, model=f"fake-{name}", max_attempts=max_attempts)
        self.name = name
        self.replies = list(replies or [])
        self.calls: List[tuple] = []

    def _request(self, prompt: str, params: CompletionParams) -> Optional[str]:
        self.calls.append((prompt, params))
        if not self.replies:
            raise AssertionError(f"{self.name}: no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt, params)
        return reply


def make_question(topic: str, n: int = 1, points=2, correct: str = "A") -> dict:
    return {
        "question": f"Question {n} about {topic}?",
        "options": {"A": f"{topic} a{n}", "B": f"{topic} b{n}", "C": f"{topic} c{n}", "D": f"{topic} d{n}"},
        "correctAnswer": correct,
        "topic": topic,
        "points": points,
        "explanation": "Because the text says so.",
        "difficulty": "high_school",
        "conceptTested": "recall",
        "learningObjective": "Remember the fact",
        "mobileOptimized": True,
    }


def questions_json(topic: str, count: int, **kw) -> str:
    return json.dumps([make_question(topic, i + 1, **kw) for i in range(count)])


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(openai_api_key="sk-test", shuffle_seed=None)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def fake_backend_factory():
    return FakeBackend
