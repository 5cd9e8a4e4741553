# topics.py

import re
from typing import Iterable, Pattern, Tuple

from schema_models import ContentChunk

# Matched at word starts, so "math" also catches "Mathematics" and "mathematical".
# Plain "biology" is absent: descriptive life-science topics use the
# generic prompt; the quantitative ones are listed explicitly.
STEM_KEYWORDS: Tuple[str, ...] = (
    "math", "calculus", "algebra", "geometry", "trigonometry", "arithmetic",
    "differential equation", "linear algebra", "matrix", "matrices", "vector",
    "theorem", "number theory",
    "physics", "mechanics", "thermodynamics", "electromagnet", "optics", "relativity",
    "chemistry", "chemical", "stoichiometry", "biochemistry", "biophysics",
    "bioinformatics", "biostatistics", "computational biology", "genomics",
    "computer science", "computing", "programming", "coding", "software",
    "python", "javascript", "java", "sql", "database", "data structure",
    "engineering", "electronics", "circuit",
    "statistics", "statistical", "probability", "econometrics", "economics",
    "finance", "data science", "data analysis", "machine learning", "deep learning",
    "neural network", "artificial intelligence", "ai", "ml", "quantum", "algorithm",
    "cryptography",
)


class StemClassifier:
    """Decides whether topics need the STEM (LaTeX) prompt and STEM model routing."""

    def is_stem(self, description: str) -> bool:
        raise NotImplementedError

    def contains_stem(self, chunk: ContentChunk) -> bool:
        return any(self.is_stem(t.description) for t in chunk.topics)


class KeywordStemClassifier(StemClassifier):
    """Case-insensitive keyword heuristic. Approximate by nature."""

    def __init__(self, keywords: Iterable[str] = STEM_KEYWORDS):
        self.keywords = tuple(k.lower() for k in keywords)
        self._patterns: Tuple[Pattern, ...] = tuple(self._compile(k) for k in self.keywords)

    @staticmethod
    def _compile(keyword: str) -> Pattern:
        # short acronyms would match inside ordinary words ("ai" in "chain")
        if len(keyword) <= 3:
            return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)
        return re.compile(rf"\b{re.escape(keyword)}", re.IGNORECASE)

    def is_stem(self, description: str) -> bool:
        if not description:
            return False
        return any(p.search(description) for p in self._patterns)


DEFAULT_CLASSIFIER = KeywordStemClassifier()


def is_stem_topic(description: str) -> bool:
    return DEFAULT_CLASSIFIER.is_stem(description)


def contains_stem_topics(chunk: ContentChunk) -> bool:
    return DEFAULT_CLASSIFIER.contains_stem(chunk)
