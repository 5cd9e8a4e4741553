# prompts.py

import json
from typing import Dict, Mapping, Optional

from config import DIFFICULTY_GUIDELINES
from schema_models import ContentChunk, DifficultyGuideline
from topics import DEFAULT_CLASSIFIER, StemClassifier

# Mobile-first length ceilings (characters)
MAX_QUESTION_CHARS = 150
MAX_OPTION_CHARS = 80
MAX_EXPLANATION_CHARS = 300

QUIZ_SYSTEM = """You are an expert assessment author.
Generate multiple-choice questions in valid JSON format. Each question must belong to one of the specified topics and follow the exact format requested.
It is CRITICAL that you generate EXACTLY the number of questions requested for each topic - no more, no less.
Return ONLY a JSON array. No prose, no code fences, no markdown."""

STEM_QUIZ_SYSTEM = """You are an expert STEM educator and assessment author.
Generate multiple-choice questions in valid JSON format, writing all mathematical notation in LaTeX.
Each question must belong to one of the specified topics and follow the exact format requested.
It is CRITICAL that you generate EXACTLY the number of questions requested for each topic - no more, no less.
Return ONLY a JSON array. No prose, no code fences, no markdown.
Inside JSON strings every LaTeX backslash must be escaped (write \\\\frac, not \\frac)."""

QUIZ_USER = """Generate EXACTLY {total} multiple-choice questions from the following content, matching the {difficulty} difficulty level.

CONTENT:
{content}

TOPICS AND QUESTION COUNTS: {topics_inline}

DIFFICULTY REQUIREMENTS ({difficulty}):
- Complexity Level: {complexity}
- Language Level: {language}
- Points Range: {points_min}-{points_max} points per question
- Questions should challenge {difficulty_label} level students appropriately

TOPIC DISTRIBUTION (it is CRITICAL that you follow these numbers EXACTLY):
{topic_lines}

HARD CONSTRAINTS:
{constraint_lines}

MOBILE FORMAT:
- Keep each question under {max_question} characters.
- Keep each option under {max_option} characters.
- Keep each explanation under {max_explanation} characters.
- Set "mobileOptimized": true on every question.
{stem_block}
OUTPUT SHAPE (one object per question, inside a JSON array):
{shape}

Return ONLY the JSON array with no additional text."""

STEM_RULES = """
STEM FORMATTING RULES:
- Write ALL mathematical notation in LaTeX: $...$ for inline math, $$...$$ for display equations.
- Use LaTeX in questions, options and explanations alike (e.g. $x^2 + 3x - 4 = 0$, $$\\int_0^1 x^2\\,dx = \\frac{1}{3}$$).
- Explanations must work through the solution step by step, numbering the steps.
- Where a key formula is involved, put it (in LaTeX) in the optional "formula" field.
- Where a diagram or graph would help, describe it in the optional "visualizationPrompt" field.
- Distractors should reflect common calculation or conceptual mistakes.
"""

PROGRAMMING_RULES = """
PROGRAMMING FORMATTING RULES:
- Put inline code, identifiers and expressions in backticks (e.g. `len(items)`).
- Keep code snippets short (at most 6 lines) and name the language when it is not obvious.
- Use \\n for line breaks inside snippets so the JSON stays valid.
- Prefer questions about behaviour and output over syntax trivia.
"""

PROGRAMMING_HINTS = ("programming", "coding", "software", "computer science", "python",
                     "javascript", "java", "sql", "algorithm", "data structure", "database")


def _question_shape(difficulty: str, guideline: DifficultyGuideline, stem: bool) -> str:
    shape: Dict[str, object] = {
        "question": f"Question text matching {difficulty} level",
        "options": {"A": "First option", "B": "Second option", "C": "Third option", "D": "Fourth option"},
        "correctAnswer": "A or B or C or D",
        "topic": "The topic this question belongs to - must match one of the provided topics exactly",
        "points": f"a number between {guideline.points.min} and {guideline.points.max}",
        "explanation": f"Explanation appropriate for {difficulty} level",
        "difficulty": difficulty,
        "conceptTested": "Specific concept being tested",
        "learningObjective": "Clear learning objective",
        "mobileOptimized": True,
    }
    if stem:
        shape["explanation"] = "Step-by-step solution using LaTeX for all math"
        shape["formula"] = "Optional key formula in LaTeX, e.g. $E = mc^2$"
        shape["visualizationPrompt"] = "Optional description of a helpful diagram or graph"
    return json.dumps(shape, ensure_ascii=False, indent=2)


def _mentions_programming(chunk: ContentChunk) -> bool:
    text = " ".join(t.description.lower() for t in chunk.topics)
    return any(h in text for h in PROGRAMMING_HINTS)


def generate_prompt_for_chunk(
    chunk: ContentChunk,
    difficulty: str,
    classifier: Optional[StemClassifier] = None,
    guidelines: Optional[Mapping[str, DifficultyGuideline]] = None,
) -> str:
    """
    Render the user prompt for one chunk. STEM chunks get the LaTeX variant.

    Each topic's exact count appears both in the distribution list and in the
    numbered hard constraints.
    """
    if not chunk.topics:
        raise ValueError("chunk has no topics to generate questions for")
    guideline = (guidelines or DIFFICULTY_GUIDELINES)[difficulty]
    stem = (classifier or DEFAULT_CLASSIFIER).contains_stem(chunk)

    total = chunk.total_questions
    topics_inline = ", ".join(f"{t.description} ({t.numQuestions} questions)" for t in chunk.topics)
    topic_lines = "\n".join(
        f"- {t.description}: EXACTLY {t.numQuestions} questions - no more, no less"
        for t in chunk.topics
    )
    constraint_lines = "\n".join(
        [f"1. Generate EXACTLY {total} questions in total - no more, no less."]
        + [
            f'{i}. For topic "{t.description}", create EXACTLY {t.numQuestions} questions.'
            for i, t in enumerate(chunk.topics, start=2)
        ]
        + [
            f"{len(chunk.topics) + 2}. Every option set has exactly four choices keyed A, B, C and D with one correct answer.",
            f"{len(chunk.topics) + 3}. Use ONLY the supplied content; do not invent facts.",
        ]
    )

    stem_block = ""
    if stem:
        stem_block = STEM_RULES
        if _mentions_programming(chunk):
            stem_block += PROGRAMMING_RULES

    return QUIZ_USER.format(
        total=total,
        difficulty=difficulty,
        difficulty_label=difficulty.replace("_", " "),
        content=chunk.content,
        topics_inline=topics_inline,
        complexity=guideline.complexity,
        language=guideline.language,
        points_min=guideline.points.min,
        points_max=guideline.points.max,
        topic_lines=topic_lines,
        constraint_lines=constraint_lines,
        max_question=MAX_QUESTION_CHARS,
        max_option=MAX_OPTION_CHARS,
        max_explanation=MAX_EXPLANATION_CHARS,
        stem_block=stem_block,
        shape=_question_shape(difficulty, guideline, stem),
    )


def system_prompt_for(stem: bool) -> str:
    return STEM_QUIZ_SYSTEM if stem else QUIZ_SYSTEM
