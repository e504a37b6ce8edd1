from .models import CANONICAL_CATEGORIES, DIFFICULTIES, Question, parse_questions
from .source import (
    InMemoryQuestionSource,
    JsonQuestionSource,
    MongoQuestionSource,
    QuestionSource,
    TIERS,
    apply_tier_limit,
    make_source_from_config,
)

__all__ = [
    "CANONICAL_CATEGORIES",
    "DIFFICULTIES",
    "Question",
    "parse_questions",
    "QuestionSource",
    "InMemoryQuestionSource",
    "JsonQuestionSource",
    "MongoQuestionSource",
    "TIERS",
    "apply_tier_limit",
    "make_source_from_config",
]
