from __future__ import annotations

"""Question sources.

A source supplies the question pool for a session on demand. The pool is
trimmed by access tier before it reaches the engine: a ``basic`` tier sees a
bounded subset, ``pro`` sees everything. Sources never raise on unavailable
content; they log and hand back an empty list.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .models import Question, parse_questions

logger = logging.getLogger(__name__)

TIERS = {"basic", "pro"}
DEFAULT_BASIC_LIMIT = 20


class QuestionSource(Protocol):
    def fetch_questions(self) -> List[Question]:
        ...


def apply_tier_limit(questions: List[Question], tier: str, basic_limit: int = DEFAULT_BASIC_LIMIT) -> List[Question]:
    if tier == "basic":
        return list(questions[: max(0, int(basic_limit))])
    return list(questions)


class InMemoryQuestionSource:
    def __init__(self, records: Iterable[Any], *, tier: str = "pro", basic_limit: int = DEFAULT_BASIC_LIMIT) -> None:
        self._questions = parse_questions(records)
        self.tier = tier
        self.basic_limit = basic_limit

    def fetch_questions(self) -> List[Question]:
        return apply_tier_limit(self._questions, self.tier, self.basic_limit)


class JsonQuestionSource:
    """Reads a JSON array of question documents from disk on every fetch."""

    def __init__(self, path: str | Path, *, tier: str = "pro", basic_limit: int = DEFAULT_BASIC_LIMIT) -> None:
        self.path = Path(path)
        self.tier = tier
        self.basic_limit = basic_limit

    def fetch_questions(self) -> List[Question]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.error("Question file not found: %s", self.path)
            return []
        except json.JSONDecodeError as exc:
            logger.error("Question file %s is not valid JSON: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            logger.error("Question file %s must hold a JSON array", self.path)
            return []
        return apply_tier_limit(parse_questions(data), self.tier, self.basic_limit)


class MongoQuestionSource:
    """Question documents from a MongoDB collection.

    The collection is injected so callers (and tests) can pass any object with
    a pymongo-compatible ``find(...).limit(n)`` cursor API.
    """

    def __init__(self, collection: Any, *, tier: str = "pro", basic_limit: int = DEFAULT_BASIC_LIMIT) -> None:
        self.collection = collection
        self.tier = tier
        self.basic_limit = basic_limit

    @classmethod
    def from_uri(
        cls,
        uri: str,
        database: str = "CPDB",
        collection: str = "questions",
        **kwargs: Any,
    ) -> "MongoQuestionSource":
        client: MongoClient = MongoClient(uri)
        return cls(client[database][collection], **kwargs)

    def fetch_questions(self) -> List[Question]:
        try:
            cursor = self.collection.find({})
            if self.tier == "basic":
                cursor = cursor.limit(int(self.basic_limit))
            docs = list(cursor)
        except PyMongoError as exc:
            logger.error("Failed to fetch questions from MongoDB: %s", exc)
            return []
        return parse_questions(docs)


def make_source_from_config(cfg: Dict[str, Any], *, path_override: Optional[str] = None) -> QuestionSource:
    src = cfg.get("source", {})
    tier = str(src.get("tier", "pro"))
    limit = int(src.get("basic_limit", DEFAULT_BASIC_LIMIT))
    kind = "json" if path_override else src.get("kind", "json")
    if kind == "mongo":
        return MongoQuestionSource.from_uri(
            src["mongo_uri"],
            database=src.get("database", "CPDB"),
            collection=src.get("collection", "questions"),
            tier=tier,
            basic_limit=limit,
        )
    return JsonQuestionSource(path_override or src.get("path", "questions.json"), tier=tier, basic_limit=limit)
