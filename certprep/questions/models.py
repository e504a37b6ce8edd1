from __future__ import annotations

"""Question record and content constants (Pydantic)."""

import logging
from typing import Any, Iterable, List, Literal, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

# --- Constants ---

DIFFICULTIES = ("easy", "medium", "hard")

CANONICAL_CATEGORIES: Tuple[str, ...] = (
    "Cloud Concepts",
    "Security and Compliance",
    "Technology",
    "Billing and Pricing",
)


# --- Pydantic models ---

class Question(BaseModel):
    """One multiple-choice question as delivered by a question source.

    Accepts both the document-store spelling (``_id``, ``correctIndex``) and
    the snake_case one.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    question: str
    options: Tuple[str, ...] = Field(min_length=2)
    correct_index: int = Field(ge=0, validation_alias=AliasChoices("correct_index", "correctIndex"))
    explanation: str = ""
    category: str
    difficulty: Literal["easy", "medium", "hard"]

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        # ObjectId and ints from the document store
        return str(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _lower_difficulty(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _correct_in_range(self) -> "Question":
        if self.correct_index >= len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} out of range for {len(self.options)} options"
            )
        return self

    def has_option(self, index: int) -> bool:
        return 0 <= index < len(self.options)


def parse_questions(records: Iterable[Any]) -> List[Question]:
    """Validate raw records into Questions, skipping the ones that do not parse."""
    out: List[Question] = []
    for i, rec in enumerate(records):
        if isinstance(rec, Question):
            out.append(rec)
            continue
        try:
            out.append(Question.model_validate(rec))
        except ValidationError as exc:
            logger.warning("Skipping malformed question record #%d: %s", i, exc.errors()[0].get("msg"))
    return out
