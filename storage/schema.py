from __future__ import annotations

"""Schema constants and Pydantic models for persisted progress and archived results."""

from datetime import datetime, timezone
from typing import List, Literal, Optional

import pandas as pd
from pydantic import BaseModel, Field, field_validator, model_validator

# --- Constants ---

MODES = {"practice", "mock"}
PHASES = ("setup", "active", "submitted")

PROGRESS_KEYS = {
    "practice": "practice-progress",
    "mock": "mock-progress",
}

RESULT_DTYPES = {
    "session_id": "string",
    # timezone-aware UTC timestamps
    "submitted_at": pd.DatetimeTZDtype(tz="UTC"),
    "user_id": "string",
    "score": "UInt16",
    "total": "UInt16",
    "duration_s": "UInt32",
}

ANSWER_DTYPES = {
    "session_id": "string",
    "position": "UInt16",
    "question_id": "string",
    "selected_index": "Int16",
    "correct_index": "UInt8",
    "is_correct": "boolean",
}


# --- Pydantic models ---

class ProgressRecord(BaseModel):
    """Snapshot of an in-flight session, serialised into a progress slot."""

    answers: List[Optional[int]]
    current: int = Field(default=0, ge=0)
    phase: Literal["setup", "active", "submitted"] = "active"
    question_ids: Optional[List[str]] = None
    remaining_s: Optional[int] = Field(default=None, ge=0)

    @field_validator("answers")
    @classmethod
    def _non_negative(cls, v: List[Optional[int]]) -> List[Optional[int]]:
        if any(a is not None and a < 0 for a in v):
            raise ValueError("answers must be None or non-negative option indices")
        return v

    @model_validator(mode="after")
    def _ids_match_answers(self) -> "ProgressRecord":
        if self.question_ids is not None and len(self.question_ids) != len(self.answers):
            raise ValueError("question_ids and answers differ in length")
        return self

    @property
    def answered(self) -> int:
        return sum(1 for a in self.answers if a is not None)


class ResultRow(BaseModel):
    session_id: str
    submitted_at: datetime
    user_id: Optional[str] = None
    score: int = Field(ge=0, le=65535)
    total: int = Field(ge=0, le=65535)
    duration_s: int = Field(ge=0, le=4294967295)

    @model_validator(mode="after")
    def _score_le_total(self) -> "ResultRow":
        if self.score > self.total:
            raise ValueError("score must be <= total")
        return self

    @field_validator("submitted_at")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
