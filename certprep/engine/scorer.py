from __future__ import annotations

"""Scorer and review builder.

``score`` is pure: it reads the questions and the ledger and returns a frozen
``Result``. Calling it repeatedly with the same arguments yields equal results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..questions.models import Question


@dataclass(frozen=True)
class ReviewItem:
    index: int
    question_id: str
    question: str
    options: Tuple[str, ...]
    correct_index: int
    selected_index: Optional[int]
    is_correct: bool
    explanation: str
    category: str
    difficulty: str

    @property
    def answered(self) -> bool:
        return self.selected_index is not None

    def option_marks(self) -> List[str]:
        """Per-option marker: ``correct``, ``wrong`` (picked but wrong) or ``neutral``."""
        marks = []
        for i in range(len(self.options)):
            if i == self.correct_index:
                marks.append("correct")
            elif i == self.selected_index:
                marks.append("wrong")
            else:
                marks.append("neutral")
        return marks


@dataclass(frozen=True)
class Result:
    correct: int
    total: int
    elapsed_seconds: int
    items: Tuple[ReviewItem, ...] = field(default_factory=tuple)

    @property
    def unanswered(self) -> int:
        return sum(1 for it in self.items if not it.answered)

    @property
    def percent(self) -> float:
        return (100.0 * self.correct / self.total) if self.total else 0.0

    def to_submission(self, user_id: Optional[str]) -> Dict[str, Any]:
        """Payload for the remote result collaborator."""
        return {
            "user_id": user_id,
            "score": self.correct,
            "total_questions": self.total,
            "duration_seconds": self.elapsed_seconds,
            "answers": [
                {
                    "question_id": it.question_id,
                    "question": it.question,
                    "options": list(it.options),
                    "correct_index": it.correct_index,
                    "selected_index": -1 if it.selected_index is None else it.selected_index,
                    "is_correct": it.is_correct,
                }
                for it in self.items
            ],
        }


def score(questions: Sequence[Question], ledger: Iterable[Optional[int]], elapsed_seconds: int = 0) -> Result:
    slots = list(ledger)
    if len(slots) != len(questions):
        raise ValueError(f"ledger has {len(slots)} slots for {len(questions)} questions")
    items = []
    for i, (q, sel) in enumerate(zip(questions, slots)):
        items.append(
            ReviewItem(
                index=i,
                question_id=q.id,
                question=q.question,
                options=tuple(q.options),
                correct_index=q.correct_index,
                selected_index=sel,
                is_correct=sel is not None and sel == q.correct_index,
                explanation=q.explanation,
                category=q.category,
                difficulty=q.difficulty,
            )
        )
    correct = sum(1 for it in items if it.is_correct)
    return Result(correct=correct, total=len(questions), elapsed_seconds=int(elapsed_seconds), items=tuple(items))
