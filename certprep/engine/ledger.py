from __future__ import annotations

"""Answer ledger: one slot per session question, ``None`` when unanswered."""

from typing import Iterator, List, Optional, Sequence

from ..errors import InvalidSelectionError
from ..questions.models import Question


class AnswerLedger:
    def __init__(self, size: int) -> None:
        self._slots: List[Optional[int]] = [None] * int(size)

    @classmethod
    def from_slots(cls, slots: Sequence[Optional[int]]) -> "AnswerLedger":
        ledger = cls(len(slots))
        ledger._slots = [None if s is None else int(s) for s in slots]
        return ledger

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, index: int) -> Optional[int]:
        return self._slots[index]

    def __iter__(self) -> Iterator[Optional[int]]:
        return iter(self._slots)

    def record(self, position: int, option_index: int, question: Question) -> bool:
        """Write a selection; returns False when the slot already held it."""
        if not question.has_option(option_index):
            raise InvalidSelectionError(option_index, len(question.options))
        if self._slots[position] == option_index:
            return False
        self._slots[position] = option_index
        return True

    def clear(self) -> None:
        self._slots = [None] * len(self._slots)

    def answered_count(self) -> int:
        return sum(1 for s in self._slots if s is not None)

    def first_unanswered(self) -> Optional[int]:
        for i, s in enumerate(self._slots):
            if s is None:
                return i
        return None

    def next_unanswered(self, after: int) -> Optional[int]:
        """First unanswered slot after ``after``, wrapping around to the start."""
        n = len(self._slots)
        for step in range(1, n + 1):
            i = (after + step) % n
            if self._slots[i] is None:
                return i
        return None

    def is_consistent_with(self, questions: Sequence[Question]) -> bool:
        if len(questions) != len(self._slots):
            return False
        return all(s is None or q.has_option(s) for s, q in zip(self._slots, questions))

    def to_list(self) -> List[Optional[int]]:
        return list(self._slots)
