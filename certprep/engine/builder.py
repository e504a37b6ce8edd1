from __future__ import annotations

"""Session Builder: turn a question pool into an ordered session list.

Practice sessions take the filtered pool as-is. Mock exams draw one random
question per canonical category present in the pool, fill the remaining
slots by sampling the rest of the pool, shuffle the lot and truncate to the
requested size.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from ..questions.models import CANONICAL_CATEGORIES, Question
from ..util.randomness import make_rng, sample, shuffle_in_place

logger = logging.getLogger(__name__)

ALL = "all"


@dataclass(frozen=True)
class SessionFilters:
    category: str = ALL
    difficulty: str = ALL

    def matches(self, q: Question) -> bool:
        return (self.category == ALL or q.category == self.category) and (
            self.difficulty == ALL or q.difficulty == self.difficulty
        )

    def as_dict(self) -> Dict[str, str]:
        return {"category": self.category, "difficulty": self.difficulty}


def apply_filters(pool: Sequence[Question], filters: Optional[SessionFilters]) -> List[Question]:
    if filters is None:
        return list(pool)
    return [q for q in pool if filters.matches(q)]


class SessionBuilder:
    def __init__(
        self,
        categories: Sequence[str] = CANONICAL_CATEGORIES,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.categories = tuple(categories)
        self.rng = rng or make_rng()

    def build(
        self,
        pool: Sequence[Question],
        target_size: Optional[int] = None,
        *,
        balanced: bool = False,
        filters: Optional[SessionFilters] = None,
    ) -> List[Question]:
        """Build the ordered question list for one session.

        Args:
            pool: The fetched question pool; never mutated.
            target_size: Requested session size. Ignored in practice mode.
            balanced: Apply the mock-exam category quota and shuffle.
            filters: Category / difficulty filters applied before anything else.

        Returns:
            The session's questions; empty when nothing survives the filters.
        """
        filtered = apply_filters(pool, filters)
        if not filtered:
            logger.info("No questions match filters %s", filters.as_dict() if filters else None)
            return []
        if not balanced:
            return filtered
        size = len(filtered) if target_size is None else max(0, int(target_size))
        return self._balanced(filtered, size)

    def build_practice(self, pool: Sequence[Question], filters: Optional[SessionFilters] = None) -> List[Question]:
        return self.build(pool, filters=filters)

    def build_mock(
        self, pool: Sequence[Question], target_size: int, filters: Optional[SessionFilters] = None
    ) -> List[Question]:
        return self.build(pool, target_size, balanced=True, filters=filters)

    def _balanced(self, filtered: List[Question], size: int) -> List[Question]:
        by_category: Dict[str, List[Question]] = {}
        for q in filtered:
            by_category.setdefault(q.category, []).append(q)

        selected: List[Question] = []
        for category in self.categories:
            qs = by_category.get(category)
            if qs:
                selected.append(self.rng.choice(qs))

        # identity, not equality: two distinct records may compare equal
        taken = {id(q) for q in selected}
        remaining = [q for q in filtered if id(q) not in taken]
        selected.extend(sample(remaining, size - len(selected), self.rng))

        shuffle_in_place(selected, self.rng)
        return selected[:size]
