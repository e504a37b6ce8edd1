from __future__ import annotations

"""Exam session: the controller for one practice or mock-exam attempt.

Phases run ``setup -> active -> submitted``. ``reset()`` returns to setup from
anywhere; ``retry()`` rebuilds a submitted session and starts it again.

Every change to the ledger, position or phase is written to the mode's
progress slot so an interrupted session can be picked up by ``open()``.
Mutations and timer callbacks share one re-entrant lock, so a timer expiry
and a user submit can never both leave ``active``.
"""

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from storage.progress import ProgressStore, clear_record, load_record, save_record
from storage.schema import PROGRESS_KEYS, ProgressRecord

from ..app.explain import trace as xtrace
from ..errors import SessionPhaseError
from ..questions.models import Question
from .builder import SessionBuilder, SessionFilters, apply_filters
from .events import EventBus
from .ledger import AnswerLedger
from .scorer import Result, score
from .submission import Dispatch, ResultSink, submit_results, thread_dispatch
from .timer import Countdown, format_time

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    SETUP = "setup"
    ACTIVE = "active"
    SUBMITTED = "submitted"


class Mode(str, Enum):
    PRACTICE = "practice"
    MOCK = "mock"


PREVIOUS = "previous"
NEXT = "next"


@dataclass(frozen=True)
class SessionConfig:
    mode: Mode = Mode.PRACTICE
    target_size: Optional[int] = None
    duration_s: Optional[int] = None
    filters: SessionFilters = field(default_factory=SessionFilters)
    user_id: Optional[str] = None

    @classmethod
    def practice(cls, category: str = "all", difficulty: str = "all", **kwargs: Any) -> "SessionConfig":
        return cls(mode=Mode.PRACTICE, filters=SessionFilters(category, difficulty), **kwargs)

    @classmethod
    def mock(cls, target_size: int = 5, duration_s: Optional[int] = 600, **kwargs: Any) -> "SessionConfig":
        return cls(mode=Mode.MOCK, target_size=target_size, duration_s=duration_s, **kwargs)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], mode: Mode | str, **overrides: Any) -> "SessionConfig":
        mode = Mode(mode)
        user_id = cfg.get("user", {}).get("id")
        if mode is Mode.MOCK:
            exam = cfg.get("exam", {})
            base = cls.mock(int(exam.get("question_count", 5)), exam.get("duration_s", 600), user_id=user_id)
        else:
            pr = cfg.get("practice", {})
            base = cls.practice(pr.get("category", "all"), pr.get("difficulty", "all"), user_id=user_id)
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(base, **overrides)

    @property
    def storage_key(self) -> str:
        return PROGRESS_KEYS[self.mode.value]


class ExamSession:
    def __init__(
        self,
        config: SessionConfig,
        store: ProgressStore,
        *,
        builder: Optional[SessionBuilder] = None,
        sink: Optional[ResultSink] = None,
        dispatch: Dispatch = thread_dispatch,
        threaded_timer: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.store = store
        self.builder = builder or SessionBuilder()
        self.sink = sink
        self.dispatch = dispatch
        self.clock = clock
        self.events = EventBus()

        self._lock = threading.RLock()
        self.countdown = Countdown(threaded=threaded_timer, lock=self._lock)

        self._pool: List[Question] = []
        self.questions: List[Question] = []
        self.ledger = AnswerLedger(0)
        self.position = 0
        self.phase = Phase.SETUP
        self.started_at: Optional[datetime] = None
        self._started_clock: Optional[float] = None
        self.result: Optional[Result] = None
        self.has_saved_progress = False
        self.submit_count = 0

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def mode(self) -> Mode:
        return self.config.mode

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.position]

    @property
    def current_answer(self) -> Optional[int]:
        if not self.questions:
            return None
        return self.ledger[self.position]

    @property
    def has_content(self) -> bool:
        return bool(self.questions)

    @property
    def is_last(self) -> bool:
        return self.position == len(self.questions) - 1

    @property
    def answered_count(self) -> int:
        return self.ledger.answered_count()

    @property
    def progress_percent(self) -> float:
        if not self.questions:
            return 0.0
        return (self.position + 1) / len(self.questions) * 100

    @property
    def remaining_s(self) -> Optional[int]:
        if self.config.duration_s is None:
            return None
        return self.countdown.remaining

    def time_left(self) -> str:
        remaining = self.remaining_s
        return format_time(remaining) if remaining is not None else ""

    def elapsed_seconds(self) -> int:
        if self.mode is Mode.MOCK and self.config.duration_s is not None:
            return int(self.config.duration_s) - self.countdown.remaining
        if self._started_clock is None:
            return 0
        return int(self.clock() - self._started_clock)

    def review(self) -> Result:
        """Score the ledger as it stands; safe to call on every render."""
        return score(self.questions, self.ledger, self.elapsed_seconds())

    def get_result(self) -> Result:
        if self.phase is not Phase.SUBMITTED or self.result is None:
            raise SessionPhaseError(f"no result in phase {self.phase.value}")
        return self.result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def open(self, pool: Sequence[Question], *, autostart: bool = False) -> bool:
        """Build the session for ``pool`` and resume saved progress if it fits.

        Returns True when a saved record was applied. Otherwise the session is
        fresh (setup phase, empty ledger, position 0) and, with ``autostart``,
        immediately started.
        """
        with self._lock:
            self.countdown.stop()
            self._pool = list(pool)
            self.result = None
            self.has_saved_progress = False
            record = load_record(self.store, self.config.storage_key)
            if record is not None and record.phase != Phase.SETUP.value and self._hydrate(record):
                return True
            if record is not None:
                logger.info("Saved %s progress does not fit the current question set; starting fresh", self.mode.value)
                xtrace("progress_discarded", {"mode": self.mode.value, "saved": len(record.answers)})
            self._init_fresh(self._build())
        if autostart and self.questions:
            self.start()
        return False

    def start(self, pool: Optional[Sequence[Question]] = None) -> bool:
        """Build a new question list and enter ``active``.

        Returns False, staying in setup, when no questions are available.
        """
        with self._lock:
            self.countdown.stop()
            if pool is not None:
                self._pool = list(pool)
            questions = self._build()
            clear_record(self.store, self.config.storage_key)
            self._init_fresh(questions)
            if not questions:
                logger.warning("No questions available for %s session; staying in setup", self.mode.value)
                return False
            self.phase = Phase.ACTIVE
            self.started_at = datetime.now(timezone.utc)
            self._started_clock = self.clock()
            self._persist()
            xtrace("session_started", {"mode": self.mode.value, "questions": len(questions)})
            if self.config.duration_s is not None:
                self.countdown.start(int(self.config.duration_s), self._on_tick, self._on_expire)
            self.events.emit("started", self)
            return True

    def select(self, option_index: int) -> bool:
        """Record an answer for the current question.

        Returns False when the session is not active. Raises
        ``InvalidSelectionError`` for an index outside the option range.
        """
        with self._lock:
            if self.phase is not Phase.ACTIVE:
                logger.debug("select(%s) ignored in phase %s", option_index, self.phase.value)
                return False
            question = self.questions[self.position]
            if self.ledger.record(self.position, int(option_index), question):
                self._persist()
                xtrace("selected", {"position": self.position, "option": option_index})
                self.events.emit("selected", (self.position, option_index))
            return True

    def advance(self, direction: str = NEXT) -> int:
        """Move one question back or forward; ``next`` on the last question submits."""
        with self._lock:
            if self.phase is not Phase.ACTIVE:
                return self.position
            if direction == PREVIOUS:
                return self._move_to(self.position - 1)
            if direction != NEXT:
                raise ValueError(f"Unknown direction: {direction!r}")
            if self.is_last:
                self.submit()
                return self.position
            return self._move_to(self.position + 1)

    def go_to(self, index: int) -> int:
        with self._lock:
            if self.phase is not Phase.ACTIVE:
                return self.position
            return self._move_to(index)

    def go_to_first_unanswered(self) -> int:
        with self._lock:
            idx = self.ledger.first_unanswered()
            return self.go_to(idx) if idx is not None else self.position

    def go_to_next_unanswered(self) -> int:
        with self._lock:
            idx = self.ledger.next_unanswered(self.position)
            return self.go_to(idx) if idx is not None else self.position

    def submit(self, cause: str = "user") -> Optional[Result]:
        """Leave ``active`` and score the session.

        Returns None when the session was not active, so a late timer expiry
        racing a user submit is a no-op.
        """
        with self._lock:
            if self.phase is not Phase.ACTIVE:
                return None
            self.countdown.stop()
            self.phase = Phase.SUBMITTED
            self.submit_count += 1
            self.result = score(self.questions, self.ledger, self.elapsed_seconds())
            self._persist()
            xtrace("submitted", {"cause": cause, "score": self.result.correct, "total": self.result.total})
            logger.info(
                "%s session submitted (%s): %d/%d",
                self.mode.value,
                cause,
                self.result.correct,
                self.result.total,
            )
            if self.mode is Mode.MOCK and self.sink is not None:
                submit_results(self.sink, self.result.to_submission(self.config.user_id), self.dispatch)
            result = self.result
        self.events.emit("submitted", result)
        return result

    def reset(self) -> None:
        """Drop saved progress and return to setup."""
        with self._lock:
            self.countdown.stop()
            clear_record(self.store, self.config.storage_key)
            self._init_fresh(self.questions)
            xtrace("reset", {"mode": self.mode.value})
        self.events.emit("reset", self)

    def retry(self) -> bool:
        """Rebuild a submitted session from the pool and start it again."""
        with self._lock:
            if self.phase is not Phase.SUBMITTED:
                raise SessionPhaseError(f"retry requires a submitted session, not {self.phase.value}")
            self.reset()
            return self.start()

    def set_filters(self, filters: SessionFilters) -> bool:
        """Swap practice filters and rebuild; saved progress is kept only if it still fits."""
        with self._lock:
            self.config = replace(self.config, filters=filters)
            return self.open(self._pool, autostart=True)

    def close(self) -> None:
        """Tear down: no timer callback runs after this returns."""
        self.countdown.stop()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _build(self) -> List[Question]:
        if self.mode is Mode.MOCK:
            return self.builder.build_mock(self._pool, int(self.config.target_size or 0), self.config.filters)
        return self.builder.build_practice(self._pool, self.config.filters)

    def _init_fresh(self, questions: Sequence[Question]) -> None:
        self.questions = list(questions)
        self.ledger = AnswerLedger(len(self.questions))
        self.position = 0
        self.phase = Phase.SETUP
        self.result = None
        self.started_at = None
        self._started_clock = None
        self.has_saved_progress = False

    def _hydrate(self, record: ProgressRecord) -> bool:
        questions = self._questions_for(record)
        if questions is None or len(record.answers) != len(questions):
            return False
        ledger = AnswerLedger.from_slots(record.answers)
        if not ledger.is_consistent_with(questions):
            logger.warning("Saved answers are out of range for the current questions; discarding")
            return False

        self.questions = questions
        self.ledger = ledger
        self.position = record.current if record.current < len(questions) else 0
        self.phase = Phase(record.phase)
        self.has_saved_progress = True
        self.started_at = None
        self._started_clock = self.clock()
        xtrace("session_hydrated", {"mode": self.mode.value, "answered": ledger.answered_count(), "phase": record.phase})

        if self.phase is Phase.SUBMITTED:
            if self.config.duration_s is not None:
                self.countdown.preset(int(self.config.duration_s), record.remaining_s or 0)
            self.result = score(self.questions, self.ledger, self.elapsed_seconds())
        elif self.config.duration_s is not None:
            remaining = record.remaining_s if record.remaining_s is not None else int(self.config.duration_s)
            self.countdown.start(min(remaining, int(self.config.duration_s)), self._on_tick, self._on_expire)
        return True

    def _questions_for(self, record: ProgressRecord) -> Optional[List[Question]]:
        """Question list a saved record refers to, or None if the pool no longer has it."""
        if self.mode is Mode.MOCK:
            if not record.question_ids:
                return None
            expected = min(int(self.config.target_size or 0), len(apply_filters(self._pool, self.config.filters)))
            if len(record.answers) != expected:
                return None
            by_id = {q.id: q for q in self._pool}
            if not all(qid in by_id for qid in record.question_ids):
                return None
            return [by_id[qid] for qid in record.question_ids]
        questions = self._build()
        if record.question_ids is not None and record.question_ids != [q.id for q in questions]:
            return None
        return questions

    def _move_to(self, index: int) -> int:
        index = max(0, min(int(index), len(self.questions) - 1))
        if index != self.position:
            self.position = index
            self._persist()
            self.events.emit("moved", index)
        return self.position

    def _persist(self) -> None:
        if self.phase is Phase.SETUP:
            return
        record = ProgressRecord(
            answers=self.ledger.to_list(),
            current=self.position,
            phase=self.phase.value,
            question_ids=[q.id for q in self.questions],
            remaining_s=self.remaining_s,
        )
        try:
            save_record(self.store, self.config.storage_key, record)
        except OSError as exc:
            logger.error("Could not save %s progress: %s", self.mode.value, exc)

    def _on_tick(self, remaining: int) -> None:
        self._persist()
        self.events.emit("tick", remaining)

    def _on_expire(self) -> None:
        logger.info("Time is up; submitting %s session", self.mode.value)
        self.submit(cause="timer")


def peek_progress(store: ProgressStore, mode: Mode | str = Mode.PRACTICE) -> Optional[Dict[str, Any]]:
    """Summarise a saved slot without building a session (dashboard tiles)."""
    record = load_record(store, PROGRESS_KEYS[Mode(mode).value])
    if record is None or not record.answers:
        return None
    total = len(record.answers)
    return {
        "answered": record.answered,
        "total": total,
        "percent": round(record.answered / total * 100),
        "phase": record.phase,
    }
