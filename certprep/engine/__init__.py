from .builder import ALL, SessionBuilder, SessionFilters, apply_filters
from .ledger import AnswerLedger
from .scorer import Result, ReviewItem, score
from .session import NEXT, PREVIOUS, ExamSession, Mode, Phase, SessionConfig, peek_progress
from .timer import Countdown, format_time

__all__ = [
    "ALL",
    "SessionBuilder",
    "SessionFilters",
    "apply_filters",
    "AnswerLedger",
    "Result",
    "ReviewItem",
    "score",
    "NEXT",
    "PREVIOUS",
    "ExamSession",
    "Mode",
    "Phase",
    "SessionConfig",
    "peek_progress",
    "Countdown",
    "format_time",
]
