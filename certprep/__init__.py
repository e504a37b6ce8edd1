"""CertPrep package initialization.

Exposes the exam session engine so front ends can simply
`from certprep import ExamSession`.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .errors import (
    CertPrepError,
    ConfigError,
    InvalidSelectionError,
    NoContentError,
    SessionPhaseError,
)
from .questions.models import CANONICAL_CATEGORIES, DIFFICULTIES, Question
from .engine.builder import SessionBuilder, SessionFilters
from .engine.ledger import AnswerLedger
from .engine.scorer import Result, ReviewItem, score
from .engine.session import ExamSession, Mode, Phase, SessionConfig
from .engine.timer import Countdown

__all__ = [
    "__version__",
    "CertPrepError",
    "ConfigError",
    "InvalidSelectionError",
    "NoContentError",
    "SessionPhaseError",
    "CANONICAL_CATEGORIES",
    "DIFFICULTIES",
    "Question",
    "SessionBuilder",
    "SessionFilters",
    "AnswerLedger",
    "Result",
    "ReviewItem",
    "score",
    "ExamSession",
    "Mode",
    "Phase",
    "SessionConfig",
    "Countdown",
]
