from __future__ import annotations

"""Exception hierarchy for CertPrep."""


class CertPrepError(Exception):
    """Base class for all CertPrep errors."""


class ConfigError(CertPrepError):
    pass


class InvalidSelectionError(CertPrepError, ValueError):
    """An option index outside the current question's option range."""

    def __init__(self, index: int, n_options: int) -> None:
        super().__init__(f"option index {index} out of range for {n_options} options")
        self.index = index
        self.n_options = n_options


class SessionPhaseError(CertPrepError):
    """Operation requested in a phase that does not allow it."""


class NoContentError(CertPrepError):
    """No questions are available for the requested filters."""
