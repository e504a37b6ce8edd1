from __future__ import annotations

"""Minimal tracing helpers (Explain Mode).

Enable with the CLI ``--explain`` flag to emit terse one-line JSON records at
session milestones on the ``certprep.explain`` logger.
"""

import json
import logging
from typing import Any, Dict

logger = logging.getLogger("certprep.explain")

_ENABLED = False


def enable(flag: bool = True) -> None:
    global _ENABLED
    _ENABLED = bool(flag)


def enabled() -> bool:
    return _ENABLED


def trace(event: str, payload: Dict[str, Any] | None = None) -> None:
    if not _ENABLED:
        return
    try:
        data = json.dumps(payload or {}, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        data = "{}"
    logger.info("[EXPLAIN] %s :: %s", event, data)


def setup_logging(level: str = "WARNING", *, explain: bool = False) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    enable(explain)
    if explain:
        logger.setLevel(logging.INFO)
