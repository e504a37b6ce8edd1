from __future__ import annotations

"""Pub/sub bus the exam session uses to notify front ends.

Events and payloads emitted by ``ExamSession``:

* ``started``: the session, after entering active.
* ``selected``: ``(position, option_index)`` when an answer changes.
* ``moved``: the new position.
* ``tick``: seconds remaining on the mock countdown.
* ``submitted``: the scored ``Result``.
* ``reset``: the session, back in setup.

A failing handler is logged and does not stop the others or the session.
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventBus:
    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, event: str, handler: Handler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %r failed", event)
