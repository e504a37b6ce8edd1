from __future__ import annotations

"""Result submission collaborators.

Sending a finished mock exam never blocks the session: the payload is handed
to a dispatcher (a daemon thread by default) and failures are only logged.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import requests

from storage.store import append_result

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]


class ResultSink(Protocol):
    def send(self, payload: Dict[str, Any]) -> None:
        ...


class HttpResultSink:
    """POSTs the payload as JSON to a results endpoint."""

    def __init__(self, endpoint: str, timeout_s: float = 10, session: Optional[requests.Session] = None) -> None:
        self.endpoint = endpoint
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def send(self, payload: Dict[str, Any]) -> None:
        response = self.session.post(self.endpoint, json=payload, timeout=self.timeout_s)
        response.raise_for_status()


class ArchiveResultSink:
    """Appends results to the local Parquet archive."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.last_session_id: Optional[str] = None

    def send(self, payload: Dict[str, Any]) -> None:
        self.last_session_id = append_result(payload, self.data_dir)


class FanOutSink:
    """Sends to every sink; one failing does not stop the others."""

    def __init__(self, sinks: Sequence[ResultSink]) -> None:
        self.sinks: List[ResultSink] = list(sinks)

    def send(self, payload: Dict[str, Any]) -> None:
        for sink in self.sinks:
            _send_logged(sink, payload)


def _send_logged(sink: ResultSink, payload: Dict[str, Any]) -> bool:
    try:
        sink.send(payload)
    except (requests.RequestException, OSError, ValueError) as exc:
        logger.error("Failed to submit exam results via %s: %s", type(sink).__name__, exc)
        return False
    logger.info("Exam results submitted via %s", type(sink).__name__)
    return True


def thread_dispatch(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, name="result-submit", daemon=True).start()


def inline_dispatch(fn: Callable[[], None]) -> None:
    fn()


class BackgroundDispatcher:
    """Thread dispatch that remembers its workers so a process can drain them before exit."""

    def __init__(self) -> None:
        self._threads: List[threading.Thread] = []

    def __call__(self, fn: Callable[[], None]) -> None:
        t = threading.Thread(target=fn, name="result-submit", daemon=True)
        self._threads.append(t)
        t.start()

    def join(self, timeout_s: Optional[float] = None) -> None:
        for t in self._threads:
            t.join(timeout_s)
        self._threads = [t for t in self._threads if t.is_alive()]


def submit_results(sink: ResultSink, payload: Dict[str, Any], dispatch: Dispatch = thread_dispatch) -> None:
    dispatch(lambda: _send_logged(sink, payload))


def make_sink_from_config(cfg: Dict[str, Any]) -> Optional[ResultSink]:
    results = cfg.get("results", {})
    sinks: List[ResultSink] = []
    endpoint = results.get("endpoint")
    if endpoint:
        sinks.append(HttpResultSink(str(endpoint), timeout_s=float(results.get("timeout_s", 10))))
    if results.get("archive", True):
        sinks.append(ArchiveResultSink(cfg.get("storage", {}).get("archive_dir", "./storage/data")))
    if not sinks:
        return None
    return sinks[0] if len(sinks) == 1 else FanOutSink(sinks)
