from __future__ import annotations

"""CLI for CertPrep using ExamSession and the configured question source."""

import argparse
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from storage.progress import FileProgressStore
from storage.store import export_ndjson, load_results

from ..config.config import load_config, validate_config
from ..errors import CertPrepError, InvalidSelectionError, NoContentError
from ..engine.builder import SessionBuilder, SessionFilters
from ..engine.scorer import Result
from ..engine.session import NEXT, PREVIOUS, ExamSession, Mode, Phase, SessionConfig, peek_progress
from ..engine.submission import BackgroundDispatcher, make_sink_from_config
from ..questions.models import Question
from ..questions.source import make_source_from_config
from ..util.randomness import make_rng
from .explain import setup_logging

logger = logging.getLogger(__name__)

UI = Dict[str, Callable[..., Any]]

HELP = "[1-9] answer  n next  p previous  u next unanswered  f first unanswered  s submit  q quit"


def _default_ui() -> UI:
    def ask(prompt: str) -> str:
        return input(prompt)

    def inform(msg: str = "") -> None:
        print(msg)

    return {"ask": ask, "inform": inform}


def _fetch_pool(cfg: Dict[str, Any], questions_file: Optional[str]) -> List[Question]:
    source = make_source_from_config(cfg, path_override=questions_file)
    pool = source.fetch_questions()
    if not pool:
        raise NoContentError("No questions available from the configured source.")
    return pool


def _make_session(
    cfg: Dict[str, Any],
    config: SessionConfig,
    *,
    seed: Optional[int] = None,
    dispatcher: Optional[BackgroundDispatcher] = None,
) -> ExamSession:
    store = FileProgressStore(cfg["storage"]["progress_dir"])
    builder = SessionBuilder(categories=cfg["exam"]["categories"], rng=make_rng(seed))
    sink = make_sink_from_config(cfg) if config.mode is Mode.MOCK else None
    return ExamSession(config, store, builder=builder, sink=sink, dispatch=dispatcher or BackgroundDispatcher())


def _show_question(session: ExamSession, ui: UI) -> None:
    q = session.current_question
    assert q is not None
    inform = ui["inform"]
    header = f"Question {session.position + 1} / {session.question_count}"
    if session.mode is Mode.MOCK and session.remaining_s is not None:
        header += f"    Time Left: {session.time_left()}"
    else:
        header += f"    {round(session.progress_percent)}% Complete"
    inform("")
    inform(header)
    inform(f"Category: {q.category} · Difficulty: {q.difficulty}")
    inform(q.question)
    for i, opt in enumerate(q.options):
        marker = "*" if session.current_answer == i else " "
        inform(f" {marker} {i + 1}. {opt}")


def _show_result(result: Result, ui: UI) -> None:
    inform = ui["inform"]
    inform("")
    inform(f"You scored {result.correct} / {result.total}  ({result.percent:.0f}%)")
    symbols = {"correct": "+", "wrong": "x", "neutral": " "}
    for item in result.items:
        status = "correct" if item.is_correct else ("unanswered" if not item.answered else "wrong")
        inform(f"Q{item.index + 1} [{status}]: {item.question}")
        for i, (opt, mark) in enumerate(zip(item.options, item.option_marks())):
            inform(f"   {symbols[mark]} {i + 1}. {opt}")
        if item.explanation:
            inform(f"   {item.explanation}")


def run_session(session: ExamSession, ui: UI) -> bool:
    """Drive an active session until it is submitted; False if the user quit."""
    ask = ui["ask"]
    inform = ui["inform"]
    while session.phase is Phase.ACTIVE:
        _show_question(session, ui)
        raw = ask(f"{HELP}\n> ").strip().lower()
        # the countdown may have submitted while we were waiting
        if session.phase is not Phase.ACTIVE:
            break
        if raw.isdigit():
            try:
                session.select(int(raw) - 1)
            except InvalidSelectionError as exc:
                inform(f"Invalid choice: {exc}")
        elif raw == "n":
            session.advance(NEXT)
        elif raw == "p":
            session.advance(PREVIOUS)
        elif raw == "u":
            session.go_to_next_unanswered()
        elif raw == "f":
            session.go_to_first_unanswered()
        elif raw == "s":
            session.submit()
        elif raw == "q":
            session.close()
            inform("Progress saved.")
            return False
        elif raw:
            inform(f"Unknown command: {raw}")
    return session.phase is Phase.SUBMITTED


def _cmd_practice(args: argparse.Namespace, cfg: Dict[str, Any], ui: UI) -> int:
    pool = _fetch_pool(cfg, args.questions_file)
    config = SessionConfig.from_config(cfg, Mode.PRACTICE)
    filters = SessionFilters(
        args.category or config.filters.category,
        args.difficulty or config.filters.difficulty,
    )
    session = _make_session(cfg, SessionConfig.from_config(cfg, Mode.PRACTICE, filters=filters), seed=args.seed)
    if args.reset:
        session.store.remove(session.config.storage_key)
    hydrated = session.open(pool, autostart=True)
    if not session.has_content:
        ui["inform"]("No questions match the selected filters.")
        return 1
    if hydrated:
        ui["inform"](f"Resuming saved progress ({session.answered_count}/{session.question_count} answered).")
    if session.phase is Phase.SUBMITTED and session.result is not None:
        _show_result(session.result, ui)
        if ui["ask"]("Start over? [y/N] ").strip().lower() != "y":
            return 0
        session.reset()
        session.start()
    if run_session(session, ui):
        _show_result(session.get_result(), ui)
    return 0


def _cmd_mock(args: argparse.Namespace, cfg: Dict[str, Any], ui: UI) -> int:
    pool = _fetch_pool(cfg, args.questions_file)
    config = SessionConfig.from_config(cfg, Mode.MOCK, target_size=args.questions, duration_s=args.duration)
    dispatcher = BackgroundDispatcher()
    session = _make_session(cfg, config, seed=args.seed, dispatcher=dispatcher)
    session.events.subscribe("submitted", lambda _r: ui["inform"]("\nExam submitted."))
    try:
        if not session.open(pool):
            ui["inform"](f"Mock exam: {cfg['exam']['title']}")
            ui["inform"](f"{config.target_size} questions, {config.duration_s or 0} seconds")
            ui["ask"]("Press Enter to start ")
            if not session.start():
                ui["inform"]("No questions available for a mock exam.")
                return 1
        while True:
            if session.phase is Phase.ACTIVE and not run_session(session, ui):
                return 0
            _show_result(session.get_result(), ui)
            if ui["ask"]("Try again? [y/N] ").strip().lower() != "y":
                return 0
            session.retry()
    finally:
        session.close()
        dispatcher.join(float(cfg["results"].get("timeout_s", 10)) + 5)


def _cmd_progress(args: argparse.Namespace, cfg: Dict[str, Any], ui: UI) -> int:
    store = FileProgressStore(cfg["storage"]["progress_dir"])
    for mode in (Mode.PRACTICE, Mode.MOCK):
        summary = peek_progress(store, mode)
        if summary is None:
            ui["inform"](f"{mode.value}: no saved progress")
        else:
            ui["inform"](
                f"{mode.value}: {summary['answered']}/{summary['total']} answered ({summary['percent']}%), {summary['phase']}"
            )
    return 0


def _cmd_history(args: argparse.Namespace, cfg: Dict[str, Any], ui: UI) -> int:
    data_dir = Path(cfg["storage"]["archive_dir"])
    df = load_results(data_dir)
    if df.empty:
        ui["inform"]("No mock exams taken yet.")
        return 0
    ui["inform"](df[["submitted_at", "score", "total", "duration_s"]].to_string(index=False))
    ui["inform"](f"Exams taken: {len(df)}  Average: {df['acc'].mean() * 100:.0f}%")
    if args.export:
        export_ndjson(df, Path(args.export))
        ui["inform"](f"Exported to {args.export}")
    return 0


def _cmd_categories(args: argparse.Namespace, cfg: Dict[str, Any], ui: UI) -> int:
    pool = _fetch_pool(cfg, args.questions_file)
    by_cat = Counter(q.category for q in pool)
    by_diff = Counter(q.difficulty for q in pool)
    ui["inform"]("Categories:")
    for cat in cfg["exam"]["categories"]:
        ui["inform"](f"  {cat}: {by_cat.get(cat, 0)}")
    for cat in sorted(set(by_cat) - set(cfg["exam"]["categories"])):
        ui["inform"](f"  {cat} (not in exam blueprint): {by_cat[cat]}")
    ui["inform"]("Difficulties:")
    for diff, n in sorted(by_diff.items()):
        ui["inform"](f"  {diff}: {n}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None)
    common.add_argument("--questions-file", dest="questions_file", default=None, help="JSON question file")
    common.add_argument("--explain", action="store_true")
    common.add_argument("--log-level", dest="log_level", default="WARNING")
    common.add_argument("--seed", type=int, default=None)

    p = argparse.ArgumentParser(prog="certprep")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("categories", parents=[common])

    pp = sub.add_parser("practice", parents=[common])
    pp.add_argument("--category", default=None)
    pp.add_argument("--difficulty", default=None)
    pp.add_argument("--reset", action="store_true", help="Discard saved practice progress")

    mp = sub.add_parser("mock", parents=[common])
    mp.add_argument("--questions", type=int, default=None)
    mp.add_argument("--duration", type=int, default=None, help="Countdown in seconds")

    sub.add_parser("progress", parents=[common])

    hp = sub.add_parser("history", parents=[common])
    hp.add_argument("--export", default=None, help="Write history as NDJSON")
    return p


COMMANDS = {
    "categories": _cmd_categories,
    "practice": _cmd_practice,
    "mock": _cmd_mock,
    "progress": _cmd_progress,
    "history": _cmd_history,
}


def main(argv: list[str] | None = None, ui: UI | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, explain=args.explain)
    ui = ui or _default_ui()
    try:
        cfg = validate_config(load_config(args.config))
        return COMMANDS[args.cmd](args, cfg, ui)
    except NoContentError as exc:
        ui["inform"](str(exc))
        return 1
    except CertPrepError as exc:
        logger.error("%s", exc)
        return 2
    except (KeyboardInterrupt, EOFError):
        ui["inform"]("")
        return 130


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
