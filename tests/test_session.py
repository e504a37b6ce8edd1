import json
import logging
import random
import tempfile
import unittest
from pathlib import Path

from certprep.engine.builder import SessionBuilder, SessionFilters
from certprep.engine.session import NEXT, PREVIOUS, ExamSession, Mode, Phase, SessionConfig, peek_progress
from certprep.engine.submission import inline_dispatch
from certprep.errors import InvalidSelectionError, SessionPhaseError
from storage.progress import FileProgressStore, MemoryProgressStore, load_record
from storage.schema import PROGRESS_KEYS

from factories import make_pool


class _RecordingSink:
    def __init__(self, fail: bool = False) -> None:
        self.payloads = []
        self.fail = fail

    def send(self, payload) -> None:
        if self.fail:
            raise OSError("network unreachable")
        self.payloads.append(payload)


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _practice(store, **kwargs):
    return ExamSession(
        SessionConfig.practice(**kwargs),
        store,
        builder=SessionBuilder(rng=random.Random(0)),
        threaded_timer=False,
    )


def _mock(store, sink=None, target_size=5, duration_s=10):
    return ExamSession(
        SessionConfig.mock(target_size, duration_s, user_id="user-1"),
        store,
        builder=SessionBuilder(rng=random.Random(0)),
        sink=sink,
        dispatch=inline_dispatch,
        threaded_timer=False,
    )


class PracticeSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = make_pool(per_category=3)
        self.store = MemoryProgressStore()
        self.session = _practice(self.store)

    def test_start_enters_active(self) -> None:
        self.assertEqual(self.session.phase, Phase.SETUP)
        self.assertTrue(self.session.start(self.pool))
        self.assertEqual(self.session.phase, Phase.ACTIVE)
        self.assertEqual(self.session.question_count, 12)
        self.assertEqual(self.session.position, 0)
        self.assertEqual(self.session.ledger.to_list(), [None] * 12)
        self.assertIsNotNone(self.store.get(PROGRESS_KEYS["practice"]))

    def test_select_reads_back(self) -> None:
        self.session.start(self.pool)
        for i in range(len(self.session.current_question.options)):
            self.session.select(i)
            self.assertEqual(self.session.ledger[self.session.position], i)
            self.assertEqual(self.session.current_answer, i)

    def test_invalid_selection_raises_and_keeps_ledger(self) -> None:
        self.session.start(self.pool)
        self.session.select(1)
        with self.assertRaises(InvalidSelectionError):
            self.session.select(9)
        self.assertEqual(self.session.current_answer, 1)

    def test_position_stays_in_bounds(self) -> None:
        self.session.start(self.pool)
        self.session.advance(PREVIOUS)
        self.assertEqual(self.session.position, 0)
        for _ in range(11):
            self.session.advance(NEXT)
            self.assertTrue(0 <= self.session.position < self.session.question_count)
        self.assertEqual(self.session.position, 11)
        self.assertEqual(self.session.go_to(99), 11)
        self.assertEqual(self.session.go_to(-4), 0)

    def test_next_on_last_submits(self) -> None:
        self.session.start(self.pool)
        self.session.go_to(11)
        self.session.advance(NEXT)
        self.assertEqual(self.session.phase, Phase.SUBMITTED)
        self.assertEqual(self.session.get_result().total, 12)
        self.assertEqual(self.session.position, 11)

    def test_unknown_direction(self) -> None:
        self.session.start(self.pool)
        with self.assertRaises(ValueError):
            self.session.advance("sideways")

    def test_submit_only_once(self) -> None:
        self.session.start(self.pool)
        self.session.select(self.pool[0].correct_index)
        result = self.session.submit()
        self.assertEqual(result.correct, 1)
        self.assertIsNone(self.session.submit())
        self.assertEqual(self.session.submit_count, 1)

    def test_select_after_submit_is_noop(self) -> None:
        self.session.start(self.pool)
        self.session.submit()
        self.assertFalse(self.session.select(0))
        self.assertEqual(self.session.ledger.answered_count(), 0)

    def test_unanswered_jumps(self) -> None:
        self.session.start(self.pool)
        self.session.select(0)
        self.session.advance(NEXT)
        self.session.select(0)
        self.session.go_to(5)
        self.assertEqual(self.session.go_to_next_unanswered(), 6)
        self.assertEqual(self.session.go_to_first_unanswered(), 2)

    def test_progress_indicators(self) -> None:
        self.session.start(self.pool)
        self.session.go_to(2)
        self.assertEqual(self.session.progress_percent, 25.0)
        self.session.select(0)
        self.assertEqual(self.session.answered_count, 1)
        self.assertIsNone(self.session.remaining_s)

    def test_every_mutation_persists(self) -> None:
        self.session.start(self.pool)
        self.session.select(2)
        self.session.advance(NEXT)
        record = load_record(self.store, PROGRESS_KEYS["practice"])
        self.assertEqual(record.answers[0], 2)
        self.assertEqual(record.current, 1)
        self.assertEqual(record.phase, "active")

    def test_result_requires_submission(self) -> None:
        self.session.start(self.pool)
        with self.assertRaises(SessionPhaseError):
            self.session.get_result()
        with self.assertRaises(SessionPhaseError):
            self.session.retry()

    def test_elapsed_uses_clock(self) -> None:
        clock = _Clock()
        session = ExamSession(SessionConfig.practice(), self.store, clock=clock, threaded_timer=False)
        session.start(self.pool)
        clock.now += 75
        self.assertEqual(session.submit().elapsed_seconds, 75)


class EmptyContentTests(unittest.TestCase):
    def test_empty_pool_stays_in_setup(self) -> None:
        store = MemoryProgressStore()
        session = _practice(store)
        with self.assertLogs("certprep.engine.session", level=logging.WARNING):
            self.assertFalse(session.start([]))
        self.assertEqual(session.phase, Phase.SETUP)
        self.assertFalse(session.has_content)
        self.assertIsNone(session.current_question)
        self.assertFalse(session.select(0))

    def test_filters_matching_nothing(self) -> None:
        session = _practice(MemoryProgressStore(), category="Networking")
        self.assertFalse(session.open(make_pool(), autostart=True))
        self.assertEqual(session.phase, Phase.SETUP)
        self.assertFalse(session.has_content)


class HydrationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = make_pool(per_category=3)
        self.store = MemoryProgressStore()

    def test_resumes_matching_record(self) -> None:
        first = _practice(self.store)
        first.open(self.pool, autostart=True)
        first.select(1)
        first.go_to(4)
        first.select(2)

        second = _practice(self.store)
        self.assertTrue(second.open(self.pool))
        self.assertTrue(second.has_saved_progress)
        self.assertEqual(second.phase, Phase.ACTIVE)
        self.assertEqual(second.position, 4)
        self.assertEqual(second.ledger[0], 1)
        self.assertEqual(second.ledger[4], 2)

    def test_length_mismatch_starts_fresh(self) -> None:
        first = _practice(self.store)
        first.open(self.pool, autostart=True)
        first.select(1)
        first.go_to(3)

        filtered = _practice(self.store, category="Technology")
        self.assertFalse(filtered.open(self.pool))
        self.assertFalse(filtered.has_saved_progress)
        self.assertEqual(filtered.question_count, 3)
        self.assertEqual(filtered.ledger.to_list(), [None, None, None])
        self.assertEqual(filtered.position, 0)

    def test_record_without_ids_only_needs_matching_length(self) -> None:
        self.store.set(PROGRESS_KEYS["practice"], json.dumps({"answers": [0] + [None] * 11, "current": 30, "phase": "active"}))
        session = _practice(self.store)
        self.assertTrue(session.open(self.pool))
        self.assertEqual(session.position, 0)
        self.assertEqual(session.ledger[0], 0)

    def test_undecodable_progress_file_starts_fresh(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            (Path(tmp) / "practice-progress.json").write_bytes(b"\xff\xfe\x00garbage")
            session = _practice(FileProgressStore(tmp))
            with self.assertLogs("storage.progress", level=logging.WARNING):
                self.assertFalse(session.open(self.pool, autostart=True))
            self.assertEqual(session.phase, Phase.ACTIVE)
            self.assertEqual(session.answered_count, 0)

    def test_out_of_range_answers_discarded(self) -> None:
        self.store.set(PROGRESS_KEYS["practice"], json.dumps({"answers": [7] + [None] * 11, "current": 0, "phase": "active"}))
        session = _practice(self.store)
        with self.assertLogs("certprep.engine.session", level=logging.WARNING):
            self.assertFalse(session.open(self.pool))
        self.assertEqual(session.ledger.answered_count(), 0)

    def test_malformed_record_is_absent(self) -> None:
        self.store.set(PROGRESS_KEYS["practice"], "{this is not json")
        session = _practice(self.store)
        with self.assertLogs("storage.progress", level=logging.WARNING):
            self.assertFalse(session.open(self.pool, autostart=True))
        self.assertEqual(session.phase, Phase.ACTIVE)
        self.assertEqual(session.ledger.to_list(), [None] * 12)

    def test_submitted_record_restores_result(self) -> None:
        first = _practice(self.store)
        first.open(self.pool, autostart=True)
        first.select(self.pool[0].correct_index)
        first.submit()

        second = _practice(self.store)
        self.assertTrue(second.open(self.pool))
        self.assertEqual(second.phase, Phase.SUBMITTED)
        self.assertEqual(second.get_result().correct, 1)

    def test_start_overwrites_record(self) -> None:
        first = _practice(self.store)
        first.open(self.pool, autostart=True)
        first.select(3)
        first.start()
        record = load_record(self.store, PROGRESS_KEYS["practice"])
        self.assertEqual(record.answers, [None] * 12)

    def test_reset_clears_record(self) -> None:
        session = _practice(self.store)
        session.open(self.pool, autostart=True)
        session.select(0)
        session.submit()
        session.reset()
        self.assertEqual(session.phase, Phase.SETUP)
        self.assertIsNone(self.store.get(PROGRESS_KEYS["practice"]))

        fresh = _practice(self.store)
        self.assertFalse(fresh.open(self.pool))
        self.assertFalse(fresh.has_saved_progress)

    def test_set_filters_rebuilds(self) -> None:
        session = _practice(self.store)
        session.open(self.pool, autostart=True)
        session.select(0)
        session.set_filters(SessionFilters(difficulty="medium"))
        self.assertEqual(session.question_count, 4)
        self.assertEqual(session.phase, Phase.ACTIVE)
        self.assertEqual(session.ledger.answered_count(), 0)

    def test_peek_progress(self) -> None:
        self.assertIsNone(peek_progress(self.store))
        session = _practice(self.store)
        session.open(self.pool, autostart=True)
        session.select(0)
        session.advance(NEXT)
        session.select(0)
        summary = peek_progress(self.store, Mode.PRACTICE)
        self.assertEqual(summary, {"answered": 2, "total": 12, "percent": 17, "phase": "active"})


class MockExamTests(unittest.TestCase):
    def setUp(self) -> None:
        self.pool = make_pool(per_category=4)
        self.store = MemoryProgressStore()
        self.sink = _RecordingSink()

    def test_balanced_selection_and_timer(self) -> None:
        session = _mock(self.store, self.sink)
        self.assertTrue(session.start(self.pool))
        self.assertEqual(session.question_count, 5)
        self.assertEqual(len({q.category for q in session.questions}), 4)
        self.assertEqual(session.remaining_s, 10)
        self.assertEqual(session.time_left(), "0:10")

    def test_timer_expiry_submits_once(self) -> None:
        session = _mock(self.store, self.sink)
        submitted = []
        ticks = []
        session.events.subscribe("submitted", submitted.append)
        session.events.subscribe("tick", ticks.append)
        session.start(self.pool)
        session.select(0)
        for _ in range(10):
            session.countdown.tick()
        self.assertEqual(session.phase, Phase.SUBMITTED)
        self.assertEqual(len(submitted), 1)
        self.assertEqual(len(ticks), 10)

        for _ in range(5):
            session.countdown.tick()
        self.assertEqual(len(ticks), 10)
        self.assertFalse(session.select(1))
        self.assertEqual(session.submit_count, 1)
        self.assertEqual(len(self.sink.payloads), 1)
        self.assertEqual(self.sink.payloads[0]["duration_seconds"], 10)

    def test_user_submit_stops_timer(self) -> None:
        session = _mock(self.store, self.sink)
        session.start(self.pool)
        for _ in range(4):
            session.countdown.tick()
        result = session.submit()
        self.assertEqual(result.elapsed_seconds, 4)
        for _ in range(10):
            session.countdown.tick()
        self.assertEqual(session.submit_count, 1)
        self.assertEqual(len(self.sink.payloads), 1)

    def test_payload_contents(self) -> None:
        session = _mock(self.store, self.sink)
        session.start(self.pool)
        q = session.current_question
        session.select(q.correct_index)
        session.submit()
        payload = self.sink.payloads[0]
        self.assertEqual(payload["user_id"], "user-1")
        self.assertEqual(payload["score"], 1)
        self.assertEqual(payload["total_questions"], 5)
        self.assertEqual(payload["answers"][0]["question_id"], q.id)
        self.assertEqual(sum(a["selected_index"] == -1 for a in payload["answers"]), 4)

    def test_sink_failure_keeps_result(self) -> None:
        session = _mock(self.store, _RecordingSink(fail=True))
        session.start(self.pool)
        with self.assertLogs("certprep.engine.submission", level=logging.ERROR):
            result = session.submit()
        self.assertEqual(session.phase, Phase.SUBMITTED)
        self.assertIs(session.get_result(), result)

    def test_practice_never_submits_remotely(self) -> None:
        session = ExamSession(
            SessionConfig.practice(), self.store, sink=self.sink, dispatch=inline_dispatch, threaded_timer=False
        )
        session.start(self.pool)
        session.submit()
        self.assertEqual(self.sink.payloads, [])

    def test_retry_restarts_countdown(self) -> None:
        session = _mock(self.store, self.sink)
        session.start(self.pool)
        first_ids = [q.id for q in session.questions]
        session.submit()
        self.assertTrue(session.retry())
        self.assertEqual(session.phase, Phase.ACTIVE)
        self.assertEqual(session.remaining_s, 10)
        self.assertEqual(session.ledger.answered_count(), 0)
        self.assertEqual(len(session.questions), len(first_ids))
        for _ in range(10):
            session.countdown.tick()
        self.assertEqual(session.submit_count, 2)

    def test_resume_in_progress_mock(self) -> None:
        first = _mock(self.store, self.sink)
        first.start(self.pool)
        first.select(1)
        for _ in range(3):
            first.countdown.tick()
        first.close()

        second = _mock(self.store, self.sink)
        self.assertTrue(second.open(self.pool))
        self.assertEqual([q.id for q in second.questions], [q.id for q in first.questions])
        self.assertEqual(second.ledger[0], 1)
        self.assertEqual(second.remaining_s, 7)
        for _ in range(7):
            second.countdown.tick()
        self.assertEqual(second.phase, Phase.SUBMITTED)
        self.assertEqual(second.get_result().elapsed_seconds, 10)

    def test_resume_needs_questions_still_in_pool(self) -> None:
        first = _mock(self.store, self.sink)
        first.start(self.pool)
        first.close()
        kept = [q for q in self.pool if q.id != first.questions[0].id]
        second = _mock(self.store, self.sink)
        self.assertFalse(second.open(kept))
        self.assertEqual(second.phase, Phase.SETUP)

    def test_resume_rejects_changed_target_size(self) -> None:
        first = _mock(self.store, self.sink, target_size=5)
        first.start(self.pool)
        first.select(1)
        first.close()

        second = _mock(self.store, self.sink, target_size=10)
        self.assertFalse(second.open(self.pool))
        self.assertEqual(second.phase, Phase.SETUP)
        self.assertEqual(second.question_count, 10)
        self.assertEqual(second.answered_count, 0)

    def test_close_stops_timer(self) -> None:
        session = _mock(self.store, self.sink)
        session.start(self.pool)
        session.close()
        for _ in range(20):
            session.countdown.tick()
        self.assertEqual(session.phase, Phase.ACTIVE)
        self.assertEqual(self.sink.payloads, [])


class ConfigFactoryTests(unittest.TestCase):
    def test_from_config(self) -> None:
        cfg = {"exam": {"question_count": 8, "duration_s": 300}, "user": {"id": "u9"}}
        mock = SessionConfig.from_config(cfg, "mock", duration_s=None)
        self.assertEqual((mock.mode, mock.target_size, mock.duration_s, mock.user_id), (Mode.MOCK, 8, 300, "u9"))
        practice = SessionConfig.from_config({"practice": {"difficulty": "hard"}}, Mode.PRACTICE)
        self.assertEqual(practice.filters, SessionFilters("all", "hard"))
        self.assertIsNone(practice.duration_s)
        self.assertEqual(practice.storage_key, "practice-progress")


if __name__ == "__main__":
    unittest.main()
