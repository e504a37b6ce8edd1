import json
import logging
import tempfile
import unittest
from pathlib import Path

from pymongo.errors import ServerSelectionTimeoutError

from certprep.questions.source import (
    InMemoryQuestionSource,
    JsonQuestionSource,
    MongoQuestionSource,
    apply_tier_limit,
)

from factories import make_pool, question_doc


class _FakeCursor:
    def __init__(self, docs):
        self.docs = list(docs)
        self.limited_to = None

    def limit(self, n):
        self.limited_to = n
        self.docs = self.docs[:n]
        return self

    def __iter__(self):
        return iter(self.docs)


class _FakeCollection:
    def __init__(self, docs, fail=False):
        self.docs = docs
        self.fail = fail
        self.last_cursor = None

    def find(self, query):
        if self.fail:
            raise ServerSelectionTimeoutError("no servers")
        self.last_cursor = _FakeCursor(self.docs)
        return self.last_cursor


class TierLimitTests(unittest.TestCase):
    def test_basic_tier_is_bounded(self) -> None:
        pool = make_pool(per_category=8)
        self.assertEqual(len(apply_tier_limit(pool, "basic", 20)), 20)
        self.assertEqual(len(apply_tier_limit(pool, "pro", 20)), 32)

    def test_in_memory_source_applies_tier(self) -> None:
        src = InMemoryQuestionSource([question_doc(i) for i in range(30)], tier="basic", basic_limit=5)
        self.assertEqual([q.id for q in src.fetch_questions()], [f"q{i:03d}" for i in range(5)])


class JsonSourceTests(unittest.TestCase):
    def test_reads_array(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "questions.json"
            path.write_text(json.dumps([question_doc(i) for i in range(3)]), encoding="utf-8")
            self.assertEqual(len(JsonQuestionSource(path).fetch_questions()), 3)

    def test_missing_file_is_empty_pool(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertLogs("certprep.questions.source", level=logging.ERROR):
                self.assertEqual(JsonQuestionSource(Path(tmp) / "nope.json").fetch_questions(), [])

    def test_invalid_json_is_empty_pool(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "questions.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertLogs("certprep.questions.source", level=logging.ERROR):
                self.assertEqual(JsonQuestionSource(path).fetch_questions(), [])


class MongoSourceTests(unittest.TestCase):
    def test_basic_tier_limits_cursor(self) -> None:
        coll = _FakeCollection([question_doc(i) for i in range(25)])
        out = MongoQuestionSource(coll, tier="basic", basic_limit=20).fetch_questions()
        self.assertEqual(len(out), 20)
        self.assertEqual(coll.last_cursor.limited_to, 20)

    def test_pro_tier_gets_everything(self) -> None:
        coll = _FakeCollection([question_doc(i) for i in range(25)])
        self.assertEqual(len(MongoQuestionSource(coll, tier="pro").fetch_questions()), 25)

    def test_driver_error_is_empty_pool(self) -> None:
        coll = _FakeCollection([], fail=True)
        with self.assertLogs("certprep.questions.source", level=logging.ERROR):
            self.assertEqual(MongoQuestionSource(coll).fetch_questions(), [])


if __name__ == "__main__":
    unittest.main()
