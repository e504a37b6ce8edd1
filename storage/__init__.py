from .schema import ANSWER_DTYPES, MODES, PHASES, PROGRESS_KEYS, RESULT_DTYPES, ProgressRecord, ResultRow
from .progress import (
    FileProgressStore,
    MemoryProgressStore,
    ProgressStore,
    clear_record,
    load_record,
    save_record,
)
from .store import (
    init_store,
    append_result,
    load_results,
    load_answers,
    export_ndjson,
)

__all__ = [
    "ANSWER_DTYPES",
    "MODES",
    "PHASES",
    "PROGRESS_KEYS",
    "RESULT_DTYPES",
    "ProgressRecord",
    "ResultRow",
    "ProgressStore",
    "FileProgressStore",
    "MemoryProgressStore",
    "load_record",
    "save_record",
    "clear_record",
    "init_store",
    "append_result",
    "load_results",
    "load_answers",
    "export_ndjson",
]
