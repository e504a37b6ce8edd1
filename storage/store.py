from __future__ import annotations

"""Parquet-backed archive of submitted mock-exam results."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import pandas as pd

from .schema import ANSWER_DTYPES, RESULT_DTYPES, ResultRow


RESULTS_FILE = "exam_results.parquet"
ANSWERS_FILE = "exam_answers.parquet"


def _empty_df(dtypes: Dict[str, Any]) -> pd.DataFrame:
    return pd.DataFrame({k: pd.Series(dtype=v) for k, v in dtypes.items()})


def _fix_dtypes(df: pd.DataFrame, dtypes: Dict[str, Any]) -> pd.DataFrame:
    for col, dt in dtypes.items():
        if col not in df.columns:
            df[col] = pd.NA
        df[col] = df[col].astype(dt)
    return df[list(dtypes.keys())]


def init_store(data_dir: Path) -> None:
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    for name, dtypes in ((RESULTS_FILE, RESULT_DTYPES), (ANSWERS_FILE, ANSWER_DTYPES)):
        f = data_dir / name
        if not f.exists():
            _empty_df(dtypes).to_parquet(f, engine="pyarrow", compression="zstd", index=False)


def _append(df_new: pd.DataFrame, f: Path, dtypes: Dict[str, Any]) -> None:
    if f.exists():
        df_old = pd.read_parquet(f, engine="pyarrow")
    else:
        df_old = _empty_df(dtypes)
    combined = pd.concat([_fix_dtypes(df_old, dtypes), _fix_dtypes(df_new.copy(), dtypes)], ignore_index=True)
    combined.to_parquet(f, engine="pyarrow", compression="zstd", index=False)


def append_result(payload: Dict[str, Any], data_dir: Path, *, submitted_at: Optional[datetime] = None) -> str:
    """Archive one submission payload; returns the generated session id."""
    data_dir = Path(data_dir)
    init_store(data_dir)
    sid = str(uuid4())
    row = ResultRow(
        session_id=sid,
        submitted_at=submitted_at or datetime.now(timezone.utc),
        user_id=payload.get("user_id"),
        score=int(payload["score"]),
        total=int(payload["total_questions"]),
        duration_s=int(payload.get("duration_seconds", 0)),
    )
    _append(pd.DataFrame([row.model_dump()]), data_dir / RESULTS_FILE, RESULT_DTYPES)

    answers = [
        {
            "session_id": sid,
            "position": i,
            "question_id": str(a["question_id"]),
            "selected_index": int(a["selected_index"]),
            "correct_index": int(a["correct_index"]),
            "is_correct": bool(a["is_correct"]),
        }
        for i, a in enumerate(payload.get("answers", []))
    ]
    if answers:
        _append(pd.DataFrame(answers), data_dir / ANSWERS_FILE, ANSWER_DTYPES)
    return sid


def load_results(data_dir: Path) -> pd.DataFrame:
    f = Path(data_dir) / RESULTS_FILE
    if not f.exists():
        return _empty_df(RESULT_DTYPES).assign(acc=pd.Series(dtype="float32"))
    df = _fix_dtypes(pd.read_parquet(f, engine="pyarrow"), RESULT_DTYPES)
    total = df["total"].astype("float32").where(df["total"] > 0, other=1.0)
    df["acc"] = (df["score"].astype("float32") / total).astype("float32")
    return df.sort_values("submitted_at").reset_index(drop=True)


def load_answers(data_dir: Path, session_id: Optional[str] = None) -> pd.DataFrame:
    f = Path(data_dir) / ANSWERS_FILE
    if not f.exists():
        return _empty_df(ANSWER_DTYPES)
    df = _fix_dtypes(pd.read_parquet(f, engine="pyarrow"), ANSWER_DTYPES)
    if session_id is not None:
        df = df[df["session_id"] == session_id]
    return df.sort_values(["session_id", "position"]).reset_index(drop=True)


def export_ndjson(df: pd.DataFrame, out_path: Path) -> None:
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_json(out_path, orient="records", lines=True, date_format="iso")
