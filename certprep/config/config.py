from __future__ import annotations

"""Configuration loading and validation for CertPrep.

This module loads YAML configuration, applies defaults, and validates
that enumerations and numeric limits are sane.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..errors import ConfigError
from ..questions.models import CANONICAL_CATEGORIES, DIFFICULTIES
from ..questions.source import DEFAULT_BASIC_LIMIT, TIERS

logger = logging.getLogger(__name__)

ALLOWED_SOURCE_KINDS = {"json", "mongo"}


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        cfg = _load_yaml(Path(path))
    else:
        cfg = _load_yaml(Path(__file__).with_name("defaults.yml"))
    return cfg


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Unknown enum values are replaced by their default with a warning; numeric
    values that cannot describe a session raise ``ConfigError``.
    """
    for section in ("exam", "practice", "source", "storage", "results", "user"):
        if cfg.get(section) is None:
            cfg[section] = {}

    exam = cfg["exam"]
    practice = cfg["practice"]
    source = cfg["source"]
    storage = cfg["storage"]
    results = cfg["results"]

    exam.setdefault("title", "AWS Certified Cloud Practitioner")
    exam.setdefault("question_count", 5)
    exam.setdefault("duration_s", 600)
    exam.setdefault("categories", list(CANONICAL_CATEGORIES))

    practice.setdefault("category", "all")
    practice.setdefault("difficulty", "all")

    source.setdefault("kind", "json")
    source.setdefault("path", "./questions.json")
    source.setdefault("mongo_uri", None)
    source.setdefault("database", "CPDB")
    source.setdefault("collection", "questions")
    source.setdefault("tier", "pro")
    source.setdefault("basic_limit", DEFAULT_BASIC_LIMIT)

    storage.setdefault("progress_dir", "./storage/data/progress")
    storage.setdefault("archive_dir", "./storage/data")

    results.setdefault("endpoint", None)
    results.setdefault("timeout_s", 10)
    results.setdefault("archive", True)

    cfg["user"].setdefault("id", None)

    # Enum validations
    if source["kind"] not in ALLOWED_SOURCE_KINDS:
        logger.warning("Unsupported source kind %r, using 'json'.", source["kind"])
        source["kind"] = "json"
    if source["kind"] == "mongo" and not source.get("mongo_uri"):
        raise ConfigError("source.mongo_uri is required when source.kind is 'mongo'")

    if source["tier"] not in TIERS:
        logger.warning("Unknown access tier %r, using 'basic'.", source["tier"])
        source["tier"] = "basic"

    difficulty = practice.get("difficulty")
    if difficulty != "all" and difficulty not in DIFFICULTIES:
        logger.warning("Unsupported difficulty filter %r, using 'all'.", difficulty)
        practice["difficulty"] = "all"

    # Numeric validations
    try:
        exam["question_count"] = int(exam["question_count"])
        source["basic_limit"] = int(source["basic_limit"])
        if exam["duration_s"] is not None:
            exam["duration_s"] = int(exam["duration_s"])
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid numeric config value: {exc}") from exc
    if exam["question_count"] <= 0:
        raise ConfigError("exam.question_count must be positive")
    if exam["duration_s"] is not None and exam["duration_s"] < 0:
        raise ConfigError("exam.duration_s must not be negative")
    if source["basic_limit"] < 0:
        raise ConfigError("source.basic_limit must not be negative")

    exam["categories"] = [str(c) for c in exam.get("categories") or []]

    return cfg
