"""Infrastructure adapter for file-based spend record repository."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import polars as pl

from cost_attribution.ingestion import RECORD_SCHEMA, read_spend_records, write_output_excel

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1
CACHE_PREFERRED_SHEET = "raw"


def _cache_paths(path: Path, cache_dir: Path) -> tuple[Path, Path]:
    path_hash = hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()[:12]
    return (
        cache_dir / f"spend_records_{path_hash}.parquet",
        cache_dir / f"spend_records_{path_hash}.meta.json",
    )


def _cache_key(path: Path) -> dict[str, Any]:
    stat = path.stat()
    return {
        "cache_schema_version": CACHE_SCHEMA_VERSION,
        "input_path": str(path.resolve()),
        "input_mtime_ns": stat.st_mtime_ns,
        "input_size": stat.st_size,
        "preferred_sheet": CACHE_PREFERRED_SHEET,
    }


def _load_cache(frame_path: Path, meta_path: Path, expected_key: dict[str, Any]) -> pl.DataFrame | None:
    if not frame_path.exists() or not meta_path.exists():
        return None
    try:
        meta_obj = json.loads(meta_path.read_text(encoding="utf-8"))
        if not isinstance(meta_obj, dict) or meta_obj.get("cache_key") != expected_key:
            return None
        frame = pl.read_parquet(frame_path)
    except Exception:
        logger.debug("Ignoring unreadable record cache %s", frame_path, exc_info=True)
        return None
    if dict(frame.schema) != RECORD_SCHEMA:
        return None
    return frame


def _save_cache(frame_path: Path, meta_path: Path, frame: pl.DataFrame, cache_key: dict[str, Any]) -> None:
    try:
        frame_path.parent.mkdir(parents=True, exist_ok=True)
        frame.write_parquet(frame_path, compression="zstd")
        meta_path.write_text(json.dumps({"cache_key": cache_key}, ensure_ascii=False), encoding="utf-8")
    except Exception:
        # Cache write failures should not break report generation.
        logger.debug("Skipping record cache write for %s", frame_path, exc_info=True)


def load_spend_frame(path: Path, cache_dir: Path | None = None) -> tuple[pl.DataFrame, dict[str, Any]]:
    """Load normalized spend records, reusing a parquet cache while the source file is unchanged."""
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    if cache_dir is None:
        frame = read_spend_records(path, preferred_sheet=CACHE_PREFERRED_SHEET)
        return frame, {"input_path": str(path), "input_cache_hit": False, "record_count": frame.height}

    key = _cache_key(path)
    frame_cache_path, meta_cache_path = _cache_paths(path, cache_dir)
    cached = _load_cache(frame_cache_path, meta_cache_path, key)
    if cached is not None:
        logger.debug("Record cache hit for %s", path)
        return cached, {"input_path": str(path), "input_cache_hit": True, "record_count": cached.height}

    frame = read_spend_records(path, preferred_sheet=CACHE_PREFERRED_SHEET)
    _save_cache(frame_cache_path, meta_cache_path, frame=frame, cache_key=key)
    return frame, {"input_path": str(path), "input_cache_hit": False, "record_count": frame.height}


def save_output_workbook(path: Path, sheets: dict[str, pl.DataFrame]) -> tuple[bool, str]:
    try:
        write_output_excel(path, sheets)
    except PermissionError as exc:
        return False, str(exc)
    return True, ""
