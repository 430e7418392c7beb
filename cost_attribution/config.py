"""Environment-driven settings for ingestion and the default cost query."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

from cost_attribution.domain.models import DEFAULT_DIMENSION, CostQuery, parse_apps

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_INPUT_PATH = PROJECT_ROOT / "data" / "raw" / "spend.csv"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "output"

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def parse_error_threshold() -> float:
    raw = os.getenv("COST_ATTRIBUTION_PARSE_ERROR_THRESHOLD", "0.01")
    try:
        threshold = float(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid COST_ATTRIBUTION_PARSE_ERROR_THRESHOLD: {raw}") from exc
    if threshold < 0 or threshold > 1:
        raise ValueError(f"COST_ATTRIBUTION_PARSE_ERROR_THRESHOLD must be in [0, 1], got {threshold}")
    return threshold


def known_apps() -> tuple[str, ...] | None:
    raw = os.getenv("COST_ATTRIBUTION_KNOWN_APPS", "")
    apps = parse_apps(raw)
    return apps or None


def _env_date(name: str) -> date | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid {name}: {raw}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw in TRUE_VALUES:
        return True
    if raw in FALSE_VALUES:
        return False
    raise ValueError(f"Invalid {name}: {raw}")


def query_from_env(
    default_date_from: date,
    default_date_to: date | None,
    default_apps: tuple[str, ...],
) -> CostQuery:
    """Build the pipeline query; unset variables fall back to the dataset defaults."""
    date_from = _env_date("COST_ATTRIBUTION_DATE_FROM") or default_date_from
    date_to = _env_date("COST_ATTRIBUTION_DATE_TO") or default_date_to
    raw_apps = os.getenv("COST_ATTRIBUTION_SELECTED_APPS")
    selected_apps = parse_apps(raw_apps) if raw_apps is not None else default_apps
    secondary = os.getenv("COST_ATTRIBUTION_SECONDARY_GROUP_BY", "").strip() or None
    return CostQuery(
        date_from=date_from,
        date_to=date_to,
        selected_apps=selected_apps,
        primary_group_by=os.getenv("COST_ATTRIBUTION_PRIMARY_GROUP_BY", DEFAULT_DIMENSION).strip(),
        secondary_group_by=secondary,
        app_level_cost_view=_env_bool("COST_ATTRIBUTION_APP_LEVEL_COST_VIEW", True),
    )
