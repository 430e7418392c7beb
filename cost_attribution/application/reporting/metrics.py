"""Shared numeric/formatting utilities for reporting."""

from __future__ import annotations

from typing import Any

NOT_APPLICABLE = "NA"


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


def safe_ratio(num: float, den: float) -> float | None:
    if den <= 0:
        return None
    return num / den


def fmt_money(value: float | None) -> str:
    if value is None:
        return "$0"
    abs_value = abs(value)
    if abs_value >= 1_000_000:
        return f"${abs_value / 1_000_000:.1f}M"
    if abs_value >= 1_000:
        return f"${abs_value / 1_000:.0f}K"
    if abs_value != int(abs_value):
        return f"${abs_value:.2f}"
    return f"${abs_value:.0f}"


def fmt_count(value: float | None) -> str:
    if value is None:
        return "0"
    return f"{value:,.0f}"


def fmt_pct(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"{value * 100:.0f}%"


def fmt_cost_cell(value: Any, na_when_zero: bool) -> str:
    """Zero cost renders as NA where it means "not attributable" rather than no spend."""
    cost = to_float(value)
    if na_when_zero and cost == 0:
        return NOT_APPLICABLE
    return fmt_money(cost)
