"""Row flattening and raw-record view helpers."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

import polars as pl

from cost_attribution.application.reporting.metrics import fmt_cost_cell
from cost_attribution.domain.models import DIMENSION_APP, DIMENSION_CAMPAIGN, ResultRow

SORTABLE_FIELDS: tuple[str, ...] = ("date", "media_source", "campaign", "apps", "cost", "impressions", "clicks")
DATABASE_TOTAL_FIELDS: tuple[str, ...] = ("cost", "impressions", "clicks")


def na_rules(primary_group_by: str, secondary_group_by: str | None) -> tuple[bool, bool]:
    return primary_group_by == DIMENSION_APP, secondary_group_by == DIMENSION_CAMPAIGN


def flatten_rows(
    table_rows: Mapping[str, ResultRow],
    na_when_zero_top: bool = False,
    na_when_zero_sub: bool = False,
) -> List[Dict[str, Any]]:
    """Expand the row tree in mapping order: each row followed by its sub-rows."""
    output: List[Dict[str, Any]] = []
    for key, row in table_rows.items():
        output.append(
            {
                "depth": 0,
                "parent": None,
                "key": key,
                "label": row.label,
                "cost": row.cost,
                "cost_display": fmt_cost_cell(row.cost, na_when_zero_top),
            }
        )
        for sub_key, sub_row in (row.sub_rows or {}).items():
            output.append(
                {
                    "depth": 1,
                    "parent": key,
                    "key": sub_key,
                    "label": sub_row.label,
                    "cost": sub_row.cost,
                    "cost_display": fmt_cost_cell(sub_row.cost, na_when_zero_sub),
                }
            )
    return output


def database_view(
    frame: pl.DataFrame,
    sort_field: str | None = None,
    descending: bool = False,
) -> tuple[pl.DataFrame, Dict[str, float]]:
    """Raw records as the dashboard's database table, with cost/impressions/clicks totals."""
    view = frame
    if sort_field in SORTABLE_FIELDS:
        sort_expr = pl.col("apps").list.join(", ") if sort_field == "apps" else pl.col(sort_field)
        view = frame.sort(sort_expr, descending=descending, maintain_order=True)

    totals = {name: float(frame.get_column(name).sum()) if not frame.is_empty() else 0.0 for name in DATABASE_TOTAL_FIELDS}
    return view, totals
