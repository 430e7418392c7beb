"""Application service for the cost view use case."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from cost_attribution.application.reporting.selectors import flatten_rows, na_rules
from cost_attribution.domain.attribution import UNKNOWN_KEY
from cost_attribution.domain.models import DIMENSION_APP, CostQuery, EngineResult
from cost_attribution.engine import CostEngine


@dataclass(frozen=True)
class CostViewResult:
    query: CostQuery
    result: EngineResult
    summary: Dict[str, Any]
    display_rows: List[Dict[str, Any]]


def run_cost_view(engine: CostEngine, query: CostQuery) -> CostViewResult:
    """Run one attribution query and shape it for exporters."""
    result = engine.process(query)
    primary = query.primary_dimension
    secondary = query.secondary_dimension

    unknown_row = result.table_rows.get(UNKNOWN_KEY) if primary == DIMENSION_APP else None
    summary: Dict[str, Any] = {
        "query": query.to_dict(),
        "known_apps": list(engine.known_apps),
        **result.to_dict(),
        "unknown_cost": unknown_row.cost if unknown_row is not None else 0.0,
        "row_count": len(result.table_rows),
    }

    na_when_zero_top, na_when_zero_sub = na_rules(primary, secondary)
    display_rows = flatten_rows(
        result.table_rows,
        na_when_zero_top=na_when_zero_top,
        na_when_zero_sub=na_when_zero_sub,
    )
    return CostViewResult(query=query, result=result, summary=summary, display_rows=display_rows)
