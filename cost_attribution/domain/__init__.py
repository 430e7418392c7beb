"""Domain layer package."""

from .attribution import UNKNOWN_KEY, all_apps_selected, attribution_target, campaign_sub_row_cost
from .models import CostQuery, EngineResult, ResultRow, SpendRecord, normalize_dimension

__all__ = [
    "CostQuery",
    "EngineResult",
    "ResultRow",
    "SpendRecord",
    "UNKNOWN_KEY",
    "all_apps_selected",
    "attribution_target",
    "campaign_sub_row_cost",
    "normalize_dimension",
]
