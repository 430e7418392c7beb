"""Campaign cost attribution package."""

from .engine import CostEngine, process_cost_data
from .ingestion import read_spend_records, write_output_excel
from .application import CostViewResult, run_cost_view, run_reporting_pipeline
from .domain import CostQuery, EngineResult, ResultRow, SpendRecord

__all__ = [
    "CostEngine",
    "process_cost_data",
    "read_spend_records",
    "write_output_excel",
    "CostQuery",
    "EngineResult",
    "ResultRow",
    "SpendRecord",
    "CostViewResult",
    "run_cost_view",
    "run_reporting_pipeline",
]
