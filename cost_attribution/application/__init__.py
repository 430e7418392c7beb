"""Application layer package."""

from .cost_view_service import CostViewResult, run_cost_view
from .report_service import run_reporting_pipeline

__all__ = ["CostViewResult", "run_cost_view", "run_reporting_pipeline"]
