"""Infrastructure layer package."""

from .record_repository import load_spend_frame, save_output_workbook
from .report_exporter import save_summary_html, save_summary_json

__all__ = ["load_spend_frame", "save_output_workbook", "save_summary_json", "save_summary_html"]
