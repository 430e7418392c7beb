"""Cost report pipeline: load records, run the configured cost view, export."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, List

import polars as pl

from cost_attribution import config
from cost_attribution.application.cost_view_service import run_cost_view
from cost_attribution.application.reporting.selectors import database_view
from cost_attribution.domain.models import CostQuery
from cost_attribution.engine import CostEngine
from cost_attribution.infrastructure.record_repository import load_spend_frame, save_output_workbook
from cost_attribution.infrastructure.report_exporter import save_summary_html, save_summary_json


def _default_query(engine: CostEngine) -> CostQuery:
    frame = engine.frame
    if frame.is_empty():
        date_bounds = (date.today(), None)
    else:
        date_bounds = frame.select(pl.col("date").min().alias("min"), pl.col("date").max().alias("max")).row(0)
    return config.query_from_env(
        default_date_from=date_bounds[0],
        default_date_to=date_bounds[1],
        default_apps=engine.known_apps,
    )


def _cost_rows_sheet_df(display_rows: List[Dict[str, Any]]) -> pl.DataFrame:
    columns = ["depth", "parent", "key", "label", "cost", "cost_display"]
    if not display_rows:
        return pl.DataFrame({column: [] for column in columns})
    return pl.DataFrame(display_rows, infer_schema_length=None).select(columns)


def _records_payload(view: pl.DataFrame) -> List[Dict[str, Any]]:
    return view.with_columns(pl.col("date").dt.strftime("%Y-%m-%d")).to_dicts()


def run_reporting_pipeline(
    input_path: Path | None = None,
    output_dir: Path | None = None,
    query: CostQuery | None = None,
) -> Dict[str, Any]:
    pipeline_start = perf_counter()
    stage_start = pipeline_start
    stage_timings: list[tuple[str, float]] = []

    def _mark(stage_name: str) -> None:
        nonlocal stage_start
        now = perf_counter()
        stage_timings.append((stage_name, now - stage_start))
        stage_start = now

    input_path = input_path or config.DEFAULT_INPUT_PATH
    output_dir = output_dir or config.DEFAULT_OUTPUT_DIR
    output_json_path = output_dir / "summary.json"
    output_excel_path = output_dir / "summary.xlsx"
    output_html_path = output_dir / "summary.html"

    frame, load_meta = load_spend_frame(input_path, cache_dir=output_dir / ".cache")
    _mark("load_spend_frame")
    engine = CostEngine(frame, known_apps=config.known_apps())
    if query is None:
        query = _default_query(engine)
    view = run_cost_view(engine, query)
    _mark("run_cost_view")

    records_view, record_totals = database_view(engine.frame, sort_field="date")
    summary = {
        "load_meta": load_meta,
        **view.summary,
        "database": {
            "records": _records_payload(records_view),
            "totals": record_totals,
        },
    }
    _mark("build_summary")

    save_summary_json(output_json_path, summary)
    save_summary_html(output_html_path, summary, view.display_rows)
    _mark("save_json_html")

    excel_saved, excel_error_message = save_output_workbook(
        output_excel_path,
        {
            "cost_rows": _cost_rows_sheet_df(view.display_rows),
            "records": records_view,
        },
    )
    _mark("save_excel")
    total_elapsed = perf_counter() - pipeline_start

    print(
        "Summary prepared: "
        f"records={load_meta.get('record_count', 0)}, "
        f"rows={summary['row_count']}, "
        f"total_cost={summary['total_cost']:.2f}, "
        f"unknown_cost={summary['unknown_cost']:.2f}"
    )
    stage_text = ", ".join([f"{name}={seconds:.3f}s" for name, seconds in stage_timings])
    print(f"Stage Timing: {stage_text}")
    print(f"Total Elapsed: {total_elapsed:.3f}s")
    print(f"Query: {summary['query']}")
    print(f"Saved JSON: {output_json_path}")
    print(f"Saved HTML: {output_html_path}")
    if excel_saved:
        print(f"Saved Excel: {output_excel_path}")
    else:
        print(f"Excel save skipped (file may be open/locked): {excel_error_message}")
    return summary
