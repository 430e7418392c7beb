"""HTML report writer for cost views."""

from __future__ import annotations

from datetime import datetime
from html import escape
from pathlib import Path
from typing import Any, Dict, List

from cost_attribution.application.reporting.metrics import fmt_cost_cell, fmt_count, fmt_money, to_float
from cost_attribution.application.reporting.rendering import cost_summary_lines, query_scope_text
from cost_attribution.domain.attribution import UNKNOWN_KEY


def _row_class(row: Dict[str, Any]) -> str:
    classes = ["sub-row" if row.get("depth") else "top-row"]
    if row.get("key") == UNKNOWN_KEY and not row.get("depth"):
        classes.append("unknown-row")
    if row.get("cost_display") == "NA":
        classes.append("na")
    return " ".join(classes)


def _render_cost_rows(display_rows: List[Dict[str, Any]], totals_row: Dict[str, Any]) -> str:
    if not display_rows:
        return "<tr><td colspan=\"2\" class=\"muted\">No rows for the selected apps and period.</td></tr>"

    body = "".join(
        f"<tr class=\"{_row_class(row)}\">"
        f"<td>{escape(str(row.get('label', '')))}</td>"
        f"<td class=\"num\">{escape(str(row.get('cost_display', '')))}</td>"
        "</tr>"
        for row in display_rows
    )
    totals = (
        "<tr class=\"totals-row\">"
        f"<td>{escape(str(totals_row.get('label', 'Total')))}</td>"
        f"<td class=\"num\">{fmt_money(to_float(totals_row.get('cost')))}</td>"
        "</tr>"
    )
    return body + totals


def _render_record_rows(records: List[Dict[str, Any]], totals: Dict[str, Any]) -> str:
    if not records:
        return "<tr><td colspan=\"7\" class=\"muted\">No spend records.</td></tr>"

    body_parts: List[str] = []
    for record in records:
        apps = record.get("apps") or []
        apps_text = ", ".join(str(app) for app in apps) if isinstance(apps, list) else str(apps)
        body_parts.append(
            "<tr>"
            f"<td>{escape(str(record.get('date', '')))}</td>"
            f"<td>{escape(str(record.get('media_source', '')))}</td>"
            f"<td>{escape(str(record.get('campaign', '')))}</td>"
            f"<td class=\"num\">{fmt_cost_cell(record.get('cost'), na_when_zero=False)}</td>"
            f"<td class=\"num\">{fmt_count(to_float(record.get('impressions')))}</td>"
            f"<td class=\"num\">{fmt_count(to_float(record.get('clicks')))}</td>"
            f"<td>{escape(apps_text)}</td>"
            "</tr>"
        )
    body_parts.append(
        "<tr class=\"totals-row\"><td colspan=\"3\">Total</td>"
        f"<td class=\"num\">{fmt_money(to_float(totals.get('cost')))}</td>"
        f"<td class=\"num\">{fmt_count(to_float(totals.get('impressions')))}</td>"
        f"<td class=\"num\">{fmt_count(to_float(totals.get('clicks')))}</td>"
        "<td></td></tr>"
    )
    return "".join(body_parts)


def write_html_report(output_path: Path, summary: Dict[str, Any], display_rows: List[Dict[str, Any]]) -> None:
    query = summary.get("query", {})
    if not isinstance(query, dict):
        query = {}
    database = summary.get("database", {})
    if not isinstance(database, dict):
        database = {}

    summary_lines_html = "".join(
        f"<li class=\"summary-line\">{escape(line)}</li>" for line in cost_summary_lines(summary)
    )
    cost_rows_html = _render_cost_rows(display_rows, summary.get("totals_row", {}))
    record_rows_html = _render_record_rows(database.get("records", []), database.get("totals", {}))
    generated_at = datetime.now().strftime("%Y-%m-%d %H:%M")

    html = f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Campaign Cost Report</title>
  <style>
    :root {{
      --bg: #f3f6fb;
      --panel: #ffffff;
      --line: #d5dce8;
      --text: #0f172a;
      --sub: #475569;
      --brand: #2d1a57;
      --unknown: #b45309;
    }}
    * {{ box-sizing: border-box; }}
    body {{
      margin: 0;
      background: linear-gradient(180deg, #ece9ff 0%, var(--bg) 35%);
      color: var(--text);
      font-family: "Segoe UI", sans-serif;
    }}
    .wrap {{
      max-width: 1200px;
      margin: 0 auto;
      padding: 20px;
    }}
    .panel {{
      background: var(--panel);
      border: 1px solid var(--line);
      border-radius: 14px;
      box-shadow: 0 4px 16px rgba(15, 23, 42, 0.05);
      padding: 14px 18px;
      margin-bottom: 14px;
    }}
    h1 {{
      margin: 0 0 8px;
      color: var(--brand);
      font-size: 28px;
    }}
    .meta {{
      color: var(--sub);
      font-size: 13px;
    }}
    .headline {{
      font-size: 32px;
      font-weight: 700;
      margin: 4px 0 8px;
    }}
    table {{
      width: 100%;
      border-collapse: collapse;
      font-size: 13px;
    }}
    th, td {{
      border: 1px solid var(--line);
      padding: 6px 8px;
      text-align: left;
    }}
    th {{
      background: #eef4ff;
      font-weight: 700;
    }}
    td.num {{ text-align: right; }}
    .sub-row td:first-child {{ padding-left: 28px; color: var(--sub); }}
    .unknown-row td {{ color: var(--unknown); font-weight: 700; }}
    .na td.num {{ color: #94a3b8; }}
    .totals-row td {{ font-weight: 700; background: #f8fafc; }}
    .summary-list {{
      margin: 0;
      padding-left: 18px;
    }}
    .summary-line {{
      margin: 0 0 6px;
      line-height: 1.6;
    }}
    .muted {{ color: var(--sub); }}
  </style>
</head>
<body>
  <div class="wrap">
    <section class="panel">
      <h1>Campaign Cost Report</h1>
      <div class="meta">{escape(query_scope_text(query))} | Generated: {escape(generated_at)}</div>
      <div class="headline">{fmt_money(to_float(summary.get("total_cost")))}</div>
      <ul class="summary-list">
        {summary_lines_html}
      </ul>
    </section>
    <section class="panel">
      <h2>Cost Breakdown</h2>
      <table>
        <thead><tr><th>{escape(str(query.get("primary_group_by", "")))}</th><th>Cost</th></tr></thead>
        <tbody>{cost_rows_html}</tbody>
      </table>
    </section>
    <section class="panel">
      <h2>Spend Records</h2>
      <table>
        <thead><tr><th>Date</th><th>Media Source</th><th>Campaign</th><th>Cost</th><th>Impressions</th><th>Clicks</th><th>Apps</th></tr></thead>
        <tbody>{record_rows_html}</tbody>
      </table>
    </section>
  </div>
</body>
</html>
"""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(html, encoding="utf-8")
