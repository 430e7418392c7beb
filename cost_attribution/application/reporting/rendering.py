"""Text rendering helpers for the cost view summary."""

from __future__ import annotations

from typing import Any, Dict, List

from cost_attribution.application.reporting.metrics import fmt_money, fmt_pct, safe_ratio, to_float


def query_scope_text(query: Dict[str, Any]) -> str:
    date_from = query.get("date_from", "")
    date_to = query.get("date_to")
    period = f"{date_from} ~ {date_to}" if date_to else f"{date_from} (single day)"
    apps = query.get("selected_apps") or []
    apps_text = ", ".join(str(app) for app in apps) if apps else "no apps"
    secondary = query.get("secondary_group_by")
    grouping = str(query.get("primary_group_by", ""))
    if secondary:
        grouping = f"{grouping} > {secondary}"
    view = "on" if query.get("app_level_cost_view", True) else "off"
    return f"Period {period} | Apps: {apps_text} | Group by {grouping} | App-level cost view {view}"


def cost_summary_lines(summary: Dict[str, Any]) -> List[str]:
    total_cost = to_float(summary.get("total_cost"))
    lines = [f"Total cost {fmt_money(total_cost)} across {int(summary.get('row_count', 0))} rows."]

    unknown_cost = to_float(summary.get("unknown_cost"))
    if unknown_cost > 0:
        share = safe_ratio(unknown_cost, total_cost)
        lines.append(
            f"Unknown {fmt_money(unknown_cost)} ({fmt_pct(share)} of total) comes from campaigns "
            "shared by several apps or not attributable to one selected app."
        )

    totals_cost = to_float(summary.get("totals_row", {}).get("cost"))
    if abs(totals_cost - total_cost) > 1e-9:
        lines.append(f"Table rows sum to {fmt_money(totals_cost)}.")
    return lines
