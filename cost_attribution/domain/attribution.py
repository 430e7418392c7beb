"""Domain policies for attributing campaign cost to applications."""

from __future__ import annotations

from typing import AbstractSet, Collection

UNKNOWN_KEY = "Unknown"


def all_apps_selected(selected_apps: Collection[str], known_apps: Collection[str]) -> bool:
    selected = set(selected_apps)
    return all(app in selected for app in known_apps)


def attribution_target(
    campaign_apps: AbstractSet[str],
    app_rows: Collection[str],
    app_level_cost_view: bool,
) -> str:
    """Return the app row that receives a campaign's full cost, or the Unknown bucket.

    Cost is never split: only a campaign whose apps in range are exactly one
    selected app is attributed to that app.
    """
    if not app_level_cost_view:
        return UNKNOWN_KEY
    if len(campaign_apps) == 1:
        (app,) = tuple(campaign_apps)
        if app in app_rows:
            return app
    return UNKNOWN_KEY


def campaign_sub_row_cost(
    campaign_apps: AbstractSet[str],
    app: str,
    campaign_cost: float,
    app_level_cost_view: bool,
) -> float:
    # Zero marks "not applicable" for the presentation layer.
    if app_level_cost_view and len(campaign_apps) == 1 and app in campaign_apps:
        return campaign_cost
    return 0.0
