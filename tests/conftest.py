from __future__ import annotations

from datetime import date
from typing import Any

import pytest

from cost_attribution.engine import CostEngine

WOLT_APPS = ["Wolt iOS", "Wolt Android", "Wolt Web"]


def _wolt_rows() -> list[dict[str, Any]]:
    wolt_1 = [
        ("Jun 1, 2025", 10, 30, "Wolt iOS"),
        ("Jun 2, 2025", 10, 40, "Wolt iOS, Wolt Android"),
        ("Jun 3, 2025", 10, 50, "Wolt iOS"),
        ("Jun 4, 2025", 20, 50, "Wolt iOS"),
        ("Jun 5, 2025", 20, 0, "Wolt iOS, Wolt Android, Wolt Web"),
        ("Jun 6, 2025", 10, 10, "Wolt iOS"),
        ("Jun 7, 2025", 10, 10, "Wolt iOS"),
        ("Jun 8, 2025", 10, 10, "Wolt iOS, Wolt Android"),
    ]
    wolt_2 = [
        ("Jun 1, 2025", 150, 100),
        ("Jun 2, 2025", 100, 0),
        ("Jun 3, 2025", 100, 100),
        ("Jun 4, 2025", 100, 0),
        ("Jun 5, 2025", 100, 100),
        ("Jun 6, 2025", 150, 0),
        ("Jun 7, 2025", 150, 0),
        ("Jun 8, 2025", 150, 0),
    ]
    rows = [
        {"day": day, "mediaSource": "Google", "campaign": "wolt_1", "cost": 10, "impressions": imp, "clicks": clicks, "apps": apps}
        for day, imp, clicks, apps in wolt_1
    ]
    rows.extend(
        {"day": day, "mediaSource": "TikTok", "campaign": "wolt_2", "cost": 20, "impressions": imp, "clicks": clicks, "apps": "Wolt Android"}
        for day, imp, clicks in wolt_2
    )
    return rows


@pytest.fixture
def wolt_rows() -> list[dict[str, Any]]:
    return _wolt_rows()


@pytest.fixture
def wolt_engine(wolt_rows: list[dict[str, Any]]) -> CostEngine:
    return CostEngine(wolt_rows)


@pytest.fixture
def shared_campaign_rows() -> list[dict[str, Any]]:
    """Campaign c1 is tagged with A on one day and with A and B on another."""
    return [
        {"date": "2025-06-01", "media_source": "Google", "campaign": "c1", "cost": 10, "apps": "A"},
        {"date": "2025-06-02", "media_source": "Google", "campaign": "c1", "cost": 5, "apps": "A,B"},
    ]


@pytest.fixture
def june_first() -> date:
    return date(2025, 6, 1)


@pytest.fixture
def june_last() -> date:
    return date(2025, 6, 8)
