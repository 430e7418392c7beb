from __future__ import annotations

import copy
from datetime import date, datetime

import pytest

from cost_attribution.domain.models import CostQuery, SpendRecord
from cost_attribution.engine import CostEngine, process_cost_data
from tests.conftest import WOLT_APPS


def _query(date_from, date_to=None, apps=(), primary="campaign", secondary=None, app_view=True) -> CostQuery:
    return CostQuery(
        date_from=date_from,
        date_to=date_to,
        selected_apps=tuple(apps),
        primary_group_by=primary,
        secondary_group_by=secondary,
        app_level_cost_view=app_view,
    )


class TestDateFilter:
    def test_inclusive_range(self, wolt_engine, june_first):
        filtered = wolt_engine.filter_by_date_range(june_first, date(2025, 6, 2))
        assert filtered.height == 4
        assert set(filtered.get_column("date").to_list()) == {date(2025, 6, 1), date(2025, 6, 2)}

    def test_single_day_without_date_to(self, wolt_engine):
        filtered = wolt_engine.filter_by_date_range(date(2025, 6, 3), None)
        assert filtered.height == 2
        assert filtered.get_column("date").unique().to_list() == [date(2025, 6, 3)]

    def test_inverted_range_is_empty(self, wolt_engine):
        result = wolt_engine.process(_query(date(2025, 6, 8), date(2025, 6, 1), WOLT_APPS))
        assert result.total_cost == 0
        assert result.table_rows == {}

    def test_single_day_excludes_adjacent_days(self):
        engine = CostEngine(
            [
                {"date": "2025-06-01", "campaign": "c1", "cost": 1, "apps": "A"},
                {"date": "2025-06-02", "campaign": "c1", "cost": 2, "apps": "A"},
                {"date": "2025-06-03", "campaign": "c1", "cost": 4, "apps": "A"},
            ]
        )
        result = engine.process(_query(date(2025, 6, 2), None, ["A"]))
        assert result.total_cost == 2
        assert result.table_rows["c1"].cost == 2

    @pytest.fixture
    def timed_engine(self):
        return CostEngine(
            [
                {"date": "2025-06-01", "campaign": "c1", "cost": 10, "apps": "A"},
                {"date": "2025-06-02", "campaign": "c2", "cost": 5, "apps": "A"},
                {"date": "2025-06-02", "campaign": "c3", "cost": 1, "apps": "A"},
            ]
        )

    def test_single_day_ignores_time_of_day(self, timed_engine):
        query = _query(datetime(2025, 6, 1, 9, 30), None, ["A"])
        assert query.date_from == date(2025, 6, 1)
        result = timed_engine.process(query)
        assert result.total_cost == 10
        assert list(result.table_rows) == ["c1"]

    def test_range_ignores_time_of_day(self, timed_engine):
        query = _query(datetime(2025, 6, 1, 9, 30), datetime(2025, 6, 2, 8, 0), ["A"])
        assert query.date_to == date(2025, 6, 2)
        result = timed_engine.process(query)
        assert result.total_cost == 16
        assert {key: row.cost for key, row in result.table_rows.items()} == {"c1": 10, "c2": 5, "c3": 1}


class TestTotalCost:
    def test_full_selection_sums_everything(self, wolt_engine, june_first, june_last):
        result = wolt_engine.process(_query(june_first, june_last, WOLT_APPS))
        assert result.total_cost == 240

    def test_full_selection_ignores_app_level_cost_view(self, wolt_engine, june_first, june_last):
        on = wolt_engine.process(_query(june_first, june_last, WOLT_APPS, primary="app"))
        off = wolt_engine.process(_query(june_first, june_last, WOLT_APPS, primary="app", app_view=False))
        assert on.total_cost == off.total_cost == 240

    def test_subset_counts_relevant_campaigns_in_full(self, wolt_engine, june_first, june_last):
        result = wolt_engine.process(_query(june_first, june_last, ["Wolt iOS"]))
        assert result.total_cost == 80

    def test_campaign_relevant_through_a_single_day(self, wolt_engine, june_first, june_last):
        # Wolt Web only appears on Jun 5 but the whole wolt_1 spend counts.
        result = wolt_engine.process(_query(june_first, june_last, ["Wolt Web"]))
        assert result.total_cost == 80

    def test_empty_selection_is_zero(self, wolt_engine, june_first, june_last):
        result = wolt_engine.process(_query(june_first, june_last, []))
        assert result.total_cost == 0
        assert result.table_rows == {}

    def test_selection_without_matching_records(self, wolt_engine, june_first, june_last):
        result = wolt_engine.process(_query(june_first, june_last, ["Wolt CTV"]))
        assert result.total_cost == 0
        assert result.table_rows == {}


class TestRelevance:
    def test_relevance_shared_by_total_and_rows(self, wolt_engine, june_first):
        dated = wolt_engine.filter_by_date_range(june_first, date(2025, 6, 2))
        assert wolt_engine.campaign_relevance(dated, ["Wolt iOS"]) == {"wolt_1"}
        assert wolt_engine.campaign_relevance(dated, ["Wolt Android"]) == {"wolt_1", "wolt_2"}
        assert wolt_engine.campaign_relevance(dated, []) == set()

    def test_full_selection_makes_every_campaign_relevant(self, wolt_engine, june_first):
        dated = wolt_engine.filter_by_date_range(june_first, None)
        assert wolt_engine.campaign_relevance(dated, WOLT_APPS) == {"wolt_1", "wolt_2"}

    def test_configured_universe_controls_full_selection(self, wolt_rows, june_first, june_last):
        engine = CostEngine(wolt_rows, known_apps=["Wolt iOS"])
        assert engine.known_apps == ("Wolt iOS",)
        result = engine.process(_query(june_first, june_last, ["Wolt iOS"]))
        assert result.total_cost == 240


class TestDimensionGrouping:
    def test_group_by_campaign(self, wolt_engine, june_first, june_last):
        rows = wolt_engine.process(_query(june_first, june_last, WOLT_APPS)).table_rows
        assert list(rows) == ["wolt_1", "wolt_2"]
        assert rows["wolt_1"].cost == 80
        assert rows["wolt_2"].cost == 160
        assert rows["wolt_1"].sub_rows is None

    def test_group_by_date_uses_first_seen_order(self, wolt_engine, june_first, june_last):
        rows = wolt_engine.process(_query(june_first, june_last, WOLT_APPS, primary="date")).table_rows
        assert list(rows) == [f"2025-06-0{day}" for day in range(1, 9)]
        assert all(row.cost == 30 for row in rows.values())

    def test_media_source_with_secondary_date(self, wolt_engine, june_first):
        rows = wolt_engine.process(
            _query(june_first, date(2025, 6, 2), WOLT_APPS, primary="media_source", secondary="date")
        ).table_rows
        assert list(rows) == ["Google", "TikTok"]
        assert rows["Google"].cost == 20
        assert {key: row.cost for key, row in rows["Google"].sub_rows.items()} == {
            "2025-06-01": 10,
            "2025-06-02": 10,
        }
        assert rows["TikTok"].sub_rows["2025-06-02"].cost == 20

    def test_secondary_app_uses_record_app_list(self, wolt_engine, june_first):
        rows = wolt_engine.process(
            _query(june_first, date(2025, 6, 2), WOLT_APPS, primary="campaign", secondary="app")
        ).table_rows
        assert {key: row.cost for key, row in rows["wolt_1"].sub_rows.items()} == {
            "Wolt iOS": 10,
            "Wolt iOS, Wolt Android": 10,
        }

    def test_unknown_dimension_falls_back_to_campaign(self, wolt_engine, june_first, june_last):
        rows = wolt_engine.process(_query(june_first, june_last, WOLT_APPS, primary="device_type")).table_rows
        assert list(rows) == ["wolt_1", "wolt_2"]

    @pytest.mark.parametrize("primary", ["APP", "App", " app"])
    def test_dimension_names_match_exactly(self, wolt_engine, june_first, june_last, primary):
        rows = wolt_engine.process(_query(june_first, june_last, WOLT_APPS, primary=primary)).table_rows
        assert list(rows) == ["wolt_1", "wolt_2"]

    def test_unknown_secondary_falls_back_to_campaign(self, wolt_engine, june_first, june_last):
        rows = wolt_engine.process(
            _query(june_first, june_last, WOLT_APPS, primary="media_source", secondary="country")
        ).table_rows
        assert list(rows["Google"].sub_rows) == ["wolt_1"]
        assert rows["Google"].sub_rows["wolt_1"].cost == 80

    def test_conservation_of_cost(self, wolt_engine, june_first, june_last):
        for primary in ("campaign", "media_source", "date"):
            result = wolt_engine.process(_query(june_first, june_last, ["Wolt Android"], primary=primary))
            assert sum(row.cost for row in result.table_rows.values()) == pytest.approx(240)
            assert result.totals_row.cost == pytest.approx(result.total_cost)

    def test_sub_rows_sum_to_parent(self, wolt_engine, june_first, june_last):
        rows = wolt_engine.process(
            _query(june_first, june_last, WOLT_APPS, primary="media_source", secondary="date")
        ).table_rows
        for row in rows.values():
            assert sum(sub.cost for sub in row.sub_rows.values()) == pytest.approx(row.cost)


class TestEngineContract:
    def test_idempotent_and_input_untouched(self, wolt_rows, june_first, june_last):
        snapshot = copy.deepcopy(wolt_rows)
        engine = CostEngine(wolt_rows)
        query = _query(june_first, june_last, ["Wolt iOS", "Wolt Android"], primary="app", secondary="campaign")
        first = engine.process(query)
        second = engine.process(query)
        assert first.to_dict() == second.to_dict()
        assert wolt_rows == snapshot

    def test_accepts_spend_records(self):
        records = [
            SpendRecord(date=date(2025, 6, 1), media_source="Meta", campaign="m1", cost=7.5, apps=("A",)),
            SpendRecord(date=date(2025, 6, 1), media_source="Meta", campaign="m2", cost=2.5, apps=("B",)),
        ]
        result = CostEngine(records).process(_query(date(2025, 6, 1), None, ["A"], primary="media_source"))
        assert result.total_cost == 7.5
        assert result.table_rows["Meta"].cost == 7.5

    def test_malformed_date_rejected_at_construction(self):
        with pytest.raises(ValueError, match="Invalid record date"):
            CostEngine([{"date": "2025-13-45", "campaign": "c1", "cost": 1, "apps": "A"}])

    def test_empty_dataset(self, june_first):
        engine = CostEngine([])
        assert engine.known_apps == ()
        result = engine.process(_query(june_first, None, ["A"]))
        assert result.total_cost == 0
        assert result.table_rows == {}
        assert result.totals_row.cost == 0

    def test_process_cost_data_factory(self, shared_campaign_rows):
        result = process_cost_data(
            shared_campaign_rows,
            date(2025, 6, 1),
            date(2025, 6, 2),
            ["A"],
            "app",
        )
        assert result.total_cost == 15
        assert {key: row.cost for key, row in result.table_rows.items()} == {"A": 0, "Unknown": 15}
