"""Cost Engine: date filtering, campaign relevance, app attribution and grouping."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Sequence

import polars as pl

from cost_attribution.domain.attribution import (
    UNKNOWN_KEY,
    all_apps_selected,
    attribution_target,
    campaign_sub_row_cost,
)
from cost_attribution.domain.models import (
    DATE_KEY_FORMAT,
    DIMENSION_APP,
    DIMENSION_CAMPAIGN,
    DIMENSION_DATE,
    DIMENSION_MEDIA_SOURCE,
    CostQuery,
    EngineResult,
    ResultRow,
    SpendRecord,
    normalize_dimension,
    normalize_secondary_dimension,
)
from cost_attribution.ingestion import RECORD_COLUMNS, RECORD_SCHEMA, empty_record_frame, normalize_record_frame

logger = logging.getLogger(__name__)

PRIMARY_KEY = "__primary"
SECONDARY_KEY = "__secondary"


def records_frame(records: Sequence[SpendRecord] | Sequence[Mapping[str, Any]] | pl.DataFrame) -> pl.DataFrame:
    """Build the engine record frame; raw mappings are validated here so bad dates fail early."""
    if isinstance(records, pl.DataFrame):
        if dict(records.schema) == RECORD_SCHEMA:
            return records.select(RECORD_COLUMNS)
        return normalize_record_frame(records)
    if not records:
        return empty_record_frame()
    rows = [
        record.to_row() if isinstance(record, SpendRecord) else SpendRecord.from_row(record).to_row()
        for record in records
    ]
    return pl.DataFrame(rows, schema=RECORD_SCHEMA).select(RECORD_COLUMNS)


def _ordered_apps(frame: pl.DataFrame) -> tuple[str, ...]:
    if frame.is_empty():
        return ()
    apps = frame.select(pl.col("apps").explode().drop_nulls().unique(maintain_order=True)).to_series(0)
    return tuple(apps.to_list())


class CostEngine:
    """Stateless attribution engine over a fixed, read-only record set."""

    def __init__(
        self,
        records: Sequence[SpendRecord] | Sequence[Mapping[str, Any]] | pl.DataFrame,
        known_apps: Sequence[str] | None = None,
    ) -> None:
        self._frame = records_frame(records)
        self.known_apps: tuple[str, ...] = tuple(known_apps) if known_apps else _ordered_apps(self._frame)
        logger.debug("CostEngine ready: records=%d, known_apps=%s", self._frame.height, self.known_apps)

    @property
    def frame(self) -> pl.DataFrame:
        return self._frame

    @staticmethod
    def _dimension_expr(dimension: str) -> pl.Expr:
        if dimension == DIMENSION_MEDIA_SOURCE:
            return pl.col("media_source")
        if dimension == DIMENSION_DATE:
            return pl.col("date").dt.strftime(DATE_KEY_FORMAT)
        if dimension == DIMENSION_APP:
            return pl.col("apps").list.join(", ")
        return pl.col("campaign")

    def filter_by_date_range(self, date_from: date, date_to: date | None) -> pl.DataFrame:
        """Inclusive range filter; without date_to only date_from itself matches."""
        if date_to is None:
            return self._frame.filter(pl.col("date") == pl.lit(date_from))
        if date_from > date_to:
            return self._frame.clear()
        return self._frame.filter(pl.col("date").is_between(pl.lit(date_from), pl.lit(date_to), closed="both"))

    def campaign_relevance(self, frame: pl.DataFrame, selected_apps: Sequence[str]) -> set[str]:
        """Campaigns with at least one record listing a selected app (all campaigns on full selection)."""
        if frame.is_empty() or not selected_apps:
            return set()
        if all_apps_selected(selected_apps, self.known_apps):
            return set(frame.get_column("campaign").to_list())
        matched = (
            frame.select(["campaign", "apps"])
            .explode("apps")
            .filter(pl.col("apps").is_in(list(selected_apps)))
            .get_column("campaign")
        )
        return set(matched.to_list())

    def _filter_relevant(self, frame: pl.DataFrame, selected_apps: Sequence[str]) -> pl.DataFrame:
        if all_apps_selected(selected_apps, self.known_apps):
            return frame
        relevant = self.campaign_relevance(frame, selected_apps)
        return frame.filter(pl.col("campaign").is_in(sorted(relevant)))

    def compute_total_cost(self, frame: pl.DataFrame, selected_apps: Sequence[str]) -> float:
        if not selected_apps or frame.is_empty():
            return 0.0
        if all_apps_selected(selected_apps, self.known_apps):
            return float(frame.get_column("cost").sum())

        relevant = self.campaign_relevance(frame, selected_apps)
        campaign_costs = frame.group_by("campaign", maintain_order=True).agg(pl.col("cost").sum())
        return float(
            campaign_costs.filter(pl.col("campaign").is_in(sorted(relevant))).get_column("cost").sum()
        )

    def compute_table_rows(
        self,
        frame: pl.DataFrame,
        selected_apps: Sequence[str],
        primary_group_by: str,
        secondary_group_by: str | None = None,
        app_level_cost_view: bool = True,
    ) -> Dict[str, ResultRow]:
        if not selected_apps:
            return {}
        scoped = self._filter_relevant(frame, selected_apps)
        if scoped.is_empty():
            return {}

        primary = normalize_dimension(primary_group_by)
        secondary = normalize_secondary_dimension(secondary_group_by)
        if primary == DIMENSION_APP:
            return self._app_grouped_rows(scoped, selected_apps, secondary, app_level_cost_view)
        return self._dimension_grouped_rows(scoped, primary, secondary)

    def _campaign_totals(self, scoped: pl.DataFrame) -> tuple[Dict[str, float], Dict[str, set[str]]]:
        costs = scoped.group_by("campaign", maintain_order=True).agg(pl.col("cost").sum())
        campaign_costs = {str(row[0]): float(row[1]) for row in costs.iter_rows()}

        apps_by_campaign = (
            scoped.select(["campaign", "apps"])
            .explode("apps")
            .drop_nulls("apps")
            .group_by("campaign", maintain_order=True)
            .agg(pl.col("apps").unique(maintain_order=True))
        )
        campaign_apps: Dict[str, set[str]] = {campaign: set() for campaign in campaign_costs}
        for campaign, apps in apps_by_campaign.iter_rows():
            campaign_apps[str(campaign)] = set(apps)
        return campaign_costs, campaign_apps

    def _app_grouped_rows(
        self,
        scoped: pl.DataFrame,
        selected_apps: Sequence[str],
        secondary: str | None,
        app_level_cost_view: bool,
    ) -> Dict[str, ResultRow]:
        app_costs: Dict[str, float] = {app: 0.0 for app in selected_apps}
        unknown_cost = 0.0
        campaign_costs, campaign_apps = self._campaign_totals(scoped)

        for campaign, cost in campaign_costs.items():
            target = attribution_target(campaign_apps[campaign], app_costs, app_level_cost_view)
            if target == UNKNOWN_KEY:
                unknown_cost += cost
            else:
                app_costs[target] += cost

        rows: Dict[str, ResultRow] = {}
        for app, cost in app_costs.items():
            sub_rows: Dict[str, ResultRow] | None = None
            if secondary is not None:
                sub_rows = {}
            if secondary == DIMENSION_CAMPAIGN:
                sub_rows = {
                    campaign: ResultRow(
                        key=campaign,
                        label=campaign,
                        cost=campaign_sub_row_cost(campaign_apps[campaign], app, campaign_cost, app_level_cost_view),
                    )
                    for campaign, campaign_cost in campaign_costs.items()
                }
            rows[app] = ResultRow(key=app, label=app, cost=cost, sub_rows=sub_rows)

        if unknown_cost > 0:
            rows[UNKNOWN_KEY] = ResultRow(
                key=UNKNOWN_KEY,
                label=UNKNOWN_KEY,
                cost=unknown_cost,
                sub_rows={} if secondary is not None else None,
            )
        return rows

    def _dimension_grouped_rows(
        self,
        scoped: pl.DataFrame,
        primary: str,
        secondary: str | None,
    ) -> Dict[str, ResultRow]:
        keyed = scoped.with_columns(self._dimension_expr(primary).alias(PRIMARY_KEY))
        primary_costs = keyed.group_by(PRIMARY_KEY, maintain_order=True).agg(pl.col("cost").sum())

        sub_rows_by_key: Dict[str, Dict[str, ResultRow]] = {}
        if secondary is not None:
            # Records are partitioned per campaign inside each group; summing by
            # (primary, secondary) in first-seen order gives the same rows.
            pair_costs = (
                keyed.with_columns(self._dimension_expr(secondary).alias(SECONDARY_KEY))
                .group_by([PRIMARY_KEY, SECONDARY_KEY], maintain_order=True)
                .agg(pl.col("cost").sum())
            )
            for primary_value, secondary_value, cost in pair_costs.iter_rows():
                sub_rows = sub_rows_by_key.setdefault(str(primary_value), {})
                sub_rows[str(secondary_value)] = ResultRow(
                    key=str(secondary_value),
                    label=str(secondary_value),
                    cost=float(cost),
                )

        rows: Dict[str, ResultRow] = {}
        for primary_value, cost in primary_costs.iter_rows():
            key = str(primary_value)
            rows[key] = ResultRow(
                key=key,
                label=key,
                cost=float(cost),
                sub_rows=sub_rows_by_key.get(key, {}) if secondary is not None else None,
            )
        return rows

    def process(self, query: CostQuery) -> EngineResult:
        dated = self.filter_by_date_range(query.date_from, query.date_to)
        total_cost = self.compute_total_cost(dated, query.selected_apps)
        table_rows = self.compute_table_rows(
            dated,
            query.selected_apps,
            query.primary_group_by,
            query.secondary_group_by,
            query.app_level_cost_view,
        )
        return EngineResult(total_cost=total_cost, table_rows=table_rows)


def process_cost_data(
    records: Sequence[SpendRecord] | Sequence[Mapping[str, Any]] | pl.DataFrame,
    date_from: date,
    date_to: date | None,
    selected_apps: Sequence[str],
    primary_group_by: str,
    secondary_group_by: str | None = None,
    app_level_cost_view: bool = True,
    known_apps: List[str] | None = None,
) -> EngineResult:
    engine = CostEngine(records, known_apps=known_apps)
    query = CostQuery(
        date_from=date_from,
        date_to=date_to,
        selected_apps=tuple(selected_apps),
        primary_group_by=primary_group_by,
        secondary_group_by=secondary_group_by,
        app_level_cost_view=app_level_cost_view,
    )
    return engine.process(query)
