"""Domain models for cost attribution queries and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Sequence

DIMENSION_APP = "app"
DIMENSION_MEDIA_SOURCE = "media_source"
DIMENSION_CAMPAIGN = "campaign"
DIMENSION_DATE = "date"
DIMENSIONS: tuple[str, ...] = (DIMENSION_APP, DIMENSION_MEDIA_SOURCE, DIMENSION_CAMPAIGN, DIMENSION_DATE)
DEFAULT_DIMENSION = DIMENSION_CAMPAIGN

DATE_FORMATS: tuple[str, ...] = ("%Y-%m-%d", "%b %d, %Y", "%B %d, %Y", "%Y/%m/%d", "%m/%d/%Y")
DATE_KEY_FORMAT = "%Y-%m-%d"

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date", "day", "Date", "Day", "DATE", "DAY"),
    "media_source": ("media_source", "mediaSource", "Media Source", "MEDIA_SOURCE"),
    "campaign": ("campaign", "Campaign", "CAMPAIGN"),
    "cost": ("cost", "Cost", "COST"),
    "impressions": ("impressions", "Impressions", "IMPRESSIONS"),
    "clicks": ("clicks", "Clicks", "CLICKS"),
    "apps": ("apps", "Apps", "APPS", "app", "App"),
}


def normalize_dimension(value: Any) -> str:
    """Map a grouping value onto a supported dimension; unknown values group by campaign."""
    text = "" if value is None else str(value)
    if text in DIMENSIONS:
        return text
    return DEFAULT_DIMENSION


def normalize_secondary_dimension(value: Any) -> str | None:
    if value is None or str(value).strip() == "":
        return None
    return normalize_dimension(value)


def parse_record_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    if not text:
        raise ValueError("Record date is empty")
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid record date: {value!r}")


def parse_apps(value: Any) -> tuple[str, ...]:
    """Split an app list ("Wolt iOS, Wolt Android") into trimmed unique names."""
    if value is None:
        return ()
    if isinstance(value, str):
        parts: Iterable[Any] = value.split(",")
    else:
        parts = value
    apps: list[str] = []
    for part in parts:
        name = str(part or "").strip()
        if name and name not in apps:
            apps.append(name)
    return tuple(apps)


def _field(row: Mapping[str, Any], name: str) -> Any:
    for alias in FIELD_ALIASES[name]:
        if alias in row:
            return row[alias]
    return None


def _to_measure(value: Any, name: str) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    measure = float(value)
    if measure < 0:
        raise ValueError(f"Negative {name}: {measure}")
    return measure


@dataclass(frozen=True)
class SpendRecord:
    """One day of spend for one campaign; measures belong to the campaign as a whole."""

    date: date
    media_source: str
    campaign: str
    cost: float
    impressions: float = 0.0
    clicks: float = 0.0
    apps: tuple[str, ...] = ()

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SpendRecord":
        campaign = _field(row, "campaign")
        if campaign is None or str(campaign).strip() == "":
            raise ValueError(f"Record has no campaign: {dict(row)!r}")
        return cls(
            date=parse_record_date(_field(row, "date")),
            media_source=str(_field(row, "media_source") or "UNKNOWN").strip(),
            campaign=str(campaign).strip(),
            cost=_to_measure(_field(row, "cost"), "cost"),
            impressions=_to_measure(_field(row, "impressions"), "impressions"),
            clicks=_to_measure(_field(row, "clicks"), "clicks"),
            apps=parse_apps(_field(row, "apps")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "media_source": self.media_source,
            "campaign": self.campaign,
            "cost": self.cost,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "apps": list(self.apps),
        }


@dataclass(frozen=True)
class CostQuery:
    """One attribution request; an absent date_to means the single day date_from."""

    date_from: date
    date_to: date | None = None
    selected_apps: tuple[str, ...] = ()
    primary_group_by: str = DEFAULT_DIMENSION
    secondary_group_by: str | None = None
    app_level_cost_view: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.date_from, date):
            raise ValueError(f"date_from must be a date, got {self.date_from!r}")
        if self.date_to is not None and not isinstance(self.date_to, date):
            raise ValueError(f"date_to must be a date, got {self.date_to!r}")
        # Records are day-granular; drop any time of day.
        if isinstance(self.date_from, datetime):
            object.__setattr__(self, "date_from", self.date_from.date())
        if isinstance(self.date_to, datetime):
            object.__setattr__(self, "date_to", self.date_to.date())
        object.__setattr__(self, "selected_apps", parse_apps(self.selected_apps))

    @property
    def primary_dimension(self) -> str:
        return normalize_dimension(self.primary_group_by)

    @property
    def secondary_dimension(self) -> str | None:
        return normalize_secondary_dimension(self.secondary_group_by)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date_from": self.date_from.isoformat(),
            "date_to": self.date_to.isoformat() if self.date_to is not None else None,
            "selected_apps": list(self.selected_apps),
            "primary_group_by": self.primary_dimension,
            "secondary_group_by": self.secondary_dimension,
            "app_level_cost_view": self.app_level_cost_view,
        }


@dataclass(frozen=True)
class ResultRow:
    key: str
    label: str
    cost: float
    sub_rows: Mapping[str, "ResultRow"] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"key": self.key, "label": self.label, "cost": self.cost}
        if self.sub_rows is not None:
            payload["sub_rows"] = {key: row.to_dict() for key, row in self.sub_rows.items()}
        return payload


def rows_total(rows: Mapping[str, ResultRow] | Sequence[ResultRow]) -> float:
    values = rows.values() if isinstance(rows, Mapping) else rows
    return float(sum(row.cost for row in values))


@dataclass(frozen=True)
class EngineResult:
    total_cost: float
    table_rows: Mapping[str, ResultRow] = field(default_factory=dict)

    @property
    def totals_row(self) -> ResultRow:
        return ResultRow(key="totals", label="Total", cost=rows_total(self.table_rows))

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cost": self.total_cost,
            "table_rows": {key: row.to_dict() for key, row in self.table_rows.items()},
            "totals_row": self.totals_row.to_dict(),
        }
