"""Spend record ingestion/output helpers with Polars-first and openpyxl fallback."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Sequence

import polars as pl

from cost_attribution.config import parse_error_threshold
from cost_attribution.domain.models import FIELD_ALIASES, parse_record_date

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: list[str] = ["date", "campaign", "cost", "apps"]
METRICS: list[str] = ["cost", "impressions", "clicks"]
RECORD_COLUMNS: list[str] = ["date", "media_source", "campaign", *METRICS, "apps"]
RECORD_SCHEMA: dict[str, Any] = {
    "date": pl.Date,
    "media_source": pl.Utf8,
    "campaign": pl.Utf8,
    "cost": pl.Float64,
    "impressions": pl.Float64,
    "clicks": pl.Float64,
    "apps": pl.List(pl.Utf8),
}
EXCEL_SUFFIXES: tuple[str, ...] = (".xlsx", ".xlsm", ".xls")
BAD_VALUE_SAMPLE = 5


def _import_openpyxl() -> tuple[Any, Any]:
    try:
        from openpyxl import Workbook, load_workbook
    except Exception as exc:  # pragma: no cover
        raise RuntimeError("openpyxl is required for Excel fallback I/O.") from exc
    return Workbook, load_workbook


def _normalize_headers(raw_headers: Sequence[Any]) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, value in enumerate(raw_headers):
        base = str(value).strip() if value not in (None, "") else f"column_{idx + 1}"
        count = seen.get(base, 0)
        name = base if count == 0 else f"{base}_{count + 1}"
        seen[base] = count + 1
        headers.append(name)
    return headers


def _read_excel_with_openpyxl(path: Path, preferred_sheet: str) -> pl.DataFrame:
    _, load_workbook = _import_openpyxl()
    workbook = load_workbook(path, read_only=True, data_only=True)

    sheet_name = preferred_sheet if preferred_sheet in workbook.sheetnames else workbook.sheetnames[0]
    worksheet = workbook[sheet_name]
    row_iter = worksheet.iter_rows(values_only=True)
    header_row = next(row_iter, None)
    if header_row is None:
        workbook.close()
        return pl.DataFrame()

    headers = _normalize_headers(header_row)
    records: list[dict[str, Any]] = []
    for values in row_iter:
        if values is None or all(value is None for value in values):
            continue
        records.append({name: values[idx] if idx < len(values) else None for idx, name in enumerate(headers)})

    workbook.close()
    if not records:
        return pl.DataFrame({name: [] for name in headers})
    return pl.DataFrame(records, infer_schema_length=None)


def _read_excel(path: Path, preferred_sheet: str) -> pl.DataFrame:
    try:
        frame = pl.read_excel(path, sheet_name=preferred_sheet)
    except Exception:
        try:
            frame = pl.read_excel(path)
        except Exception:
            return _read_excel_with_openpyxl(path, preferred_sheet)
    if isinstance(frame, dict):
        first_key = next(iter(frame.keys()), None)
        return frame[first_key] if first_key is not None else pl.DataFrame()
    return frame


def _read_raw_frame(path: Path, preferred_sheet: str) -> pl.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        # Dates and app lists stay text; they are parsed explicitly below.
        return pl.read_csv(path, infer_schema_length=0)
    if suffix in EXCEL_SUFFIXES:
        return _read_excel(path, preferred_sheet)
    if suffix == ".json":
        payload = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("records", [])
        if not isinstance(payload, list):
            raise ValueError(f"JSON input must be a list of records: {path}")
        return pl.DataFrame(payload, infer_schema_length=None) if payload else pl.DataFrame()
    if suffix == ".parquet":
        return pl.read_parquet(path)
    raise ValueError(f"Unsupported input format: {path.suffix}")


def _rename_aliases(df: pl.DataFrame) -> pl.DataFrame:
    renames: dict[str, str] = {}
    for name, aliases in FIELD_ALIASES.items():
        if name in df.columns:
            continue
        source = next((alias for alias in aliases if alias in df.columns), None)
        if source is not None:
            renames[source] = name
    return df.rename(renames) if renames else df


def _metric_text_expr(column_name: str) -> pl.Expr:
    return pl.col(column_name).cast(pl.Utf8, strict=False).str.strip_chars()


def _metric_parsed_expr(column_name: str) -> pl.Expr:
    return _metric_text_expr(column_name).str.replace_all(",", "").cast(pl.Float64, strict=False)


def _metric_parse_error_expr(column_name: str) -> pl.Expr:
    text_expr = _metric_text_expr(column_name)
    parsed_expr = _metric_parsed_expr(column_name)
    return (
        (text_expr.is_not_null() & (text_expr != "") & parsed_expr.is_null())
        .cast(pl.UInt32)
        .alias(f"__parse_error_{column_name}")
    )


def _metric_expr(column_name: str) -> pl.Expr:
    return _metric_parsed_expr(column_name).fill_null(0.0).alias(column_name)


def _validate_metric_parse_errors(
    df: pl.DataFrame,
    metric_columns: Sequence[str],
    threshold: float | None = None,
) -> None:
    if threshold is None:
        threshold = parse_error_threshold()
    if df.is_empty():
        return

    checks_df = df.select([_metric_parse_error_expr(column) for column in metric_columns])
    row_count = int(df.height)
    failures: list[str] = []
    for column in metric_columns:
        count_value = checks_df.select(pl.col(f"__parse_error_{column}").sum()).to_series(0)[0]
        parse_error_count = int(count_value or 0)
        parse_error_ratio = parse_error_count / row_count
        if parse_error_count and parse_error_ratio > threshold:
            failures.append(f"{column}={parse_error_ratio:.2%} ({parse_error_count}/{row_count})")
        elif parse_error_count:
            logger.warning("Replaced %d unparseable %s values with 0", parse_error_count, column)

    if failures:
        joined = ", ".join(failures)
        raise ValueError(f"Data quality check failed: metric parse error ratio exceeds {threshold:.2%} ({joined})")


def _validate_non_negative(df: pl.DataFrame) -> None:
    negatives = [column for column in METRICS if df.select((pl.col(column) < 0).any()).item()]
    if negatives:
        raise ValueError(f"Negative measures found in columns: {negatives}")


def _date_expr(df: pl.DataFrame) -> pl.Expr:
    """Parse the date column strictly; any empty or unrecognized value is rejected."""
    dtype = df.schema["date"]
    if dtype == pl.Date:
        values = pl.col("date")
    elif isinstance(dtype, pl.Datetime):
        values = pl.col("date").dt.date()
    else:
        values = None

    if values is not None:
        missing = df.select(pl.col("date").is_null().sum()).item()
        if missing:
            raise ValueError(f"Invalid record dates: {missing} empty values")
        return values.alias("date")

    texts = df.select(pl.col("date").cast(pl.Utf8, strict=False).str.strip_chars().alias("date")).to_series(0)
    parsed: dict[str, Any] = {}
    invalid: list[str] = []
    for text in texts.unique(maintain_order=True).to_list():
        try:
            parsed[text] = parse_record_date(text)
        except ValueError:
            invalid.append(repr(text))
    if invalid:
        sample = ", ".join(invalid[:BAD_VALUE_SAMPLE])
        raise ValueError(f"Invalid record dates ({len(invalid)} distinct values): {sample}")

    return (
        pl.col("date")
        .cast(pl.Utf8, strict=False)
        .str.strip_chars()
        .replace_strict(parsed, return_dtype=pl.Date)
        .alias("date")
    )


def _apps_expr(df: pl.DataFrame) -> pl.Expr:
    if isinstance(df.schema["apps"], pl.List):
        items = pl.col("apps").list.eval(pl.element().cast(pl.Utf8).str.strip_chars())
    else:
        items = (
            pl.col("apps")
            .cast(pl.Utf8, strict=False)
            .fill_null("")
            .str.split(",")
            .list.eval(pl.element().str.strip_chars())
        )
    return (
        items.list.eval(pl.element().filter(pl.element().is_not_null() & (pl.element() != "")))
        .list.unique(maintain_order=True)
        .alias("apps")
    )


def _dimension_expr(column_name: str) -> pl.Expr:
    return (
        pl.col(column_name)
        .cast(pl.Utf8, strict=False)
        .str.strip_chars()
        .fill_null("UNKNOWN")
        .alias(column_name)
    )


def empty_record_frame() -> pl.DataFrame:
    return pl.DataFrame(schema=RECORD_SCHEMA)


def normalize_record_frame(df: pl.DataFrame, threshold: float | None = None) -> pl.DataFrame:
    """Normalize a raw spend table into the engine record schema."""
    renamed = _rename_aliases(df)
    missing = sorted(set(REQUIRED_FIELDS).difference(renamed.columns))
    if missing:
        raise ValueError(f"Missing required columns: {missing}")
    if renamed.is_empty():
        return empty_record_frame()

    defaults = []
    if "media_source" not in renamed.columns:
        defaults.append(pl.lit(None, dtype=pl.Utf8).alias("media_source"))
    for metric in METRICS:
        if metric not in renamed.columns:
            defaults.append(pl.lit(None, dtype=pl.Utf8).alias(metric))
    if defaults:
        renamed = renamed.with_columns(defaults)

    _validate_metric_parse_errors(renamed, metric_columns=METRICS, threshold=threshold)
    normalized = renamed.with_columns(
        [
            _date_expr(renamed),
            _dimension_expr("media_source"),
            _dimension_expr("campaign"),
            _apps_expr(renamed),
        ]
        + [_metric_expr(metric) for metric in METRICS]
    ).select(RECORD_COLUMNS)
    _validate_non_negative(normalized)
    return normalized.cast(RECORD_SCHEMA)  # type: ignore[arg-type]


def read_spend_records(
    path: str | Path,
    preferred_sheet: str = "raw",
    threshold: float | None = None,
) -> pl.DataFrame:
    """Read a spend export (CSV/Excel/JSON/Parquet) into the engine record frame."""
    input_path = Path(path)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    raw_df = _read_raw_frame(input_path, preferred_sheet)
    records = normalize_record_frame(raw_df, threshold=threshold)
    logger.debug("Loaded %d spend records from %s", records.height, input_path)
    return records


def _excel_cell_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, bool, str)):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return value
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return value


def _excel_ready(frame: pl.DataFrame) -> pl.DataFrame:
    list_columns = [name for name, dtype in frame.schema.items() if isinstance(dtype, pl.List)]
    if not list_columns:
        return frame
    return frame.with_columns([pl.col(name).list.join(", ").alias(name) for name in list_columns])


def _write_with_polars(path: Path, sheets: Dict[str, pl.DataFrame]) -> bool:
    if not sheets:
        return False
    try:
        from xlsxwriter import Workbook
    except Exception:
        return False

    try:
        with Workbook(str(path)) as workbook:
            for sheet_name, frame in sheets.items():
                _excel_ready(frame).write_excel(workbook=workbook, worksheet=str(sheet_name)[:31])
        return True
    except Exception:
        logger.debug("polars Excel writer failed for %s, falling back to openpyxl", path, exc_info=True)
        return False


def _write_with_openpyxl(path: Path, sheets: Dict[str, pl.DataFrame]) -> None:
    Workbook, _ = _import_openpyxl()
    workbook = Workbook()
    default_sheet = workbook.active
    workbook.remove(default_sheet)

    for sheet_name, frame in sheets.items():
        worksheet = workbook.create_sheet(title=str(sheet_name)[:31])
        worksheet.append(frame.columns)
        for row in frame.iter_rows(named=False):
            worksheet.append([_excel_cell_value(value) for value in row])

    path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(path)


def write_output_excel(path: str | Path, sheets: Dict[str, pl.DataFrame]) -> None:
    """Write output Excel with Polars-first and openpyxl fallback."""
    excel_path = Path(path)
    excel_path.parent.mkdir(parents=True, exist_ok=True)

    if _write_with_polars(excel_path, sheets):
        return
    _write_with_openpyxl(excel_path, sheets)
