"""Projection of EV records into table rows, selector choices and CSV exports."""

from __future__ import annotations

import math
from dataclasses import asdict
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from core.filters import DashboardFilters, make_universe
from core.schemas import ColumnDescriptor, DisplayRow, MakeChoice, Pagination, TablePayload


PLACEHOLDER = "N/A"

COLUMNS: List[ColumnDescriptor] = [
    ColumnDescriptor(field="id", header_name="ID", width=100),
    ColumnDescriptor(field="label", header_name="Model", width=150),
    ColumnDescriptor(field="model_year", header_name="Model Year", width=120),
    ColumnDescriptor(field="city", header_name="City", width=120),
    ColumnDescriptor(field="county", header_name="County", width=120),
    ColumnDescriptor(field="state", header_name="State", width=100),
    ColumnDescriptor(field="electric_range", header_name="Electric Range (miles)", width=180),
    ColumnDescriptor(field="cafv_eligibility", header_name="CAFV Eligibility", width=250),
]

TEXT_FIELDS = ["model_year", "city", "county", "state", "cafv_eligibility"]


def _column(records: pd.DataFrame, col: str) -> pd.Series:
    if col in records.columns:
        return records[col]
    return pd.Series(pd.NA, index=records.index, dtype="string")


def _text(series: pd.Series) -> pd.Series:
    return series.astype("string").fillna(PLACEHOLDER)


def _range_display(value: object) -> object:
    if value is None or pd.isna(value):
        return PLACEHOLDER
    out = float(value)  # type: ignore[arg-type]
    if math.isinf(out):
        return PLACEHOLDER
    return int(out) if np.isclose(out, np.round(out)) else out


def project_rows(records: pd.DataFrame, *, start: int = 0) -> List[Dict[str, Any]]:
    """Flat display rows; `id` is the position within the filtered set, offset by `start`."""
    if records.empty:
        return []
    out = pd.DataFrame({"id": np.arange(start, start + len(records), dtype=int)}, index=records.index)
    out["label"] = _text(_column(records, "make")) + " - " + _text(_column(records, "model"))
    for col in TEXT_FIELDS:
        out[col] = _text(_column(records, col))
    out["electric_range"] = _column(records, "electric_range").map(_range_display)
    out = out[[c.field for c in COLUMNS]].astype(object)
    return [
        {k: (int(v) if isinstance(v, np.integer) else v) for k, v in row.items()}
        for row in out.to_dict(orient="records")
    ]


def make_choices(records: pd.DataFrame) -> List[Dict[str, str]]:
    return [MakeChoice(label=m).model_dump() for m in make_universe(records)]


def page_bounds(total_rows: int, page: int, page_size: int) -> Pagination:
    """Clamp `page` into range; out-of-range pages land on the last page."""
    page_size = max(1, int(page_size))
    page_count = max(1, math.ceil(total_rows / page_size))
    page = max(0, min(int(page), page_count - 1))
    return Pagination(page=page, page_size=page_size, page_count=page_count, total_rows=int(total_rows))


def paginate(rows: Sequence[Dict[str, Any]], page: int, page_size: int) -> Dict[str, Any]:
    bounds = page_bounds(len(rows), page, page_size)
    start = bounds.page * bounds.page_size
    return {"rows": list(rows[start:start + bounds.page_size]), "pagination": bounds.model_dump()}


def compute_table(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())
    bounds = page_bounds(len(df), filters.page, filters.page_size)
    start = bounds.page * bounds.page_size
    rows = project_rows(df.iloc[start:start + bounds.page_size], start=start)
    payload = TablePayload(rows=[DisplayRow(**r) for r in rows], columns=COLUMNS, pagination=bounds)
    return {"filters": asdict(filters), **payload.model_dump()}


def export_csv(filters: DashboardFilters, ctx: Dict[str, Any]) -> bytes:
    df: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())
    rows = pd.DataFrame(project_rows(df), columns=[c.field for c in COLUMNS])
    rows = rows.rename(columns={c.field: c.header_name for c in COLUMNS})
    return rows.to_csv(index=False).encode("utf-8")
