from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Tuple

import pandas as pd

from core.charts import RANGE_BAR_COLOR, range_bar_chart, to_vega_spec
from core.filters import DashboardFilters
from core.schemas import BarChartPayload, ChartDataset


RANGE_DATASET_LABEL = "Electric Range (miles)"
PLACEHOLDER = "N/A"


def _text_or_placeholder(series: pd.Series) -> pd.Series:
    return series.astype("string").fillna(PLACEHOLDER)


def range_series(records: pd.DataFrame) -> Tuple[List[str], List[float]]:
    """One (label, range) point per record; missing ranges count as 0."""
    if records.empty:
        return [], []
    blank = pd.Series(pd.NA, index=records.index, dtype="string")
    makes = _text_or_placeholder(records.get("make", blank))
    models = _text_or_placeholder(records.get("model", blank))
    labels = (makes + " " + models).tolist()

    ranges = pd.to_numeric(records.get("electric_range", blank.astype("Float64")), errors="coerce")
    values = [float(v) for v in ranges.astype("Float64").fillna(0).tolist()]
    return [str(x) for x in labels], values


def compute_range(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())
    labels, values = range_series(df)
    payload = BarChartPayload(
        labels=labels,
        datasets=[ChartDataset(label=RANGE_DATASET_LABEL, values=values, background_color=RANGE_BAR_COLOR)],
    )

    charts: Dict[str, Any] = {}
    if labels:
        charts["electric_range"] = to_vega_spec(range_bar_chart(labels, values, title=RANGE_DATASET_LABEL))

    return {"filters": asdict(filters), "series": payload.model_dump(), "charts": charts}
