from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from core.charts import ELIGIBLE_COLOR, NOT_ELIGIBLE_COLOR, eligibility_pie_chart, to_vega_spec
from core.filters import DashboardFilters
from core.schemas import PieChartPayload, SummaryCard


UNKNOWN_TYPE = "Unknown"
TOTAL_CARD_LABEL = "Total Vehicles"
ELIGIBILITY_LABELS = ["Eligible", "Not Eligible"]

# Status texts in the dataset that mean "eligible". "Not eligible due to low
# battery range" and "Eligibility unknown ..." both contain the word, so
# matching is exact.
ELIGIBLE_STATUSES = frozenset({"Eligible", "Clean Alternative Fuel Vehicle Eligible"})


def is_eligible(status: Optional[object]) -> bool:
    if status is None or pd.isna(status):
        return False
    return str(status).strip() in ELIGIBLE_STATUSES


def count_by_type(records: pd.DataFrame) -> Dict[str, int]:
    """Vehicle counts per EV type, keyed in order of first occurrence."""
    if records.empty:
        return {}
    types = records.get("vehicle_type", pd.Series(pd.NA, index=records.index, dtype="string"))
    types = types.astype("string").str.strip().replace({"": pd.NA}).fillna(UNKNOWN_TYPE)
    counts = types.value_counts()
    return {str(t): int(counts[t]) for t in pd.unique(types)}


def eligibility_split(records: pd.DataFrame) -> Tuple[int, int]:
    if records.empty or "cafv_eligibility" not in records.columns:
        return 0, int(len(records))
    eligible = int(records["cafv_eligibility"].map(is_eligible).sum())
    return eligible, int(len(records)) - eligible


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())

    total = int(len(df))
    type_counts = count_by_type(df)
    cards = [SummaryCard(label=TOTAL_CARD_LABEL, value=total)]
    cards += [SummaryCard(label=label, value=count) for label, count in type_counts.items()]

    eligible, not_eligible = eligibility_split(df)
    pie = PieChartPayload(
        labels=ELIGIBILITY_LABELS,
        values=[eligible, not_eligible],
        background_color=[ELIGIBLE_COLOR, NOT_ELIGIBLE_COLOR],
    )

    charts: Dict[str, Any] = {}
    if total:
        charts["eligibility"] = to_vega_spec(eligibility_pie_chart(pie.labels, pie.values, pie.background_color))

    return {
        "filters": asdict(filters),
        "total": total,
        "type_counts": type_counts,
        "cards": [c.model_dump() for c in cards],
        "eligibility": pie.model_dump(),
        "charts": charts,
    }
