from __future__ import annotations

from typing import Any, Dict, Sequence

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

RANGE_BAR_COLOR = "rgba(75, 192, 192, 0.6)"
ELIGIBLE_COLOR = "#4CAF50"
NOT_ELIGIBLE_COLOR = "#F44336"


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def range_bar_chart(labels: Sequence[str], values: Sequence[float], *, title: str = "Electric Range (miles)") -> alt.Chart:
    # Labels repeat across vehicles, so bars are keyed by position.
    df = pd.DataFrame({"position": range(len(labels)), "vehicle": list(labels), "electric_range": list(values)})
    return (
        alt.Chart(df)
        .mark_bar(color=RANGE_BAR_COLOR)
        .encode(
            x=alt.X("position:O", title=None, axis=alt.Axis(labels=False, ticks=False)),
            y=alt.Y("electric_range:Q", title=title, scale=alt.Scale(zero=True)),
            tooltip=[
                alt.Tooltip("vehicle:N", title="Vehicle"),
                alt.Tooltip("electric_range:Q", title=title, format=",.0f"),
            ],
        )
    )


def eligibility_pie_chart(labels: Sequence[str], values: Sequence[int], colors: Sequence[str]) -> alt.Chart:
    df = pd.DataFrame({"status": list(labels), "count": list(values)})
    return (
        alt.Chart(df)
        .mark_arc()
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color(
                "status:N",
                title="CAFV Eligibility",
                scale=alt.Scale(domain=list(labels), range=list(colors)),
                legend=alt.Legend(orient="top"),
            ),
            tooltip=[alt.Tooltip("status:N", title="Status"), alt.Tooltip("count:Q", title="Vehicles", format=",")],
        )
    )
