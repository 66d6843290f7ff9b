"""Payload contracts handed to the table, chart, card and selector widgets."""

from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, Field, model_validator


class ColumnDescriptor(BaseModel):
    field: str
    header_name: str
    width: int = 120


class DisplayRow(BaseModel):
    id: int
    label: str
    model_year: str = "N/A"
    city: str = "N/A"
    county: str = "N/A"
    state: str = "N/A"
    electric_range: Union[int, float, str] = "N/A"
    cafv_eligibility: str = "N/A"


class Pagination(BaseModel):
    page: int = 0
    page_size: int = 25
    page_count: int = 1
    total_rows: int = 0


class TablePayload(BaseModel):
    rows: List[DisplayRow] = Field(default_factory=list)
    columns: List[ColumnDescriptor] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class ChartDataset(BaseModel):
    label: str
    values: List[float] = Field(default_factory=list)
    background_color: Optional[str] = None


class BarChartPayload(BaseModel):
    labels: List[str] = Field(default_factory=list)
    datasets: List[ChartDataset] = Field(default_factory=list)

    @model_validator(mode="after")
    def _aligned(self) -> "BarChartPayload":
        for ds in self.datasets:
            if len(ds.values) != len(self.labels):
                raise ValueError(f"dataset {ds.label!r} has {len(ds.values)} values for {len(self.labels)} labels")
        return self


class PieChartPayload(BaseModel):
    labels: List[str] = Field(min_length=2, max_length=2)
    values: List[int] = Field(min_length=2, max_length=2)
    background_color: List[str] = Field(default_factory=list)


class SummaryCard(BaseModel):
    label: str
    value: int


class MakeChoice(BaseModel):
    label: str
