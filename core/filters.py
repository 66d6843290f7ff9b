from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import pandas as pd


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DisplaySettings:
    default_page_size: int = 25
    min_page_size: int = 5
    max_page_size: int = 100


@dataclass(frozen=True)
class DashboardFilters:
    make: Optional[str] = None
    page: int = 0
    page_size: int = 25
    display: DisplaySettings = field(default_factory=DisplaySettings)


def _as_int(value: object, default: int) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except Exception:
        return default


def _as_make(value: object) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    s = str(value)
    if not s.strip():
        return None
    return s


def normalize_filters(raw: dict, *, available_makes: Optional[Iterable[str]] = None) -> DashboardFilters:
    """Build filters from a loose dict (widget state, query params).

    The make is kept verbatim. An unknown make is not an error: it filters to
    an empty record set.
    """
    make = _as_make(raw.get("make"))
    if make is not None and available_makes is not None and make not in set(available_makes):
        logger.debug("make %r is not present in the dataset", make)

    d = raw.get("display") or {}
    display = d if isinstance(d, DisplaySettings) else DisplaySettings(
        default_page_size=_as_int(d.get("default_page_size"), 25),
        min_page_size=_as_int(d.get("min_page_size"), 5),
        max_page_size=_as_int(d.get("max_page_size"), 100),
    )

    page = max(0, _as_int(raw.get("page", 0), 0))
    page_size = _as_int(raw.get("page_size", display.default_page_size), display.default_page_size)
    page_size = max(display.min_page_size, min(display.max_page_size, page_size))

    return DashboardFilters(make=make, page=page, page_size=page_size, display=display)


def filter_records(records: pd.DataFrame, make: Optional[str]) -> pd.DataFrame:
    """Rows whose make equals `make` exactly; the input itself when `make` is None."""
    if make is None:
        return records
    if records.empty or "make" not in records.columns:
        return records.iloc[0:0]
    mask = records["make"].eq(make).fillna(False).astype(bool)
    return records[mask]


def make_universe(records: pd.DataFrame) -> List[str]:
    """Distinct makes of the full record set, in order of first occurrence."""
    if records.empty or "make" not in records.columns:
        return []
    return [str(m) for m in pd.unique(records["make"].dropna())]
