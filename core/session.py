"""Per-session dashboard state.

A `DashboardSession` owns the loaded record set, the load status and the make
selector. Every change to the records or the selector re-derives all views
synchronously through `derive_views`; nothing is recomputed lazily.

    Idle -> Loading -> Loaded | Failed

Loads are numbered. A load that finishes after a newer one has started is
discarded, so only the most recent load can write the records.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from core.data import (
    FETCH_ERROR_MESSAGE,
    DatasetFetchError,
    Source,
    load_dashboard_data,
    parse_records,
    prepare_context,
    type_records,
)
from core.filters import DashboardFilters, make_universe, normalize_filters
from core.metrics_overview import compute_overview
from core.metrics_range import compute_range
from core.views import compute_table, export_csv, make_choices


logger = logging.getLogger(__name__)


class LoadStatus(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class SessionStateError(RuntimeError):
    pass


@dataclass(frozen=True)
class DashboardViews:
    overview: Dict[str, Any] = field(default_factory=dict)
    range: Dict[str, Any] = field(default_factory=dict)
    table: Dict[str, Any] = field(default_factory=dict)
    choices: List[Dict[str, str]] = field(default_factory=list)


def derive_views(records: pd.DataFrame, makes: List[str], filters: DashboardFilters) -> DashboardViews:
    ctx = prepare_context(filters, {"records": records, "makes": makes})
    return DashboardViews(
        overview=compute_overview(filters, ctx),
        range=compute_range(filters, ctx),
        table=compute_table(filters, ctx),
        choices=make_choices(records),
    )


class DashboardSession:
    def __init__(self, source: Optional[Source] = None, *, filters: Optional[DashboardFilters] = None):
        self.source = source
        self.status = LoadStatus.IDLE
        self.error: Optional[str] = None
        self.records: Optional[pd.DataFrame] = None
        self.makes: List[str] = []
        self.filters = filters or DashboardFilters()
        self.views = DashboardViews()
        self._generation = 0

    # ----- loading -----
    def start(self, fetch: Optional[Callable[[], str]] = None) -> "DashboardSession":
        if self.status is not LoadStatus.IDLE:
            raise SessionStateError(f"session already started ({self.status.value})")
        self.load(fetch)
        return self

    def begin_load(self) -> int:
        self._generation += 1
        self.status = LoadStatus.LOADING
        self.error = None
        logger.debug("Load %d started", self._generation)
        return self._generation

    def complete_load(self, generation: int, records: pd.DataFrame) -> bool:
        if generation != self._generation:
            logger.info("Discarding load %d; load %d is newer", generation, self._generation)
            return False
        self.records = records
        self.makes = make_universe(records)
        self.status = LoadStatus.LOADED
        self.error = None
        self._recompute()
        return True

    def fail_load(self, generation: int, message: str) -> bool:
        if generation != self._generation:
            logger.info("Ignoring failure of stale load %d", generation)
            return False
        self.records = None
        self.makes = []
        self.views = DashboardViews()
        self.status = LoadStatus.FAILED
        self.error = message
        return True

    def load(self, fetch: Optional[Callable[[], str]] = None, *, refresh: bool = False) -> LoadStatus:
        """Fetch and parse the dataset.

        `fetch` returns raw CSV text; by default the configured source is read
        through the shared loader cache.
        """
        generation = self.begin_load()
        try:
            if fetch is not None:
                records = type_records(parse_records(fetch()))
            else:
                records = load_dashboard_data(self.source, refresh=refresh)["records"]
        except DatasetFetchError as exc:
            logger.warning("Dataset load failed: %s", exc)
            self.fail_load(generation, str(exc))
            return self.status
        except Exception as exc:
            logger.exception("Dataset load failed")
            self.fail_load(generation, f"{FETCH_ERROR_MESSAGE}: {exc}")
            return self.status
        self.complete_load(generation, records)
        return self.status

    def reload(self, fetch: Optional[Callable[[], str]] = None) -> LoadStatus:
        return self.load(fetch, refresh=True)

    # ----- selector -----
    def set_filter(self, make: Optional[str]) -> DashboardViews:
        self._require_loaded("set_filter")
        raw = {"make": make, "page": 0, "page_size": self.filters.page_size, "display": self.filters.display}
        self.filters = normalize_filters(raw, available_makes=self.makes)
        self._recompute()
        return self.views

    def set_page(self, page: int, page_size: Optional[int] = None) -> DashboardViews:
        self._require_loaded("set_page")
        raw = {
            "make": self.filters.make,
            "page": page,
            "page_size": page_size if page_size is not None else self.filters.page_size,
            "display": self.filters.display,
        }
        self.filters = normalize_filters(raw, available_makes=self.makes)
        self._recompute()
        return self.views

    def export_csv(self) -> bytes:
        self._require_loaded("export_csv")
        ctx = prepare_context(self.filters, {"records": self.records, "makes": self.makes})
        return export_csv(self.filters, ctx)

    # ----- notifications / teardown -----
    def dismiss_error(self) -> None:
        self.error = None

    def close(self) -> None:
        self._generation += 1
        self.records = None
        self.makes = []
        self.views = DashboardViews()
        self.error = None
        self.filters = replace(self.filters, make=None, page=0)
        self.status = LoadStatus.IDLE

    @property
    def choices(self) -> List[Dict[str, str]]:
        return self.views.choices

    def _require_loaded(self, op: str) -> None:
        if self.status is not LoadStatus.LOADED or self.records is None:
            raise SessionStateError(f"{op} requires a loaded dataset (status: {self.status.value})")

    def _recompute(self) -> None:
        self._require_loaded("recompute")
        self.views = derive_views(self.records, self.makes, self.filters)
