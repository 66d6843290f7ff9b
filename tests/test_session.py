# -*- coding: utf-8 -*-
"""Tests for the dashboard session state machine."""

import pytest

from core.data import DatasetFetchError, parse_records, type_records
from core.filters import DashboardFilters
from core.session import DashboardSession, DashboardViews, LoadStatus, SessionStateError, derive_views
from tests.conftest import EXAMPLE_CSV, SAMPLE_CSV, FakeResponse


URL = "https://example.org/Electric_Vehicle_Population_Data.csv"


def _loaded(csv: str = SAMPLE_CSV) -> DashboardSession:
    return DashboardSession().start(lambda: csv)


# ---------- loading ----------

class TestLoading:
    def test_initially_idle(self):
        session = DashboardSession()
        assert session.status is LoadStatus.IDLE
        assert session.records is None
        assert session.views == DashboardViews()

    def test_start_loads(self):
        session = _loaded()
        assert session.status is LoadStatus.LOADED
        assert session.error is None
        assert len(session.records) == 5
        assert session.views.overview["total"] == 5

    def test_start_twice_raises(self):
        session = _loaded()
        with pytest.raises(SessionStateError):
            session.start(lambda: SAMPLE_CSV)

    def test_loads_from_file_source(self, dataset_file):
        session = DashboardSession(dataset_file).start()
        assert session.status is LoadStatus.LOADED
        assert session.makes == ["TESLA", "PORSCHE", "NISSAN", "TOYOTA"]

    def test_empty_dataset_loads(self):
        session = _loaded("")
        assert session.status is LoadStatus.LOADED
        assert session.views.overview["total"] == 0
        assert session.choices == []

    def test_begin_load_enters_loading(self):
        session = DashboardSession()
        session.begin_load()
        assert session.status is LoadStatus.LOADING

    def test_initial_filter_applies_on_load(self):
        session = DashboardSession(filters=DashboardFilters(make="NISSAN")).start(lambda: SAMPLE_CSV)
        assert session.views.overview["total"] == 1

    def test_unparsable_header_loads_empty(self):
        session = _loaded('"Make,Model\nTesla,Model 3\n')
        assert session.status is LoadStatus.LOADED
        assert session.error is None
        assert session.views.overview["total"] == 0

    def test_file_with_undecodable_bytes_loads(self, tmp_path):
        path = tmp_path / "ev.csv"
        path.write_bytes(b"Make,Model\nTesla,Mod\xe9l 3\n")
        session = DashboardSession(path).start()
        assert session.status is LoadStatus.LOADED
        assert session.makes == ["Tesla"]


class TestLoadFailure:
    def test_non_success_fetch_fails(self, fake_http):
        fake_http.responses[URL] = FakeResponse(404)
        session = DashboardSession(URL).start()
        assert session.status is LoadStatus.FAILED
        assert session.error == "Failed to fetch data"
        assert session.records is None
        assert session.views == DashboardViews()

    def test_fetch_exception_fails(self):
        def _boom():
            raise DatasetFetchError("Failed to fetch data: timeout")

        session = DashboardSession().start(_boom)
        assert session.status is LoadStatus.FAILED
        assert session.error == "Failed to fetch data: timeout"

    def test_unexpected_exception_fails(self):
        def _boom():
            raise ValueError("bad bytes")

        session = DashboardSession().start(_boom)
        assert session.status is LoadStatus.FAILED
        assert "bad bytes" in session.error

    def test_missing_file_fails(self, tmp_path):
        session = DashboardSession(tmp_path / "missing.csv").start()
        assert session.status is LoadStatus.FAILED
        assert session.records is None

    def test_no_automatic_retry(self, fake_http):
        fake_http.responses[URL] = FakeResponse(503)
        session = DashboardSession(URL).start()
        assert fake_http.calls == [URL]
        assert session.status is LoadStatus.FAILED

    def test_reload_after_failure(self, fake_http):
        fake_http.responses[URL] = FakeResponse(503)
        session = DashboardSession(URL).start()
        fake_http.responses[URL] = FakeResponse(200, SAMPLE_CSV)
        assert session.reload() is LoadStatus.LOADED
        assert session.error is None
        assert len(session.records) == 5

    def test_dismiss_error(self, fake_http):
        session = DashboardSession(URL).start()
        session.dismiss_error()
        assert session.error is None
        assert session.status is LoadStatus.FAILED

    def test_filter_requires_loaded(self, fake_http):
        session = DashboardSession(URL).start()
        with pytest.raises(SessionStateError):
            session.set_filter("TESLA")

    def test_views_not_recomputed_while_loading(self):
        session = DashboardSession()
        session.begin_load()
        with pytest.raises(SessionStateError):
            session.set_page(1)
        with pytest.raises(SessionStateError):
            session._recompute()
        assert session.views == DashboardViews()


class TestLoadGenerations:
    def test_stale_load_is_discarded(self):
        session = DashboardSession()
        first = session.begin_load()
        second = session.begin_load()
        records = type_records(parse_records(SAMPLE_CSV))

        assert session.complete_load(first, records) is False
        assert session.status is LoadStatus.LOADING
        assert session.records is None

        assert session.complete_load(second, records) is True
        assert session.status is LoadStatus.LOADED

    def test_stale_failure_is_ignored(self):
        session = DashboardSession()
        first = session.begin_load()
        second = session.begin_load()
        session.complete_load(second, type_records(parse_records(SAMPLE_CSV)))

        assert session.fail_load(first, "Failed to fetch data") is False
        assert session.status is LoadStatus.LOADED
        assert session.error is None

    def test_close_invalidates_pending_load(self):
        session = DashboardSession()
        pending = session.begin_load()
        session.close()
        assert session.complete_load(pending, type_records(parse_records(SAMPLE_CSV))) is False
        assert session.status is LoadStatus.IDLE


# ---------- selector ----------

class TestSetFilter:
    def test_filter_recomputes_views(self):
        session = _loaded()
        views = session.set_filter("TESLA")
        assert views.overview["total"] == 2
        assert views.range["series"]["labels"] == ["TESLA MODEL 3", "TESLA MODEL Y"]
        assert [r["label"] for r in views.table["rows"]] == ["TESLA - MODEL 3", "TESLA - MODEL Y"]

    def test_filter_does_not_change_load_state(self):
        session = _loaded()
        session.set_filter("TESLA")
        assert session.status is LoadStatus.LOADED

    def test_choices_never_shrink(self):
        session = _loaded()
        before = session.choices
        session.set_filter("PORSCHE")
        assert session.choices == before
        assert len(before) == 4

    def test_clear_filter(self):
        session = _loaded()
        session.set_filter("TESLA")
        views = session.set_filter(None)
        assert views.overview["total"] == 5

    def test_same_selector_is_idempotent(self):
        session = _loaded()
        first = session.set_filter("NISSAN")
        second = session.set_filter("NISSAN")
        assert first == second

    def test_unknown_make_yields_empty_views(self):
        session = _loaded()
        views = session.set_filter("DELOREAN")
        assert views.overview["total"] == 0
        assert views.table["rows"] == []

    def test_filter_resets_page(self):
        session = _loaded()
        session.set_page(1, 5)
        session.set_filter("TESLA")
        assert session.filters.page == 0
        assert session.filters.page_size == 5

    def test_example_dataset(self):
        session = _loaded(EXAMPLE_CSV)
        overview = session.views.overview
        assert overview["total"] == 2
        assert overview["type_counts"] == {"BEV": 2}
        assert overview["eligibility"]["values"] == [1, 1]


class TestPagingAndExport:
    def test_set_page(self):
        session = _loaded()
        views = session.set_page(1, 5)
        assert views.table["pagination"]["page"] == 0
        assert views.table["pagination"]["page_count"] == 1

    def test_export(self):
        session = _loaded()
        session.set_filter("NISSAN")
        assert b"NISSAN - LEAF" in session.export_csv()
        assert b"TESLA" not in session.export_csv()


class TestClose:
    def test_close_drops_state(self):
        session = _loaded()
        session.set_filter("TESLA")
        session.close()
        assert session.status is LoadStatus.IDLE
        assert session.records is None
        assert session.filters.make is None
        assert session.views == DashboardViews()


def test_derive_views_is_pure(records):
    filters = DashboardFilters(make="TESLA")
    first = derive_views(records, ["TESLA", "PORSCHE", "NISSAN", "TOYOTA"], filters)
    second = derive_views(records, ["TESLA", "PORSCHE", "NISSAN", "TOYOTA"], filters)
    assert first == second
    assert len(records) == 5
