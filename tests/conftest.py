# -*- coding: utf-8 -*-
"""Shared fixtures for the EV dashboard tests."""

import sys
from pathlib import Path

# Add project root to path so `core` imports without an install
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pandas as pd
import pytest
import requests

from core import data as data_module
from core.data import parse_records, type_records


ELIGIBILITY_COL = "Clean Alternative Fuel Vehicle (CAFV) Eligibility"

SAMPLE_CSV = (
    "VIN (1-10),County,City,State,Model Year,Make,Model,Electric Vehicle Type,"
    f"{ELIGIBILITY_COL},Electric Range\n"
    "5YJ3E1EB4L,Yakima,Yakima,WA,2020,TESLA,MODEL 3,Battery Electric Vehicle (BEV),"
    "Clean Alternative Fuel Vehicle Eligible,322\n"
    "WP0AH2A73J,Thurston,Olympia,WA,2018,PORSCHE,PANAMERA,Plug-in Hybrid Electric Vehicle (PHEV),"
    "Not eligible due to low battery range,14\n"
    "1N4AZ0CP5D,King,Seattle,WA,2013,NISSAN,LEAF,Battery Electric Vehicle (BEV),"
    "Clean Alternative Fuel Vehicle Eligible,75\n"
    "7SAYGDEE6P,King,Bothell,WA,2023,TESLA,MODEL Y,Battery Electric Vehicle (BEV),"
    "Eligibility unknown as battery range has not been researched,0\n"
    "JTDKN3DP8D,,,WA,,TOYOTA,,,,\n"
)

EXAMPLE_CSV = (
    f"Make,Model,Electric Vehicle Type,Electric Range,{ELIGIBILITY_COL}\n"
    "Tesla,Model 3,BEV,250,Eligible\n"
    "Nissan,Leaf,BEV,150,Not eligible due to low battery range\n"
)


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = ""):
        self.status_code = status_code
        self.content = text.encode("utf-8")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture(autouse=True)
def clear_loader_cache():
    data_module._load_dashboard_data_cached.cache_clear()
    data_module._SOURCE_REVISIONS.clear()
    yield
    data_module._load_dashboard_data_cached.cache_clear()
    data_module._SOURCE_REVISIONS.clear()


@pytest.fixture
def sample_csv() -> str:
    return SAMPLE_CSV


@pytest.fixture
def records() -> pd.DataFrame:
    return type_records(parse_records(SAMPLE_CSV))


@pytest.fixture
def example_records() -> pd.DataFrame:
    return type_records(parse_records(EXAMPLE_CSV))


@pytest.fixture
def dataset_file(tmp_path) -> Path:
    path = tmp_path / "Electric_Vehicle_Population_Data.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path


class FakeHttp:
    def __init__(self):
        self.calls = []
        self.responses = {}

    def get(self, url, timeout=None):
        self.calls.append(url)
        outcome = self.responses.get(url, FakeResponse(404))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_http(monkeypatch) -> FakeHttp:
    """Route `requests.get` to canned responses."""
    http = FakeHttp()
    monkeypatch.setattr(data_module.requests, "get", http.get)
    return http
