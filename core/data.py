from __future__ import annotations

import io
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd
import requests

from core.filters import DashboardFilters, filter_records, make_universe, normalize_filters


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DATASET_FILENAME = "Electric_Vehicle_Population_Data.csv"
DATASET_ENV_VAR = "EV_DASHBOARD_DATASET"
FETCH_TIMEOUT_SECONDS = 30.0

FETCH_ERROR_MESSAGE = "Failed to fetch data"

EV_COLUMNS = {
    "VIN (1-10)": "vin",
    "Make": "make",
    "Model": "model",
    "Model Year": "model_year",
    "Electric Vehicle Type": "vehicle_type",
    "Electric Range": "electric_range",
    "City": "city",
    "County": "county",
    "State": "state",
    "Clean Alternative Fuel Vehicle (CAFV) Eligibility": "cafv_eligibility",
}

STRING_COLUMNS = ["vin", "make", "model", "model_year", "vehicle_type", "city", "county", "state", "cafv_eligibility"]
NUMERIC_COLUMNS = ["electric_range"]

Source = Union[str, Path]


class DatasetFetchError(RuntimeError):
    """The dataset could not be fetched; the message is safe to show to users."""


def is_url(source: Source) -> bool:
    return isinstance(source, str) and source.lower().startswith(("http://", "https://"))


def resolve_dataset_source() -> Source:
    override = (os.environ.get(DATASET_ENV_VAR) or "").strip()
    if not override:
        return DATA_DIR / DATASET_FILENAME
    return override if is_url(override) else Path(override).expanduser()


def source_signature(source: Source) -> Tuple[str, Optional[float]]:
    if is_url(source):
        return str(source), None
    path = Path(source)
    try:
        return str(path), path.stat().st_mtime
    except OSError:
        return str(path), None


# ---------------- Transport ----------------
def fetch_dataset_text(source: Source, *, timeout: float = FETCH_TIMEOUT_SECONDS) -> str:
    if is_url(source):
        try:
            response = requests.get(str(source), timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            logger.error("Dataset request returned %s: %s", exc.response.status_code if exc.response is not None else "?", source)
            raise DatasetFetchError(FETCH_ERROR_MESSAGE) from exc
        except requests.exceptions.RequestException as exc:
            logger.error("Dataset request failed for %s: %s", source, exc)
            raise DatasetFetchError(f"{FETCH_ERROR_MESSAGE}: {type(exc).__name__}") from exc
        return response.content.decode("utf-8-sig", errors="replace")

    path = Path(source)
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        logger.error("Missing dataset at %s", path)
        raise DatasetFetchError(f"{FETCH_ERROR_MESSAGE}: {path.name} not found") from exc
    except OSError as exc:
        logger.error("Could not read dataset at %s: %s", path, exc)
        raise DatasetFetchError(f"{FETCH_ERROR_MESSAGE}: {path.name} is unreadable") from exc
    text = raw.decode("utf-8-sig", errors="replace")
    if "\ufffd" in text:
        logger.warning("Replaced undecodable bytes in %s", path)
    return text


# ---------------- Parsing ----------------
def parse_records(text: Optional[str]) -> pd.DataFrame:
    """Parse delimited text with a header row into raw string records.

    Empty input gives an empty frame. Rows with extra fields are cut to the
    header width, short rows are padded with <NA>.
    """
    if not text or not text.strip():
        return pd.DataFrame()
    text = text.lstrip("\ufeff")

    try:
        header = pd.read_csv(io.StringIO(text), nrows=0, dtype=str)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except pd.errors.ParserError as exc:
        logger.error("Dataset header could not be parsed: %s", exc)
        return pd.DataFrame()
    width = len(header.columns)
    malformed: List[int] = []

    def _truncate(bad_line: List[str]) -> List[str]:
        malformed.append(1)
        return bad_line[:width]

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
            engine="python",
            on_bad_lines=_truncate,
        )
    except pd.errors.ParserError as exc:
        logger.error("Dataset text could not be parsed: %s", exc)
        return pd.DataFrame()
    if malformed:
        logger.warning("Truncated %d row(s) with more fields than the header", len(malformed))
    return df.astype("string")


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"": pd.NA})
            df[col] = series
    return df


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            values = df[col].astype(object).where(df[col].notna(), None)
            df[col] = pd.to_numeric(values, errors="coerce").astype("Float64")
    return df


def type_records(raw: pd.DataFrame) -> pd.DataFrame:
    """Project raw records onto the canonical EV columns.

    Every canonical column exists afterwards; absent values are <NA>.
    """
    df = raw.rename(columns={str(c): str(c).strip() for c in raw.columns})
    df = df.rename(columns=EV_COLUMNS)
    df = drop_duplicate_columns(df).copy()
    for col in STRING_COLUMNS + NUMERIC_COLUMNS:
        if col not in df.columns:
            df[col] = pd.Series(pd.NA, index=df.index, dtype="string")
    df = coerce_str_safe(df, STRING_COLUMNS + NUMERIC_COLUMNS)
    df = numericize(df, NUMERIC_COLUMNS)
    return df.reset_index(drop=True)


def load_records(source: Source) -> pd.DataFrame:
    text = fetch_dataset_text(source)
    records = type_records(parse_records(text))
    logger.info("Loaded %d EV records from %s", len(records), source)
    return records


# ---------------- Dashboard context ----------------
# Bumped by a refresh so only that source misses the memo.
_SOURCE_REVISIONS: Dict[str, int] = {}


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(source_sig: Tuple[str, Optional[float]], revision: int = 0) -> Dict[str, object]:
    source, _ = source_sig
    records = load_records(source if is_url(source) else Path(source))
    return {"source": source, "records": records, "makes": make_universe(records)}


def load_dashboard_data(source: Optional[Source] = None, *, refresh: bool = False) -> Dict[str, object]:
    source_sig = source_signature(source or resolve_dataset_source())
    key = source_sig[0]
    if refresh:
        _SOURCE_REVISIONS[key] = _SOURCE_REVISIONS.get(key, 0) + 1
    return _load_dashboard_data_cached(source_sig, _SOURCE_REVISIONS.get(key, 0))


def prepare_context(filters: dict | DashboardFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    records = data_ctx.get("records")
    if not isinstance(records, pd.DataFrame):
        records = type_records(pd.DataFrame())
    makes = data_ctx.get("makes")
    if makes is None:
        makes = make_universe(records)

    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters, available_makes=makes)
    return {
        "records": records,
        "filtered_records": filter_records(records, filt.make),
        "makes": list(makes),
        "filters": filt,
    }
