"""
records.py
----------
CSV bodies <-> Observation lists.

CDEC CSVDataServlet body (comma-delimited, one header row, 9 columns):
  STATION_ID,DURATION,SENSOR_NUMBER,SENSOR_TYPE,DATE TIME,OBS DATE,VALUE,DATA_FLAG,UNITS
  VIL,D,15,STORAGE,20220215 0000,20220215 0000,9593, ,AF

Rows are rejected (skipped, counted, logged) when:
  - the field count is not 9
  - DURATION is not "D" or "M"
  - either timestamp does not parse as YYYYMMDD HHMM
"""

import io
import logging

import pandas as pd

from .observation import DATE_FORMAT, Duration, Observation, Sentinel, parse_value

logger = logging.getLogger(__name__)

RECORD_COLUMNS = [
    "STATION_ID", "DURATION", "SENSOR_NUMBER", "SENSOR_TYPE",
    "DATE TIME", "OBS DATE", "VALUE", "DATA_FLAG", "UNITS",
]
DURATION_CODES = [d.value for d in Duration]
SENTINEL_CODES = [s.value for s in Sentinel]


def read_record_frame(text: str) -> tuple[pd.DataFrame, int]:
    """
    Read a CSV body into a string-typed DataFrame with one column per
    record field.  Returns (frame, number of rows with a wrong field count).
    """
    bad_lines: list[list[str]] = []

    def _reject(line: list[str]):
        bad_lines.append(line)
        return None

    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=",",
            header=None,
            skiprows=1,
            names=RECORD_COLUMNS,
            dtype=str,
            keep_default_na=False,
            engine="python",
            on_bad_lines=_reject,
        )
    except pd.errors.EmptyDataError:
        # Header only
        return pd.DataFrame(columns=RECORD_COLUMNS, dtype=str), 0

    # Rows with fewer than 9 fields are padded with NaN by read_csv
    short = df.isna().any(axis=1)
    df = df[~short].copy()
    for col in RECORD_COLUMNS:
        df[col] = df[col].str.strip()
    return df, len(bad_lines) + int(short.sum())


def parse_csv_body(text: str, unparseable_as_zero: bool = False) -> list[Observation]:
    """Parse one CSV body into Observations, dropping malformed rows."""
    if not text.strip():
        return []

    df, rejected = read_record_frame(text)

    bad_duration = ~df["DURATION"].isin(DURATION_CODES)
    df = df[~bad_duration]

    recorded = pd.to_datetime(df["DATE TIME"], format=DATE_FORMAT, errors="coerce")
    observed = pd.to_datetime(df["OBS DATE"],  format=DATE_FORMAT, errors="coerce")
    bad_date = recorded.isna() | observed.isna()
    df, recorded, observed = df[~bad_date], recorded[~bad_date], observed[~bad_date]

    rejected += int(bad_duration.sum()) + int(bad_date.sum())
    if rejected:
        logger.warning("   %d malformed record(s) rejected", rejected)

    numeric = df["VALUE"].str.fullmatch(r"\d+")
    unparseable = int((~numeric & ~df["VALUE"].isin(SENTINEL_CODES)).sum())
    if unparseable:
        logger.warning("   %d unparseable storage value(s) read as %s",
                       unparseable, "0" if unparseable_as_zero else "missing")

    return [
        Observation(
            station_id       = row["STATION_ID"],
            date_recording   = rec.date(),
            date_observation = obs.date(),
            value            = parse_value(row["VALUE"], unparseable_as_zero),
            granularity      = Duration(row["DURATION"]),
        )
        for (_, row), rec, obs in zip(df.iterrows(), recorded, observed)
    ]


def to_csv_body(observations: list[Observation]) -> str:
    """Serialise Observations to a CDEC-shaped CSV body (header included)."""
    df = pd.DataFrame([obs.to_record() for obs in observations], columns=RECORD_COLUMNS)
    return df.to_csv(index=False, lineterminator="\n")
