from datetime import date, timedelta

import pytest

from calwater.data.observation import Duration, Observation, Recording, Sentinel

START = date(2022, 1, 1)

# VIL daily storage, 2022-02-15 .. 2022-02-28, as served by CDEC
VIL_BODY = """STATION_ID,DURATION,SENSOR_NUMBER,SENSOR_TYPE,DATE TIME,OBS DATE,VALUE,DATA_FLAG,UNITS
VIL,D,15,STORAGE,20220215 0000,20220215 0000,9593, ,AF
VIL,D,15,STORAGE,20220216 0000,20220216 0000,9589, ,AF
VIL,D,15,STORAGE,20220217 0000,20220217 0000,9589, ,AF
VIL,D,15,STORAGE,20220218 0000,20220218 0000,9585, ,AF
VIL,D,15,STORAGE,20220219 0000,20220219 0000,9585, ,AF
VIL,D,15,STORAGE,20220220 0000,20220220 0000,9585, ,AF
VIL,D,15,STORAGE,20220221 0000,20220221 0000,9581, ,AF
VIL,D,15,STORAGE,20220222 0000,20220222 0000,9593, ,AF
VIL,D,15,STORAGE,20220223 0000,20220223 0000,9601, ,AF
VIL,D,15,STORAGE,20220224 0000,20220224 0000,9601, ,AF
VIL,D,15,STORAGE,20220225 0000,20220225 0000,9601, ,AF
VIL,D,15,STORAGE,20220226 0000,20220226 0000,9597, ,AF
VIL,D,15,STORAGE,20220227 0000,20220227 0000,9597, ,AF
VIL,D,15,STORAGE,20220228 0000,20220228 0000,9597, ,AF
"""


def as_value(v):
    if v is None:
        return Sentinel.DASH
    if isinstance(v, Sentinel):
        return v
    return Recording(v)


@pytest.fixture
def make_run():
    """Build one station's observations, one per `step` days from `start`."""
    def _make(values, station_id="VIL", start=START,
              granularity=Duration.DAILY, step=1):
        run = []
        for i, v in enumerate(values):
            day = start + timedelta(days=i * step)
            run.append(Observation(station_id, day, day, as_value(v), granularity))
        return run
    return _make


@pytest.fixture
def config(tmp_path):
    return {
        "api": {
            "cdec_csv_url":     "http://cdec.example/CSVDataServlet",
            "sensor_number":    15,
            "timeout":          5,
            "max_retries":      1,
            "retry_backoff":    0,
            "rate_limit_delay": 0,
            "max_workers":      2,
        },
        "quality": {
            "min_record_fraction": 0.9,
            "max_gap_days":        2,
            "unparseable_as_zero": False,
        },
        "output": {
            "processed_dir": str(tmp_path / "processed"),
            "metadata_dir":  str(tmp_path / "metadata"),
        },
        "logging": {
            "level":    "INFO",
            "log_file": str(tmp_path / "logs" / "calwater.log"),
        },
        "reservoirs": [
            {"station_id": "VIL", "dam": "Vail", "lake": "Vail Lake",
             "stream": "Temecula Creek", "capacity_af": 51000, "fill_year": 1948},
            {"station_id": "SHA", "dam": "Shasta", "lake": "Lake Shasta",
             "stream": "Sacramento River", "capacity_af": 4552000, "fill_year": 1954},
        ],
    }


@pytest.fixture
def vil_body():
    return VIL_BODY
