"""
observation.py
--------------
Single reservoir storage reading as returned by the CDEC CSVDataServlet.

One CSV record (9 positional fields):
  STATION_ID,DURATION,SENSOR_NUMBER,SENSOR_TYPE,DATE TIME,OBS DATE,VALUE,DATA_FLAG,UNITS
  VIL,D,15,STORAGE,20220215 0000,20220215 0000,9593, ,AF

Key notes:
  - VALUE is either an unsigned integer (acre-feet) or a sentinel code:
    "---" (missing), "ART" / "BRT" (above / below rating table)
  - DURATION is "D" (daily) or "M" (monthly)
  - Observations compare equal regardless of their granularity
  - Ordering is by observation date only, and only within one station
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Sequence, Union

logger = logging.getLogger(__name__)

DATE_FORMAT      = "%Y%m%d %H%M"
RECORD_LENGTH    = 9
SENSOR_NUMBER    = "15"
SENSOR_TYPE      = "STORAGE"
UNITS            = "AF"


class RecordError(ValueError):
    pass


class UnorderedComparisonError(TypeError):
    pass


class Duration(Enum):
    DAILY   = "D"
    MONTHLY = "M"


class Sentinel(Enum):
    BRT  = "BRT"
    ART  = "ART"
    DASH = "---"


@dataclass(frozen=True)
class Recording:
    value: int

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"Storage recording must be unsigned, got {self.value}")

    def __str__(self):
        return str(self.value)


DataRecording = Union[Sentinel, Recording]


def parse_value(text: str, unparseable_as_zero: bool = False) -> DataRecording:
    """
    Decode the VALUE field.

    Anything that is neither a sentinel nor an unsigned integer is treated
    as missing data (Sentinel.DASH), or as Recording(0) when
    ``unparseable_as_zero`` is set.
    """
    text = text.strip()
    for sentinel in Sentinel:
        if text == sentinel.value:
            return sentinel
    if text.isascii() and text.isdigit():
        return Recording(int(text))
    logger.debug("Unparseable storage value %r", text)
    return Recording(0) if unparseable_as_zero else Sentinel.DASH


def format_value(value: DataRecording) -> str:
    if isinstance(value, Recording):
        return str(value.value)
    return value.value


def parse_date(text: str) -> date:
    try:
        return datetime.strptime(text.strip(), DATE_FORMAT).date()
    except ValueError as exc:
        raise RecordError(f"Bad timestamp {text!r}: {exc}") from exc


def format_date(d: date) -> str:
    return d.strftime("%Y%m%d") + " 0000"


@dataclass(frozen=True)
class Observation:
    station_id:       str
    date_observation: date
    date_recording:   date
    value:            DataRecording
    granularity:      Duration = field(default=Duration.DAILY, compare=False)

    # -- Value helpers ---------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        return isinstance(self.value, Recording)

    def with_value(self, value: DataRecording) -> "Observation":
        return replace(self, value=value)

    def as_daily(self) -> "Observation":
        return replace(self, granularity=Duration.DAILY)

    # -- Ordering (observation date, same station only) ------------------------

    def _date_key(self, other: "Observation") -> tuple[date, date]:
        if not isinstance(other, Observation):
            return NotImplemented
        if other.station_id != self.station_id:
            raise UnorderedComparisonError(
                f"Cannot order observations of {self.station_id!r} "
                f"and {other.station_id!r}"
            )
        return self.date_observation, other.date_observation

    def __lt__(self, other):
        key = self._date_key(other)
        return key if key is NotImplemented else key[0] < key[1]

    def __le__(self, other):
        key = self._date_key(other)
        return key if key is NotImplemented else key[0] <= key[1]

    def __gt__(self, other):
        key = self._date_key(other)
        return key if key is NotImplemented else key[0] > key[1]

    def __ge__(self, other):
        key = self._date_key(other)
        return key if key is NotImplemented else key[0] >= key[1]

    # -- Record codec ----------------------------------------------------------

    @classmethod
    def from_record(cls, fields: Sequence[str],
                    unparseable_as_zero: bool = False) -> "Observation":
        """Build an Observation from one 9-field CDEC record."""
        if len(fields) != RECORD_LENGTH:
            raise RecordError(
                f"Expected {RECORD_LENGTH} fields, got {len(fields)}: {list(fields)}"
            )
        try:
            granularity = Duration(fields[1].strip())
        except ValueError as exc:
            raise RecordError(f"Unknown duration code {fields[1]!r}") from exc

        return cls(
            station_id       = fields[0].strip(),
            date_recording   = parse_date(fields[4]),
            date_observation = parse_date(fields[5]),
            value            = parse_value(fields[6], unparseable_as_zero),
            granularity      = granularity,
        )

    def to_record(self) -> list[str]:
        return [
            self.station_id,
            self.granularity.value,
            SENSOR_NUMBER,
            SENSOR_TYPE,
            format_date(self.date_recording),
            format_date(self.date_observation),
            format_value(self.value),
            "",
            UNITS,
        ]
