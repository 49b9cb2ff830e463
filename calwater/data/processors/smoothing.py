"""
smoothing.py
------------
Gap filling for per-station reservoir storage series:

1.  Partition observations by station, each run sorted by observation date
2.  Densify a daily run to exactly one observation per calendar day
3.  Linearly interpolate sentinel runs bounded by two recordings
4.  Forward-fill a trailing sentinel run with the last recording
5.  Expand monthly recordings into daily points
6.  Merge monthly-derived points under the native daily recordings

Marker scan
-----------
Every adjacent pair (i, i+1) of a run is classified, R = recording,
S = sentinel:

  (R, S)  ->  mark i          left knot of a gap starting at i+1
  (S, R)  ->  mark i+1        right knot of a gap ending at i
  (R, R)  ->  mark i, i+1     zero-width gap
  (S, S)  ->  no mark

The marker list is then read two at a time; each (x0, x1) window is a
straight line between two recordings.  A leading sentinel run has no left
knot, so its right knot is not marked and stays an open edge.  An odd
marker list means the last recording has no closing knot: the trailing
sentinels hold its value.

Every function here is pure: inputs are never modified, new lists of new
Observation values are returned.
"""

import itertools
import logging
import math
from datetime import date, timedelta
from operator import attrgetter
from typing import Iterable, Optional

import pandas as pd

from ..observation import Duration, Observation, Recording, Sentinel

logger = logging.getLogger(__name__)

by_date = attrgetter("date_observation")


class SmoothingError(Exception):
    pass


# -- Grouping ------------------------------------------------------------------

def group_by_station(observations: Iterable[Observation]) -> list[list[Observation]]:
    """
    Split into maximal contiguous same-station runs.

    Only adjacent records are grouped: a station whose records are not
    contiguous in the input ends up in several runs.
    """
    return [list(run) for _, run in
            itertools.groupby(observations, key=attrgetter("station_id"))]


def partition_by_station(observations: Iterable[Observation]) -> dict[str, list[Observation]]:
    """Map station id -> its observations sorted by observation date."""
    stations: dict[str, list[Observation]] = {}
    for obs in observations:
        stations.setdefault(obs.station_id, []).append(obs)
    for run in stations.values():
        run.sort(key=by_date)
    return stations


def densify_daily(
    observations: Iterable[Observation],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Observation]:
    """
    Reindex one station's daily run onto the complete calendar range
    [start, end].  Missing days become "---" placeholders; for duplicate
    days the first observation is kept.
    """
    days: dict[date, Observation] = {}
    duplicates = 0
    for obs in observations:
        if obs.date_observation in days:
            duplicates += 1
            continue
        days[obs.date_observation] = obs
    if not days:
        return []
    if duplicates:
        logger.debug("   %d duplicate daily observations dropped", duplicates)

    _check_single_station(days.values())
    station_id = next(iter(days.values())).station_id
    start = start or min(days)
    end   = end   or max(days)

    dense = []
    for ts in pd.date_range(start=start, end=end, freq="D"):
        day = ts.date()
        dense.append(days.get(day) or Observation(
            station_id       = station_id,
            date_observation = day,
            date_recording   = day,
            value            = Sentinel.DASH,
            granularity      = Duration.DAILY,
        ))
    return dense


# -- Marker scan ---------------------------------------------------------------

def find_markers(run: list[Observation]) -> list[int]:
    """
    Knot indices of a run, read two at a time as interpolation windows.

    A (sentinel, recording) pair is only marked once a recording has been
    seen.  Marking the right knot of a leading sentinel run would leave that
    knot unpaired and shift every later window by one, so bounded gaps after
    it would not be interpolated and a trailing run would not be held.
    """
    markers: list[int] = []
    for i in range(len(run) - 1):
        left, right = run[i].is_recording, run[i + 1].is_recording
        if left and right:
            markers.extend((i, i + 1))
        elif left:
            markers.append(i)
        elif right and markers:
            markers.append(i + 1)
    return markers


def _windows(markers: list[int]) -> list[tuple[int, int]]:
    return list(zip(markers[0::2], markers[1::2]))


def _knot_value(run: list[Observation], index: int) -> int:
    obs = run[index]
    if not isinstance(obs.value, Recording):
        raise SmoothingError(
            f"Interpolation knot {index} of {obs.station_id} on "
            f"{obs.date_observation} holds {obs.value.value!r}, not a recording"
        )
    return obs.value.value


def round_half_away(x: float) -> int:
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def _interpolate(y0: int, slope: float, offset: int) -> Recording:
    return Recording(max(0, round_half_away(y0 + slope * offset)))


def _check_single_station(run: Iterable[Observation]):
    stations = {obs.station_id for obs in run}
    if len(stations) > 1:
        raise SmoothingError(f"Run mixes stations {sorted(stations)}")


# -- Daily gap filler ----------------------------------------------------------

def fill_daily_gaps(run: Iterable[Observation]) -> list[Observation]:
    """
    Interpolate sentinel runs of one station's dense, date-sorted daily run.

    Interpolation is by index distance, so the run must hold exactly one
    observation per day (see densify_daily).  Sentinels before the first
    recording are left in place.
    """
    filled = list(run)
    _check_single_station(filled)
    if len(filled) < 2:
        return filled

    markers  = find_markers(filled)
    replaced = 0
    for x0, x1 in _windows(markers):
        if x1 <= x0:
            raise SmoothingError(f"Marker window ({x0}, {x1}) is not ascending")
        y0, y1 = _knot_value(filled, x0), _knot_value(filled, x1)
        slope = (y1 - y0) / (x1 - x0)
        for x in range(x0 + 1, x1):
            filled[x] = filled[x].with_value(_interpolate(y0, slope, x - x0))
            replaced += 1

    if len(markers) % 2:
        k = markers[-1]
        if not any(obs.is_recording for obs in filled[k + 1:]):
            held = Recording(_knot_value(filled, k))
            for x in range(k + 1, len(filled)):
                filled[x] = filled[x].with_value(held)
                replaced += 1

    logger.debug("   %s: %d of %d daily values filled",
                 filled[0].station_id, replaced, len(filled))
    return filled


# -- Monthly expander ----------------------------------------------------------

def expand_monthly(observations: Iterable[Observation]) -> list[Observation]:
    """
    Expand one station's monthly observations into daily points.

    Every calendar day strictly between two consecutive monthly recordings
    gets a linearly interpolated value (calendar-day distance); the
    recordings themselves are returned reclassified as daily.  Sentinels
    between two recordings are skipped over.  Output is date-sorted and
    free of duplicates.
    """
    anchors = sorted(observations, key=by_date)
    if not anchors:
        return []
    if len(anchors) == 1:
        logger.debug("   %s: single monthly observation, no expansion possible",
                     anchors[0].station_id)
        return []
    _check_single_station(anchors)

    expanded = [
        anchors[j].as_daily()
        for i in range(len(anchors) - 1)
        if anchors[i].is_recording != anchors[i + 1].is_recording
        for j in (i, i + 1)
        if anchors[j].is_recording
    ]

    for x0, x1 in _windows(find_markers(anchors)):
        left, right = anchors[x0], anchors[x1]
        y0, y1 = _knot_value(anchors, x0), _knot_value(anchors, x1)
        delta = abs((right.date_observation - left.date_observation).days)

        expanded.append(left.as_daily())
        if delta:
            slope = (y1 - y0) / delta
            for offset in range(1, delta):
                step = timedelta(days=offset)
                expanded.append(Observation(
                    station_id       = left.station_id,
                    date_observation = left.date_observation + step,
                    date_recording   = left.date_recording + step,
                    value            = _interpolate(y0, slope, offset),
                    granularity      = Duration.DAILY,
                ))
        expanded.append(right.as_daily())

    return sorted(dict.fromkeys(expanded), key=by_date)


# -- Merge ---------------------------------------------------------------------

def merge_daily(
    native: Iterable[Observation],
    synthetic: Iterable[Observation],
) -> list[Observation]:
    """
    Combine native daily observations with monthly-derived ones.

    A synthetic point is kept only when no native observation on its date
    holds a recording; it then replaces any native sentinel for that date.
    Only the first synthetic point per date is used.
    """
    native   = list(native)
    recorded = {obs.date_observation for obs in native if obs.is_recording}

    extra: dict[date, Observation] = {}
    for obs in synthetic:
        if obs.date_observation not in recorded:
            extra.setdefault(obs.date_observation, obs)
    covered = {day for day, obs in extra.items() if obs.is_recording}

    merged = [obs for obs in native
              if obs.is_recording or obs.date_observation not in covered]
    merged.extend(extra.values())
    return sorted(merged, key=by_date)


def reconcile_station(
    daily: Iterable[Observation],
    monthly: Iterable[Observation],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Observation]:
    """
    Full reconciliation for one station: densify and fill the daily run,
    expand the monthly run, merge, and clip to [start, end].
    """
    filled    = fill_daily_gaps(densify_daily(daily, start, end))
    synthetic = expand_monthly(monthly)
    merged    = merge_daily(filled, synthetic)
    return [
        obs for obs in merged
        if (start is None or obs.date_observation >= start)
        and (end is None or obs.date_observation <= end)
    ]
