"""
reservoir_processor.py
----------------------
Post-download processing of CDEC reservoir storage:

1.  Parse raw CSV bodies (daily + monthly per station, or one archive body)
2.  Partition observations by station and granularity
3.  Densify each daily run to the complete [start, end] calendar
4.  Interpolate / forward-fill daily gaps, expand monthly recordings,
    merge (native daily recordings win)
5.  Gap detection and quality report
6.  Save per-station record CSVs and a combined wide-format CSV

Output files
------------
processed/storage_{station}.csv        -- smoothed records, CDEC record shape
processed/combined_storage_daily.csv   -- wide, stations as columns + total
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Iterable

import numpy as np
import pandas as pd

from ..observation import Duration, Observation, Recording
from ..records import parse_csv_body, to_csv_body
from ..reservoirs import Reservoir
from .smoothing import SmoothingError, partition_by_station, reconcile_station

logger = logging.getLogger(__name__)

COMBINED_FILE = "combined_storage_daily.csv"


@dataclass
class ProcessedStorage:
    reports:      dict = field(default_factory=dict)
    observations: dict[str, list[Observation]] = field(default_factory=dict)
    combined:     pd.DataFrame = field(default_factory=pd.DataFrame)

    def all_observations(self) -> list[Observation]:
        return [obs for ref in sorted(self.observations) for obs in self.observations[ref]]


class ReservoirProcessor:

    def __init__(self, config: dict):
        self.config        = config
        self.quality_cfg   = config["quality"]
        self.processed_dir = Path(config["output"]["processed_dir"])
        self.processed_dir.mkdir(parents=True, exist_ok=True)

    # -- Public entry points ---------------------------------------------------

    def process(
        self,
        bodies: dict,
        reservoirs: list[Reservoir],
        start: date,
        end: date,
    ) -> ProcessedStorage:
        """Parse downloaded StationBodies and process every station."""
        unparseable_as_zero = self.quality_cfg.get("unparseable_as_zero", False)
        observations: list[Observation] = []
        for ref, station_bodies in bodies.items():
            daily   = parse_csv_body(station_bodies.daily,   unparseable_as_zero)
            monthly = parse_csv_body(station_bodies.monthly, unparseable_as_zero)
            logger.debug("   %s: %d daily / %d monthly records", ref, len(daily), len(monthly))
            observations.extend(daily)
            observations.extend(monthly)
        return self.process_observations(observations, reservoirs, start, end)

    def process_text(
        self,
        text: str,
        reservoirs: list[Reservoir],
        start: date,
        end: date,
    ) -> ProcessedStorage:
        """Process one CSV body holding every station (historical archive)."""
        unparseable_as_zero = self.quality_cfg.get("unparseable_as_zero", False)
        return self.process_observations(
            parse_csv_body(text, unparseable_as_zero), reservoirs, start, end,
        )

    def process_observations(
        self,
        observations: Iterable[Observation],
        reservoirs: list[Reservoir],
        start: date,
        end: date,
    ) -> ProcessedStorage:
        logger.info("Processing window: %s -> %s  (%d days)",
                    start, end, (end - start).days + 1)

        observations = list(observations)
        daily   = partition_by_station(o for o in observations if o.granularity == Duration.DAILY)
        monthly = partition_by_station(o for o in observations if o.granularity == Duration.MONTHLY)

        result = ProcessedStorage()
        series = {}
        for res in reservoirs:
            ref = res.station_id
            if ref not in daily and ref not in monthly:
                logger.warning("No records for station %s", ref)
                continue
            try:
                smoothed = reconcile_station(daily.get(ref, []), monthly.get(ref, []), start, end)
            except SmoothingError as exc:
                logger.error("   [!!] %s: %s", ref, exc, exc_info=True)
                result.reports[ref] = {"station_id": ref, "name": res.name,
                                       "status": "error", "error": str(exc)}
                continue

            result.observations[ref] = smoothed
            result.reports[ref] = self._report(res, daily.get(ref, []), smoothed, start, end)
            series[ref] = self._to_series(smoothed)

        result.combined = self._combine(series, start, end)
        self._save(result)
        self._print_summary(result.reports)
        return result

    # -- Per-station quality report --------------------------------------------

    def _report(
        self,
        res: Reservoir,
        native: list[Observation],
        smoothed: list[Observation],
        start: date,
        end: date,
    ) -> dict:
        expected   = (end - start).days + 1
        # densify_daily keeps one observation per day
        native_rec = len({o.date_observation for o in native
                          if o.is_recording and start <= o.date_observation <= end})
        available  = sum(1 for o in smoothed if o.is_recording)
        completeness = available / expected if expected else 0.0
        gaps = self._find_gaps(smoothed)

        last = next((o for o in reversed(smoothed) if o.is_recording), None)
        latest_af = last.value.value if last else None

        return {
            "station_id":       res.station_id,
            "name":             res.name,
            "status":           "ok",
            "expected_days":    expected,
            "native_days":      native_rec,
            "filled_days":      available - native_rec,
            "missing_days":     expected - available,
            "completeness_pct": round(completeness * 100, 2),
            "passes_threshold": completeness >= self.quality_cfg["min_record_fraction"],
            "n_gaps":           len(gaps),
            "longest_gap_days": max((g["duration_days"] for g in gaps), default=0),
            "gaps":             gaps,
            "latest_af":        latest_af,
            "latest_pct_capacity": (
                round(latest_af / res.capacity_af * 100, 1)
                if latest_af is not None and res.capacity_af else None
            ),
        }

    # -- Gap detection ---------------------------------------------------------

    def _find_gaps(self, smoothed: list[Observation]) -> list[dict]:
        """Sentinel runs still present after filling, longest first."""
        min_days = self.quality_cfg["max_gap_days"]
        gaps, gap_start, length = [], None, 0

        def _close(last: date):
            if length >= min_days:
                gaps.append({
                    "start": str(gap_start),
                    "end":   str(last),
                    "duration_days": length,
                })

        prev = None
        for obs in smoothed:
            if not obs.is_recording:
                if gap_start is None:
                    gap_start, length = obs.date_observation, 0
                length += 1
            elif gap_start is not None:
                _close(prev.date_observation)
                gap_start = None
            prev = obs

        if gap_start is not None:
            _close(prev.date_observation)

        gaps.sort(key=lambda g: g["duration_days"], reverse=True)
        return gaps

    # -- Combined output -------------------------------------------------------

    @staticmethod
    def _to_series(smoothed: list[Observation]) -> pd.Series:
        s = pd.Series(
            [o.value.value if isinstance(o.value, Recording) else np.nan for o in smoothed],
            index=pd.DatetimeIndex([o.date_observation for o in smoothed]),
            dtype="float64",
        )
        return s[~s.index.duplicated(keep="first")]

    @staticmethod
    def _combine(series: dict, start: date, end: date) -> pd.DataFrame:
        index = pd.date_range(start=start, end=end, freq="D", name="date")
        combined = pd.DataFrame(series, index=index)
        # Sentinels count as zero storage in the statewide total
        combined["total"] = combined.fillna(0).sum(axis=1).astype("int64")
        return combined

    def _save(self, result: ProcessedStorage):
        for ref, smoothed in result.observations.items():
            out = self.processed_dir / f"storage_{ref}.csv"
            out.write_text(to_csv_body(smoothed), encoding="utf-8")
            result.reports[ref]["processed_path"] = str(out)

        if result.observations:
            out = self.processed_dir / COMBINED_FILE
            result.combined.to_csv(out)
            logger.info("Saved -> %s  (%d rows x %d stations)",
                        out, len(result.combined), len(result.observations))

    # -- Summary ---------------------------------------------------------------

    def _print_summary(self, reports: dict):
        logger.info("")
        logger.info("=" * 65)
        logger.info("  STORAGE QUALITY SUMMARY")
        logger.info("=" * 65)
        for ref, r in reports.items():
            if r.get("status") != "ok":
                logger.info("    [!!]  %-6s  %s", ref, r.get("error", ""))
                continue
            flag = "[OK]" if r.get("passes_threshold") else "[!!]"
            logger.info(
                "    %s  %-6s  complete: %5.1f%%  filled: %4d d  gaps: %2d  "
                "(longest: %d d)",
                flag, ref,
                r.get("completeness_pct", 0),
                r.get("filled_days", 0),
                r.get("n_gaps", 0),
                r.get("longest_gap_days", 0),
            )
        logger.info("=" * 65)
