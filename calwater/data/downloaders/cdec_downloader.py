"""
cdec_downloader.py
------------------
Downloads reservoir storage (sensor 15) from the CDEC CSVDataServlet.

URL pattern:
  http://cdec.water.ca.gov/dynamicapp/req/CSVDataServlet
      ?Stations={station_id}&SensorNums=15&dur_code={D|M}&Start=YYYY-MM-DD&End=YYYY-MM-DD

Key notes:
  - Two bodies per station: daily (dur_code=D) and monthly (dur_code=M)
  - Stations are fetched in parallel, each one independently; a failure
    for one station never aborts the others
  - Bodies are returned raw; parsing happens in records.py
"""

import concurrent.futures
import logging
from dataclasses import dataclass
from datetime import date

from .base_downloader import BaseDownloader, DownloadError
from ..reservoirs import Reservoir

logger = logging.getLogger(__name__)

QUERY_DATE_FORMAT = "%Y-%m-%d"


@dataclass
class StationBodies:
    daily:   str
    monthly: str


class CdecDownloader(BaseDownloader):

    def __init__(self, config: dict):
        super().__init__(config)
        self.base_url      = self.api_cfg["cdec_csv_url"]
        self.sensor_number = str(self.api_cfg.get("sensor_number", 15))

    # -- Single request --------------------------------------------------------

    def fetch_body(self, station_id: str, dur_code: str, start: date, end: date) -> str:
        params = {
            "Stations":   station_id,
            "SensorNums": self.sensor_number,
            "dur_code":   dur_code,
            "Start":      start.strftime(QUERY_DATE_FORMAT),
            "End":        end.strftime(QUERY_DATE_FORMAT),
        }
        return self.fetch_text(self.base_url, params=params)

    def fetch_station(self, station_id: str, start: date, end: date) -> StationBodies:
        return StationBodies(
            daily   = self.fetch_body(station_id, "D", start, end),
            monthly = self.fetch_body(station_id, "M", start, end),
        )

    # -- Public interface ------------------------------------------------------

    def download(
        self,
        reservoirs: list[Reservoir],
        start: date,
        end: date,
    ) -> tuple[dict[str, StationBodies], dict]:
        """
        Fetch daily + monthly bodies for every reservoir.

        Returns
        -------
        (bodies keyed by station id, summary dict keyed by station id)
        """
        bodies: dict[str, StationBodies] = {}
        summary: dict = {}

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_res = {
                executor.submit(self.fetch_station, r.station_id, start, end): r
                for r in reservoirs
            }
            for future in concurrent.futures.as_completed(future_to_res):
                res = future_to_res[future]
                ref = res.station_id
                try:
                    result = future.result()
                    bodies[ref] = result
                    summary[ref] = {
                        "name":          res.name,
                        "status":        "ok",
                        "daily_bytes":   len(result.daily),
                        "monthly_bytes": len(result.monthly),
                    }
                    logger.info("   [OK] %-4s %-28s daily %6d B  |  monthly %6d B",
                                ref, res.name, len(result.daily), len(result.monthly))
                except DownloadError as exc:
                    logger.error("   [!!] %s: %s", ref, exc)
                    summary[ref] = {"name": res.name, "status": "failed", "error": str(exc)}
                except Exception as exc:
                    logger.error("   [!!] Unexpected error for %s: %s", ref, exc, exc_info=True)
                    summary[ref] = {"name": res.name, "status": "error", "error": str(exc)}

        return bodies, summary
