"""
reservoirs.py
-------------
Reservoir catalogue, read from the `reservoirs` list in config.yaml:

  reservoirs:
    - {station_id: SHA, dam: Shasta, lake: Lake Shasta,
       stream: Sacramento River, capacity_af: 4552000, fill_year: 1954}
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservoir:
    station_id:  str
    dam:         str
    lake:        str
    stream:      str
    capacity_af: int
    fill_year:   Optional[int] = None

    @property
    def name(self) -> str:
        return self.lake or self.dam or self.station_id


def load_reservoirs(config: dict, only: Optional[list[str]] = None) -> list[Reservoir]:
    """Build Reservoir entries from config; `only` restricts to station ids."""
    entries = config.get("reservoirs", [])
    if not entries:
        raise ValueError("No reservoirs configured")

    reservoirs = []
    for entry in entries:
        reservoirs.append(Reservoir(
            station_id  = str(entry["station_id"]),
            dam         = entry.get("dam", ""),
            lake        = entry.get("lake", ""),
            stream      = entry.get("stream", ""),
            capacity_af = int(entry.get("capacity_af", 0)),
            fill_year   = entry.get("fill_year"),
        ))

    if only:
        wanted  = set(only)
        unknown = wanted - {r.station_id for r in reservoirs}
        if unknown:
            raise ValueError(f"Unknown reservoir(s) {sorted(unknown)}. "
                             f"Available: {[r.station_id for r in reservoirs]}")
        reservoirs = [r for r in reservoirs if r.station_id in wanted]

    logger.debug("Loaded %d reservoir(s)", len(reservoirs))
    return reservoirs
