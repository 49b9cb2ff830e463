"""
storage_chart.py
----------------
Line chart of the combined daily storage frame (output of
ReservoirProcessor): statewide total on top, one line per reservoir below.
"""

import logging
from pathlib import Path

import matplotlib
matplotlib.use("Agg")  # non-interactive backend -- works on all platforms
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import pandas as pd

logger = logging.getLogger(__name__)

plt.rcParams.update({
    "figure.dpi":       150,
    "font.size":        9,
    "axes.titlesize":   10,
    "axes.labelsize":   9,
    "legend.fontsize":  7,
    "axes.spines.top":  False,
    "axes.spines.right":False,
})


def render_storage_chart(combined: pd.DataFrame, path: Path, per_station: bool = True) -> Path:
    if combined.empty or "total" not in combined:
        raise ValueError("Nothing to chart: combined storage frame is empty")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    stations = [c for c in combined.columns if c != "total"] if per_station else []
    n_rows = 2 if stations else 1
    fig, axes = plt.subplots(n_rows, 1, figsize=(11, 3.5 * n_rows), sharex=True, squeeze=False)

    ax = axes[0, 0]
    ax.plot(combined.index, combined["total"] / 1e6, color="tab:blue", lw=1.2)
    ax.set_title("Total reservoir storage")
    ax.set_ylabel("Storage (million AF)")
    ax.grid(alpha=0.3)

    if stations:
        ax = axes[1, 0]
        for ref in stations:
            ax.plot(combined.index, combined[ref] / 1e3, lw=0.8, label=ref)
        ax.set_title("Storage by reservoir")
        ax.set_ylabel("Storage (thousand AF)")
        ax.legend(ncol=min(len(stations), 6), loc="upper left", frameon=False)
        ax.grid(alpha=0.3)

    axes[-1, 0].xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m-%d"))
    fig.autofmt_xdate()
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)

    logger.info("Chart -> %s", path)
    return path
