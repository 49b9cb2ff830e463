"""
download_data.py
----------------
Main entry point: fetch CDEC reservoir storage, fill gaps, write output.

Each station downloads as two CSV bodies (daily + monthly durations).

Usage
-----
  calwater --start 20220101                         # CSV records to stdout
  calwater --start 20220101 --end 20221231 --output storage.csv
  calwater --start 20220101 --filetype lzma --output storage.tar.xz
  calwater --start 20220101 --filetype png  --output storage.png
  calwater --start 20220101 --stations SHA ORO      # subset of config reservoirs
  calwater --start 20220101 --archive history.tar.xz  # no HTTP, read an archive
  calwater --start 20220101 --dry-run               # print plan, no HTTP calls
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path

import yaml

from ..archive import ArchiveError, build_archive, load_archive
from ..records import to_csv_body
from ..reservoirs import load_reservoirs
from ..processors.reservoir_processor import ReservoirProcessor
from ..processors.storage_chart import render_storage_chart
from .cdec_downloader import CdecDownloader

FILETYPES = ("csv", "stdout", "lzma", "png")


def setup_logging(log_cfg: dict, stream=None):
    log_dir = Path(log_cfg["log_file"]).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, log_cfg.get("level", "INFO").upper(), logging.INFO)
    fmt   = "%(asctime)s  %(levelname)-8s  %(message)s"

    stream_handler = logging.StreamHandler(stream or sys.stdout)
    file_handler   = logging.FileHandler(log_cfg["log_file"], encoding="utf-8")

    logging.basicConfig(level=level, format=fmt,
                        handlers=[stream_handler, file_handler], force=True)


def load_config(path: Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f)


def parse_day(text: str) -> date:
    try:
        return datetime.strptime(text, "%Y%m%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"date must be YYYYMMDD, got {text!r}")


def resolve_window(start: date, end: date = None, today: date = None) -> tuple[date, date]:
    today = today or date.today()
    if end is None:
        if start > today:
            raise ValueError("start date must not be in the future")
        return start, today
    if end <= start:
        raise ValueError("end date must be more recent than start date")
    return start, end


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="California reservoir storage, gap-filled daily")
    ap.add_argument("--config",   default="config/config.yaml")
    ap.add_argument("--start",    required=True, type=parse_day, help="Start YYYYMMDD")
    ap.add_argument("--end",      default=None,  type=parse_day, help="End YYYYMMDD (default today)")
    ap.add_argument("--filetype", default=None,  choices=FILETYPES,
                    help="Output kind (default csv with --output, else stdout)")
    ap.add_argument("--output",   default=None,  help="Output file")
    ap.add_argument("--stations", nargs="+",     default=None, help="Station ids to process")
    ap.add_argument("--archive",  default=None,  type=Path,
                    help="Read records from a .tar.xz/.tar.lzma archive instead of CDEC")
    ap.add_argument("--dry-run",  action="store_true")
    return ap


def main(argv=None):
    ap   = build_parser()
    args = ap.parse_args(argv)

    filetype = args.filetype or ("csv" if args.output else "stdout")
    if filetype != "stdout" and not args.output:
        ap.error(f"--filetype {filetype} needs --output")
    try:
        start_date, end_date = resolve_window(args.start, args.end)
    except ValueError as exc:
        ap.error(str(exc))

    config = load_config(Path(args.config))
    # stdout carries the records, so logs go to stderr
    setup_logging(config["logging"], sys.stderr if filetype == "stdout" else None)
    logger = logging.getLogger(__name__)

    reservoirs = load_reservoirs(config, args.stations)

    logger.info("+==========================================================+")
    logger.info("|         CDEC Reservoir Storage                           |")
    logger.info("+==========================================================+")
    logger.info("Window       : %s -> %s", start_date, end_date)
    logger.info("Reservoirs   : %d station(s)", len(reservoirs))
    logger.info("Source       : %s", args.archive or config["api"]["cdec_csv_url"])
    logger.info("Output       : %s (%s)", args.output or "-", filetype)

    if args.dry_run:
        logger.info("\nDRY RUN -- no HTTP calls will be made")
        for r in reservoirs:
            logger.info("  * %-4s  %-28s  %9d AF", r.station_id, r.name, r.capacity_af)
        return

    summaries = {}
    t0 = datetime.now()
    processor = ReservoirProcessor(config)

    if args.archive:
        try:
            text = load_archive(args.archive)
        except ArchiveError as exc:
            logger.error("[!!] %s", exc)
            sys.exit(1)
        result = processor.process_text(text, reservoirs, start_date, end_date)
    else:
        logger.info("\n---  Downloading STORAGE  (%d stations)  -----------------", len(reservoirs))
        with CdecDownloader(config) as dl:
            bodies, summaries["download"] = dl.download(reservoirs, start_date, end_date)
        logger.info("\nDownload complete in %.1f s", (datetime.now() - t0).total_seconds())
        result = processor.process(bodies, reservoirs, start_date, end_date)
    summaries["quality"] = result.reports

    # -- Write output -------------------------------------------------------
    if filetype == "png":
        render_storage_chart(result.combined, Path(args.output))
    else:
        csv_text = to_csv_body(result.all_observations())
        if filetype == "stdout":
            sys.stdout.write(csv_text)
        elif filetype == "csv":
            Path(args.output).write_text(csv_text, encoding="utf-8")
        else:
            Path(args.output).write_bytes(build_archive(csv_text))
        if filetype != "stdout":
            logger.info("Records -> %s", args.output)

    # -- Save summary JSON -------------------------------------------------
    meta_dir = Path(config["output"]["metadata_dir"])
    meta_dir.mkdir(parents=True, exist_ok=True)
    summary_path = meta_dir / "run_summary.json"
    with open(summary_path, "w") as f:
        json.dump(summaries, f, indent=2, default=str)
    logger.info("\nSummary -> %s", summary_path)

    # Exit 1 if any station failed
    failed = [
        ref for d in summaries.values() if isinstance(d, dict)
        for ref, info in d.items()
        if isinstance(info, dict) and info.get("status") in ("failed", "error")
    ]
    if failed:
        logger.warning("Failed stations: %s", failed)
        sys.exit(1)


if __name__ == "__main__":
    main()
