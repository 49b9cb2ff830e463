"""
base_downloader.py
──────────────────
Abstract base class for CDEC CSV downloaders.
Each station/duration = one HTTP GET returning a CSV body.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    pass


class BaseDownloader(ABC):

    def __init__(self, config: dict):
        self.config      = config
        self.api_cfg     = config["api"]

        self.timeout     = self.api_cfg["timeout"]
        self.max_retries = self.api_cfg["max_retries"]
        self.backoff     = self.api_cfg["retry_backoff"]
        self.rate_limit  = self.api_cfg["rate_limit_delay"]
        self.max_workers = self.api_cfg.get("max_workers", 4)

        self._session: Optional[requests.Session] = None
        self._last_request_time: float = 0.0
        self._rate_lock = threading.Lock()

    # ── Session ───────────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            retry = Retry(
                total=self.max_retries,
                backoff_factor=self.backoff,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"],
            )
            adapter = HTTPAdapter(max_retries=retry,
                                  pool_maxsize=max(self.max_workers, 10))
            self._session.mount("https://", adapter)
            self._session.mount("http://",  adapter)
            self._session.headers["User-Agent"] = (
                "calwater/1.0"
            )
        return self._session

    def close(self):
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self): return self
    def __exit__(self, *_): self.close()

    # ── HTTP helpers ──────────────────────────────────────────────────────────

    def _rate_wait(self):
        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_time
            wait = self.rate_limit - elapsed
            if wait > 0:
                time.sleep(wait)
            self._last_request_time = time.monotonic()

    def fetch_text(self, url: str, params: Optional[dict] = None) -> str:
        """GET a URL, return the decoded body with retry logic."""
        self._rate_wait()
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout)
                if resp.status_code == 200:
                    return resp.text
                if resp.status_code == 404:
                    raise DownloadError(f"404 — not found at {resp.url}")
                logger.warning("Attempt %d/%d — HTTP %d: %s",
                               attempt, self.max_retries, resp.status_code, resp.url)
            except requests.RequestException as exc:
                logger.warning("Attempt %d/%d — %s", attempt, self.max_retries, exc)
            if attempt < self.max_retries:
                time.sleep(self.backoff ** attempt)
        raise DownloadError(f"Failed after {self.max_retries} attempts: {url}")

    @abstractmethod
    def download(self, reservoirs: list, start, end) -> tuple[dict, dict]:
        ...
