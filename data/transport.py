"""
WindPrice — Shared HTTP Transport
Wraps a ``requests.Session`` with a default timeout and an in-process
response cache keyed by URL.

Cache lifetime
--------------
  Every GET carries a TTL hint in seconds.  A successful JSON body is kept
  for that long and served to later calls for the same URL; failures are
  never cached.  A TTL of 0 disables caching for the call.

  The cache is shared by all requests served by the process, so access is
  serialised with a lock (fetchers run in worker threads).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from loguru import logger

REQUEST_TIMEOUT = 30.0
USER_AGENT      = "WindPrice/1.0 (wind + spot price dashboard)"


@dataclass
class _CacheEntry:
    body:      Any
    stored_at: float
    ttl:       float

    def is_fresh(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


class CachingSession:
    """
    GET-only JSON transport with per-request cache lifetime.

    Parameters
    ----------
    timeout:  Per-request HTTP timeout in seconds.
    session:  Underlying ``requests.Session`` (a new one by default).
    clock:    Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = USER_AGENT
        self._clock   = clock
        self._cache: dict[str, _CacheEntry] = {}
        self._lock    = threading.Lock()

    @property
    def cached_urls(self) -> list[str]:
        with self._lock:
            return list(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def get_json(self, url: str, ttl: float = 0) -> Any:
        """
        GET ``url`` and return the decoded JSON body.

        Raises ``requests.RequestException`` on transport errors, non-2xx
        statuses and undecodable bodies.
        """
        cached = self._lookup(url)
        if cached is not None:
            logger.debug("HTTP cache hit | {}", url)
            return cached.body

        logger.info("GET {} (ttl={}s)", url, ttl)
        try:
            resp = self._session.get(url, timeout=self._timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.exceptions.RequestException as exc:
            logger.error("GET {} failed: {}", url, exc)
            raise

        if ttl > 0:
            with self._lock:
                self._cache[url] = _CacheEntry(body=body, stored_at=self._clock(), ttl=ttl)
        return body

    def _lookup(self, url: str) -> Optional[_CacheEntry]:
        with self._lock:
            entry = self._cache.get(url)
            if entry is None:
                return None
            if entry.is_fresh(self._clock()):
                return entry
            # expired
            del self._cache[url]
            return None


#: Process-wide transport used by the module-level convenience functions.
default_session = CachingSession()
