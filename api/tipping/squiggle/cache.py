"""File-backed response cache with TTL and stale fallback.

Stores JSON in a structured directory:
  {cache_dir}/{namespace}/{key}.json

Each file holds ``{"fetched_at": <iso>, "data": <payload>}``. A fresh entry is
served without touching the network. When a fetch fails the last good payload
is returned however old it is; only a failure with nothing cached raises.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import httpx

from ..errors import UpstreamUnavailable
from ..logging import logger
from ..utils.datetime_utils import now_utc


class CachedFetcher:
    def __init__(
        self,
        cache_dir: str | Path,
        namespace: str,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.namespace = namespace
        self._clock = clock

    def _get_cache_path(self, cache_key: str) -> Path:
        safe_key = cache_key.replace("/", "_").replace(":", "_").replace("?", "_")
        return self.cache_dir / self.namespace / f"{safe_key}.json"

    def _read(self, cache_key: str) -> tuple[datetime, Any] | None:
        cache_path = self._get_cache_path(cache_key)
        if not cache_path.exists():
            return None
        try:
            entry = json.loads(cache_path.read_text(encoding="utf-8"))
            return datetime.fromisoformat(entry["fetched_at"]), entry["data"]
        except (json.JSONDecodeError, KeyError, ValueError, OSError) as exc:
            logger.warning("api_cache_read_error", api=self.namespace, key=cache_key, error=str(exc))
            return None

    def _write(self, cache_key: str, data: Any, fetched_at: datetime) -> None:
        cache_path = self._get_cache_path(cache_key)
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            cache_path.write_text(
                json.dumps({"fetched_at": fetched_at.isoformat(), "data": data}),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("api_cache_write_error", api=self.namespace, key=cache_key, error=str(exc))

    async def get(
        self,
        cache_key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
    ) -> Any:
        now = self._clock()
        cached = self._read(cache_key)
        if cached is not None:
            fetched_at, data = cached
            if now - fetched_at < timedelta(seconds=ttl_seconds):
                logger.debug("api_cache_hit", api=self.namespace, key=cache_key)
                return data

        try:
            data = await fetch()
        except (httpx.HTTPError, ValueError) as exc:
            if cached is not None:
                logger.warning(
                    "api_cache_stale_fallback",
                    api=self.namespace,
                    key=cache_key,
                    fetched_at=cached[0].isoformat(),
                    error=str(exc),
                )
                return cached[1]
            logger.error("api_fetch_failed_no_cache", api=self.namespace, key=cache_key, error=str(exc))
            raise UpstreamUnavailable(f"{self.namespace} request {cache_key} failed: {exc}") from exc

        self._write(cache_key, data, now)
        return data

    def clear(self) -> int:
        """Remove every cached entry. Returns the number of files removed."""
        directory = self.cache_dir / self.namespace
        if not directory.exists():
            return 0
        removed = len(list(directory.glob("*.json")))
        shutil.rmtree(directory)
        logger.info("api_cache_cleared", api=self.namespace, files=removed)
        return removed

    def stats(self) -> dict[str, Any]:
        directory = self.cache_dir / self.namespace
        entries = []
        if directory.exists():
            now = self._clock()
            for path in sorted(directory.glob("*.json")):
                cached = self._read(path.stem)
                if cached is None:
                    continue
                entries.append(
                    {
                        "key": path.stem,
                        "fetched_at": cached[0].isoformat(),
                        "age_seconds": round((now - cached[0]).total_seconds(), 1),
                        "size_bytes": path.stat().st_size,
                    }
                )
        return {"namespace": self.namespace, "entries": len(entries), "items": entries}
