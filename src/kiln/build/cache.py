"""Cache probing over the engine's image lineage graph.

A build step can be skipped when the engine already holds a child of the
current image whose originating container config matches the config the step
would produce. Children are found through the image list and inspected in
parallel; the whole fan-out shares one deadline and is torn down as soon as any
inspection fails or the deadline passes.
"""

from __future__ import annotations

import asyncio
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..engine.client import EngineClient
from ..exceptions import CacheProbeError, CacheProbeTimeout
from .container_config import ContainerConfig, compare_configs
from .session import BuildSession

__all__ = ["CacheProber", "parse_created"]

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")


def parse_created(value: Any) -> datetime:
    """Parse the engine's creation timestamp (RFC 3339 or unix seconds)."""
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    text = str(value or "").strip()
    if not text:
        return datetime.min.replace(tzinfo=timezone.utc)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Engine timestamps carry nanoseconds; datetime stops at micro
    text = _FRACTION.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1
    )
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _originating_config(record: Dict[str, Any]) -> ContainerConfig:
    # Newer engines leave ContainerConfig empty and only fill Config
    data = record.get("ContainerConfig") or {}
    if not data.get("Cmd") and not data.get("Image"):
        data = record.get("Config") or data
    return ContainerConfig.from_api(data)


class CacheProber:
    """Finds reusable images for a session's next build step."""

    def __init__(self, engine: EngineClient, timeout_s: float = 10.0) -> None:
        self.engine = engine
        self.timeout_s = timeout_s

    async def probe(self, session: BuildSession) -> bool:
        """Advance ``session.image_id`` to a cached image if one matches.

        Returns False without touching the engine when caching is disabled or
        already busted for the session. A miss busts the cache for good.
        """
        if not session.utilize_cache or session.cache_busted:
            return False

        cached = await self.find_cached(session.image_id, session.config)
        if cached is None:
            logger.info("Cache miss on top of %s; disabling cache", session.image_id)
            session.mark_cache_busted()
            return False

        session.sink.info(" ---> Using cache")
        logger.info("Cache hit: %s", cached["Id"])
        session.image_id = cached["Id"]
        return True

    async def find_cached(
        self, parent_id: str, config: ContainerConfig
    ) -> Optional[Dict[str, Any]]:
        """Return the newest child of ``parent_id`` built from ``config``."""
        images = await self.engine.list_images(include_intermediate=True)
        children = [
            img["Id"] for img in images if (img.get("ParentId") or "") == parent_id
        ]
        if not children:
            return None

        records = await self._inspect_all(children)

        match: Optional[Dict[str, Any]] = None
        match_created: Optional[datetime] = None
        for record in records:
            if not compare_configs(_originating_config(record), config):
                continue
            created = parse_created(record.get("Created"))
            # Strictly newer wins; equal timestamps keep the first seen
            if match_created is None or created > match_created:
                match, match_created = record, created
        return match

    async def _inspect_all(self, image_ids: List[str]) -> List[Dict[str, Any]]:
        # One thread per candidate so the deadline never queues lookups
        executor = ThreadPoolExecutor(
            max_workers=len(image_ids),
            thread_name_prefix="kiln-cache-probe",
        )
        tasks = [
            asyncio.ensure_future(
                self.engine.inspect_image(image_id, executor=executor)
            )
            for image_id in image_ids
        ]
        try:
            done, pending = await asyncio.wait(
                tasks, timeout=self.timeout_s, return_when=asyncio.FIRST_EXCEPTION
            )
            for image_id, task in zip(image_ids, tasks):
                if task in done and task.exception() is not None:
                    exc = task.exception()
                    raise CacheProbeError(image_id, exc) from exc
            if pending:
                logger.warning(
                    "Cache probe timed out with %d of %d inspections outstanding",
                    len(pending),
                    len(tasks),
                )
                raise CacheProbeTimeout(self.timeout_s)
            return [task.result() for task in tasks]
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            executor.shutdown(wait=False, cancel_futures=True)
