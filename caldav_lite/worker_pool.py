"""Bounded async worker pool for parsing and expanding many documents - caldav_lite.

The parser and expander are pure synchronous functions, so throughput across
many CalDAV payloads comes from running one document per worker thread.
Concurrency is bounded by a semaphore; results keep input order and a
failure in one document is reported in its result instead of cancelling the
batch.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .lite_exceptions import LiteCalDAVError
from .lite_extraction import entry_is_ok, extract_calendar_object
from .lite_line_reader import ICSSource
from .lite_models import CalendarDocument, CalendarObject
from .lite_parser import parse_icalendar
from .lite_rrule_expander import expand_document

logger = logging.getLogger(__name__)


@dataclass
class WorkerPoolConfig:
    """Worker pool settings with explicit defaults."""

    worker_concurrency: int = 4
    max_ics_size_bytes: int = 0
    enable_full_parsing: bool = False

    @classmethod
    def from_settings(cls, settings: Any) -> "WorkerPoolConfig":
        """Extract pool configuration from a settings object (e.g. ``Config``).

        Args:
            settings: Object with pool settings as attributes, or None

        Returns:
            WorkerPoolConfig with values from settings or defaults
        """
        return cls(
            worker_concurrency=max(1, int(getattr(settings, "worker_concurrency", 4))),
            max_ics_size_bytes=int(getattr(settings, "max_ics_size_bytes", 0)),
            enable_full_parsing=bool(getattr(settings, "enable_full_parsing", False)),
        )


@dataclass
class PoolResult:
    """Outcome of one job: ``value`` on success, ``error`` on a caldav_lite failure."""

    index: int
    value: Any = None
    error: Optional[LiteCalDAVError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LiteParseWorkerPool:
    """Async worker pool fanning parse/expand jobs out over threads."""

    def __init__(self, settings: Any = None):
        """Initialize worker pool with configuration settings.

        Args:
            settings: Configuration object with worker pool settings
        """
        self.settings = settings
        config = WorkerPoolConfig.from_settings(settings)
        self.concurrency = config.worker_concurrency
        self.size_limit = config.max_ics_size_bytes or None
        self.full_parse = config.enable_full_parsing

        self._semaphore = asyncio.Semaphore(self.concurrency)
        self._active_tasks: set[asyncio.Task] = set()

        logger.debug(
            "LiteParseWorkerPool initialized: concurrency=%d, size_limit=%s, full_parse=%s",
            self.concurrency,
            self.size_limit,
            self.full_parse,
        )

    async def parse_documents(self, payloads: Sequence[ICSSource]) -> list[PoolResult]:
        """Parse many iCalendar payloads concurrently.

        Args:
            payloads: ICS texts, bytes or file objects

        Returns:
            One PoolResult per payload, in input order; values are CalendarDocuments
        """
        return await self._gather(
            (parse_icalendar, (payload, self.size_limit)) for payload in payloads
        )

    async def expand_documents(
        self,
        documents: Sequence[CalendarDocument],
        window_start: datetime,
        window_end: datetime,
    ) -> list[PoolResult]:
        """Expand the events of many documents over the same window.

        Returns:
            One PoolResult per document, in input order; values are Occurrence lists
        """
        return await self._gather(
            (expand_document, (document, window_start, window_end)) for document in documents
        )

    async def extract_objects(
        self,
        entries: Iterable[Mapping[str, Any]],
        full_parse: Optional[bool] = None,
    ) -> list[CalendarObject]:
        """Run structural extraction (and optionally full parsing) over response entries.

        Entries follow ``lite_extraction.extract_calendar_objects``: non-200
        entries are skipped and ETag-only entries are kept without fields.
        """
        full = self.full_parse if full_parse is None else full_parse
        slots: list[Optional[CalendarObject]] = []
        jobs: list[tuple[Callable[..., Any], tuple]] = []
        job_slots: list[int] = []
        for entry in entries:
            if not entry_is_ok(entry):
                continue
            href = str(entry.get("href") or "")
            etag = str(entry.get("etag") or "")
            data = entry.get("calendar_data") or ""
            if data:
                job_slots.append(len(slots))
                slots.append(None)
                jobs.append((extract_calendar_object, (data, href, etag, full)))
            elif etag:
                slots.append(CalendarObject(href=href, etag=etag))

        for result in await self._gather(jobs):
            if result.ok:
                slots[job_slots[result.index]] = result.value
            else:
                logger.warning("Skipping calendar object %d: %s", result.index, result.error)
        return [obj for obj in slots if obj is not None]

    async def _gather(self, jobs: Iterable[tuple[Callable[..., Any], tuple]]) -> list[PoolResult]:
        start_time = time.time()
        tasks = []
        for index, (func, args) in enumerate(jobs):
            task = asyncio.create_task(self._run(index, func, args))
            self._active_tasks.add(task)
            task.add_done_callback(self._active_tasks.discard)
            tasks.append(task)

        results = list(await asyncio.gather(*tasks))
        failed = sum(1 for r in results if not r.ok)
        logger.debug(
            "Worker pool finished %d job(s) in %.1fms (%d failed)",
            len(results),
            (time.time() - start_time) * 1000,
            failed,
        )
        return results

    async def _run(self, index: int, func: Callable[..., Any], args: tuple) -> PoolResult:
        async with self._semaphore:
            try:
                value = await asyncio.to_thread(func, *args)
            except LiteCalDAVError as exc:
                logger.warning("Worker job %d failed: %s", index, exc)
                return PoolResult(index=index, error=exc)
            return PoolResult(index=index, value=value)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs and wait for them to finish."""
        logger.debug("Shutting down LiteParseWorkerPool")
        pending = list(self._active_tasks)
        for task in pending:
            if not task.done():
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._active_tasks.clear()
        logger.debug("LiteParseWorkerPool shutdown complete")


# Global worker pool instance (created on first use)
_worker_pool: Optional[LiteParseWorkerPool] = None


def get_worker_pool(settings: Any = None) -> LiteParseWorkerPool:
    """Get or create the global worker pool.

    Args:
        settings: Configuration settings, used only on first call

    Returns:
        LiteParseWorkerPool instance
    """
    global _worker_pool
    if _worker_pool is None:
        _worker_pool = LiteParseWorkerPool(settings)
    return _worker_pool
