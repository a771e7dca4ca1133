# doc_scout/crawler/scheduler.py
"""
Frontier scheduler: breadth-first crawl of one site.

One asyncio task owns the frontier and the Unique/Visited sets. Render tasks
only produce outcomes; their results are applied by the loop itself, one at a
time, so check-then-add on the sets never interleaves.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Callable, Collection, Deque, Dict, Optional, Protocol, Set, get_args

from doc_scout.classifier import UrlClassifier
from doc_scout.config import CrawlConfig
from doc_scout.crawler.fetcher import RenderGateway
from doc_scout.crawler.models import (
    CrawlResult,
    CrawlSessionState,
    CrawlStats,
    FrontierEntry,
    RenderOutcome,
    Success,
    Timeout,
    UnknownError,
)
from doc_scout.keywords import AnalyzableContent
from doc_scout.logger import get_logger
from doc_scout.utils import InvalidUrlError, canonicalize

__all__ = ("CrawlScheduler", "Ledger")

logger = get_logger("scheduler")

# extra time on top of the navigation timeout before the scheduler gives up
# on a gateway that ignores its own timeout
_TIMEOUT_GRACE = 5.0
_RECLAIM_EVERY = 50

_OUTCOME_TYPES = get_args(RenderOutcome)


class Ledger(Protocol):
    def save(
        self, hostname: str, unique_urls: Collection[str], visited_urls: Collection[str], total_processed: int
    ) -> bool:
        ...


class CrawlScheduler:
    """Dispatch loop over a FIFO frontier with bounded concurrency."""

    def __init__(
        self,
        config: CrawlConfig,
        gateway: RenderGateway,
        classifier: UrlClassifier,
        *,
        ledger: Optional[Ledger] = None,
        hostname: Optional[str] = None,
        on_accept: Optional[Callable[[str], object]] = None,
        content_filter: Optional[Callable[[str, Optional[AnalyzableContent]], bool]] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.classifier = classifier
        self.ledger = ledger
        self.hostname = hostname or classifier.site.hostname or ""
        self.on_accept = on_accept
        self.content_filter = content_filter
        self.stop_event = stop_event or asyncio.Event()

        self.state = CrawlSessionState(hostname=self.hostname)
        self.stats = CrawlStats()
        self._queue: Deque[FrontierEntry] = deque()
        self._inflight: Dict[asyncio.Task, FrontierEntry] = {}
        self._snapshots: Set[asyncio.Task] = set()
        self._snapshot_lock = asyncio.Lock()
        self._since_snapshot = 0
        self._stopping = False

    # ------------------------------------------------------------------ #
    # public API                                                         #
    # ------------------------------------------------------------------ #

    def request_stop(self) -> None:
        self.stop_event.set()

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def run(
        self,
        seed: str,
        *,
        unique_urls: Collection[str] = (),
        visited_urls: Collection[str] = (),
        total_processed: int = 0,
    ) -> CrawlResult:
        """Crawl from ``seed`` until the frontier is exhausted or a stop is requested.

        ``unique_urls``/``visited_urls``/``total_processed`` come from a previous
        run for the same host: every known but unvisited URL is queued again at
        depth 1 and the processed counter keeps growing from the saved total.
        """
        start = canonicalize(seed)
        if start is None:
            raise InvalidUrlError(f"Invalid start URL: {seed!r}")

        self.state.unique_urls = set(unique_urls)
        self.state.visited_urls = set(visited_urls)
        self.state.processed_count = max(total_processed, len(self.state.visited_urls))
        self.state.unique_urls.add(start)
        self._queue.append(FrontierEntry(start, 0))

        if self.config.max_depth >= 1:
            pending = sorted(self.state.unique_urls - self.state.visited_urls - {start})
            self._queue.extend(FrontierEntry(url, 1) for url in pending)
            if pending:
                logger.info("Continuing previous crawl of %s: %d pending URLs", self.hostname, len(pending))

        logger.info(
            "Crawl started: %s (max depth %d, %d concurrent pages)",
            start, self.config.max_depth, self.config.max_concurrent_pages,
        )
        try:
            await self._loop()
        finally:
            for task in self._inflight:
                task.cancel()
            if self._inflight:
                await asyncio.gather(*self._inflight, return_exceptions=True)
                self._inflight.clear()

        await self._final_snapshot()
        self.stats.finished = time.monotonic()
        logger.info(
            "Crawl %s: %d unique, %d visited, %d saved in %.1f s",
            "stopped" if self._stopping else "finished",
            len(self.state.unique_urls), len(self.state.visited_urls), self.stats.saved, self.stats.duration,
        )
        return CrawlResult(
            unique_urls=set(self.state.unique_urls),
            visited_urls=set(self.state.visited_urls),
            stats=self.stats,
            stopped=self._stopping,
        )

    # ------------------------------------------------------------------ #
    # loop                                                               #
    # ------------------------------------------------------------------ #

    async def _loop(self) -> None:
        iteration = 0
        while self._queue or self._inflight:
            if not self._stopping and self._stop_requested():
                self._stopping = True
                logger.info("Stop requested: draining %d in-flight page(s)", len(self._inflight))
            if self._stopping:
                if not self._inflight:
                    break
            else:
                self._dispatch()
                if not self._inflight:
                    continue

            done, _ = await asyncio.wait(
                set(self._inflight), timeout=self.config.poll_interval, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                self._complete(task)

            iteration += 1
            if iteration % _RECLAIM_EVERY == 0:
                self._reclaim()

    def _stop_requested(self) -> bool:
        if self.stop_event.is_set():
            return True
        cap = self.config.max_visited
        if cap is not None and self.stats.dispatched >= cap:
            logger.warning("Safety cap of %d rendered pages reached", cap)
            return True
        return False

    def _dispatch(self) -> None:
        while len(self._inflight) < self.config.max_concurrent_pages and self._queue:
            cap = self.config.max_visited
            if cap is not None and self.stats.dispatched >= cap:
                return
            entry = self._queue.popleft()
            if entry.url in self.state.visited_urls:
                continue
            decision = self.classifier.classify(entry.url)
            if not decision:
                self.stats.rejections[decision.rule] += 1
                self._mark_visited(entry.url)
                continue
            task = asyncio.create_task(self._render(entry), name=f"render:{entry.url}")
            self._inflight[task] = entry
            self.stats.dispatched += 1
            self.stats.max_inflight = max(self.stats.max_inflight, len(self._inflight))
            logger.debug("Dispatched %s (depth %d)", entry.url, entry.depth)

    async def _render(self, entry: FrontierEntry) -> RenderOutcome:
        timeout = self.config.navigation_timeout
        try:
            return await asyncio.wait_for(self.gateway.render(entry.url, timeout), timeout=timeout + _TIMEOUT_GRACE)
        except asyncio.TimeoutError:
            return Timeout()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Renderer failed on %s: %s", entry.url, exc)
            return UnknownError(f"{type(exc).__name__}: {exc}")

    def _reclaim(self) -> None:
        reclaim = getattr(self.gateway, "reclaim", None)
        if callable(reclaim):
            try:
                reclaim()
            except Exception as exc:
                logger.warning("Slot reclaim failed: %s", exc)

    # ------------------------------------------------------------------ #
    # completion handling                                                #
    # ------------------------------------------------------------------ #

    def _complete(self, task: asyncio.Task) -> None:
        entry = self._inflight.pop(task)
        outcome = UnknownError("render cancelled") if task.cancelled() else task.result()
        self._mark_visited(entry.url)

        if not isinstance(outcome, _OUTCOME_TYPES):
            logger.error("[ERROR] %s: renderer returned %r", entry.url, outcome)
            self.stats.failures[UnknownError.category] += 1
            return
        if not isinstance(outcome, Success):
            self.stats.failures[outcome.category] += 1
            logger.warning("[%s] %s %s", outcome.category, entry.url, _describe(outcome))
            return

        if not outcome.is_saveable:
            logger.info("[SKIPPED] %s: empty page or invalid title %r", entry.url, outcome.title)
            return

        if self.content_filter is None or self.content_filter(entry.url, outcome.page):
            self._accept(entry.url)
        self._expand(entry, outcome.links)
        logger.info(
            "[%d visited | %d queued | %d in flight] %s",
            len(self.state.visited_urls), len(self._queue), len(self._inflight), entry.url,
        )

    def _accept(self, url: str) -> None:
        self.stats.saved += 1
        if self.on_accept is None:
            return
        try:
            self.on_accept(url)
        except Exception as exc:
            logger.error("Failed to record accepted URL %s: %s", url, exc)

    def _expand(self, entry: FrontierEntry, links: object) -> None:
        if not isinstance(links, (tuple, list)):
            logger.error("[ERROR] %s: links are not a sequence (%r), ignoring", entry.url, type(links))
            return
        depth = entry.depth + 1
        self.stats.links_seen += len(links)
        if depth > self.config.max_depth:
            return
        for raw in links:
            url = canonicalize(raw)
            if url is None or url in self.state.unique_urls:
                continue
            decision = self.classifier.classify(url)
            if not decision:
                self.stats.rejections[decision.rule] += 1
                continue
            self.state.unique_urls.add(url)
            self._queue.append(FrontierEntry(url, depth))
            self.stats.links_queued += 1

    def _mark_visited(self, url: str) -> None:
        if url in self.state.visited_urls:
            return
        self.state.visited_urls.add(url)
        self.state.processed_count += 1
        self._since_snapshot += 1
        if self._since_snapshot >= self.config.snapshot_every:
            self._since_snapshot = 0
            self._schedule_snapshot()

    # ------------------------------------------------------------------ #
    # persistence                                                        #
    # ------------------------------------------------------------------ #

    def _schedule_snapshot(self) -> None:
        if self.ledger is None:
            return
        task = asyncio.create_task(self._snapshot(*self._state_copy()))
        self._snapshots.add(task)
        task.add_done_callback(self._snapshots.discard)

    def _state_copy(self) -> tuple[frozenset[str], frozenset[str], int]:
        return (
            frozenset(self.state.unique_urls),
            frozenset(self.state.visited_urls),
            self.state.processed_count,
        )

    async def _snapshot(self, unique: frozenset[str], visited: frozenset[str], total: int) -> None:
        async with self._snapshot_lock:
            try:
                await asyncio.to_thread(self.ledger.save, self.hostname, unique, visited, total)
            except Exception as exc:
                logger.warning("Persistence snapshot for %s failed: %s", self.hostname, exc)

    async def _final_snapshot(self) -> None:
        if self.ledger is None:
            return
        if self._snapshots:
            await asyncio.gather(*self._snapshots, return_exceptions=True)
        await self._snapshot(*self._state_copy())


def _describe(outcome: RenderOutcome) -> str:
    status = getattr(outcome, "status", None)
    if status is not None:
        return f"(HTTP {status})"
    detail = getattr(outcome, "reason", "") or getattr(outcome, "message", "")
    return f"({detail})" if detail else ""
