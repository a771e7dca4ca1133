# doc_scout/crawler/fetcher.py
"""
Render gateway: fetches a page, checks it has content and extracts its links.

The scheduler only sees :data:`RenderOutcome` values. Raw transport errors
are turned into outcomes once, here, by :func:`classify_error`.
"""
from __future__ import annotations

import asyncio
import errno
import socket
import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Protocol, Sequence, runtime_checkable

from aiohttp import (
    ClientConnectionError,
    ClientConnectorCertificateError,
    ClientConnectorError,
    ClientSession,
    ClientSSLError,
    ServerTimeoutError,
    TCPConnector,
)
from bs4 import BeautifulSoup

from doc_scout.config import CrawlConfig
from doc_scout.crawler.link_extractor import extract_links
from doc_scout.crawler.models import (
    ConnectionRefused,
    DnsFailure,
    EmptyOrInvalidContent,
    HttpError,
    RenderOutcome,
    Success,
    Timeout,
    TlsError,
    UnknownError,
)
from doc_scout.keywords import extract_analyzable_content
from doc_scout.logger import get_logger

__all__ = (
    "RenderGateway",
    "RendererStartupError",
    "SlotUnavailableError",
    "SlotPool",
    "HttpRenderGateway",
    "classify_error",
)

logger = get_logger("fetcher")


class RendererStartupError(RuntimeError):
    """The renderer could not be started (fatal for the run)."""


class SlotUnavailableError(RuntimeError):
    """No render slot became free within the wait timeout."""


@runtime_checkable
class RenderGateway(Protocol):
    """Anything that can turn a URL into a :data:`RenderOutcome`."""

    async def render(self, url: str, timeout: float) -> RenderOutcome:
        ...


class SlotPool:
    """Bounded pool of render slots (tabs, connections …).

    A slot is always given back when the ``async with pool.slot()`` block is
    left, whatever the exit path. :meth:`reclaim` frees leases whose owning
    task has already finished.
    """

    def __init__(self, capacity: int, wait_timeout: float = 10.0) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.wait_timeout = wait_timeout
        self._semaphore = asyncio.Semaphore(capacity)
        self._leases: Dict[int, Optional[asyncio.Task]] = {}
        self._next_lease = 0

    @property
    def in_use(self) -> int:
        return len(self._leases)

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[int]:
        try:
            async with asyncio.timeout(self.wait_timeout):
                await self._semaphore.acquire()
        except TimeoutError as exc:
            logger.warning("Maximum wait time for an available slot exceeded (%s in use)", self.in_use)
            raise SlotUnavailableError("no render slot available") from exc
        lease = self._next_lease
        self._next_lease += 1
        self._leases[lease] = asyncio.current_task()
        try:
            yield lease
        finally:
            self._release(lease)

    def _release(self, lease: int) -> None:
        if lease in self._leases:
            del self._leases[lease]
            self._semaphore.release()

    def reclaim(self) -> int:
        stale = [lease for lease, task in self._leases.items() if task is not None and task.done()]
        for lease in stale:
            self._release(lease)
        if stale:
            logger.warning("Reclaimed %d leaked render slot(s)", len(stale))
        return len(stale)


def classify_error(exc: BaseException) -> RenderOutcome:
    """Map a transport exception onto the outcome taxonomy."""
    if isinstance(exc, (asyncio.TimeoutError, ServerTimeoutError)):
        return Timeout()
    if isinstance(exc, (ClientSSLError, ClientConnectorCertificateError, ssl.SSLError)):
        return TlsError()

    cause: Optional[BaseException] = exc
    if isinstance(exc, ClientConnectorError):
        cause = exc.os_error
    if isinstance(cause, ssl.SSLError):
        return TlsError()
    if isinstance(cause, socket.gaierror):
        return DnsFailure()
    if isinstance(cause, ConnectionRefusedError) or getattr(cause, "errno", None) == errno.ECONNREFUSED:
        return ConnectionRefused()
    if isinstance(cause, (TimeoutError, asyncio.TimeoutError)):
        return Timeout()
    return UnknownError(f"{type(exc).__name__}: {exc}")


class HttpRenderGateway:
    """Static HTTP renderer on top of one aiohttp session."""

    _RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(self, config: CrawlConfig, session: Optional[ClientSession] = None) -> None:
        self.config = config
        self.pool = SlotPool(config.max_concurrent_pages, config.slot_wait_timeout)
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> HttpRenderGateway:
        if self.session is None:
            try:
                self.session = ClientSession(
                    connector=TCPConnector(limit=self.config.max_concurrent_pages),
                    headers={"User-Agent": self.config.user_agent},
                    raise_for_status=False,
                )
            except Exception as exc:
                raise RendererStartupError(f"cannot start HTTP renderer: {exc}") from exc
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    async def render(self, url: str, timeout: Optional[float] = None) -> RenderOutcome:
        if self.session is None:
            raise RuntimeError("Session not initialized")
        limit = self.config.navigation_timeout if timeout is None else timeout
        try:
            async with self.pool.slot():
                outcome = await asyncio.wait_for(self._fetch(url), timeout=limit)
        except SlotUnavailableError as exc:
            outcome = UnknownError(str(exc))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            outcome = classify_error(exc)
        if not isinstance(outcome, Success):
            logger.debug("[%s] %s: %s", outcome.category, url, outcome)
        return outcome

    def reclaim(self) -> int:
        return self.pool.reclaim()

    async def _fetch(self, url: str) -> RenderOutcome:
        attempts = 0
        while True:
            try:
                async with self.session.get(url) as resp:
                    status = resp.status
                    if status in self._RETRY_STATUS and attempts < self.config.retry_times:
                        html = None
                    elif status >= 400:
                        return HttpError(status)
                    else:
                        ctype = resp.headers.get("Content-Type", "").lower()
                        if "html" not in ctype:
                            return EmptyOrInvalidContent(f"not an HTML document ({ctype or 'no content type'})")
                        html = await resp.text(errors="replace")
                        final_url = str(resp.url)
            except ClientConnectionError as exc:
                if attempts >= self.config.retry_times or isinstance(exc, ClientSSLError):
                    raise
                html = None
                logger.debug("Connection problem for %s: %s", url, exc)

            if html is not None:
                return self._build_outcome(url, final_url, html)

            attempts += 1
            backoff = min(60.0, self.config.retry_backoff * 2 ** (attempts - 1))
            logger.debug("Retry %d/%d for %s after %.2f s", attempts, self.config.retry_times, url, backoff)
            await asyncio.sleep(backoff)

    def _build_outcome(self, url: str, final_url: str, html: str) -> RenderOutcome:
        soup = BeautifulSoup(html, "html.parser")
        body = soup.body
        if body is None or len(body.decode_contents()) <= self.config.min_content_length:
            return EmptyOrInvalidContent("page appears to be empty or minimal")

        title = soup.title.get_text(strip=True) if soup.title else ""
        links = extract_links(soup, final_url, self.config.invalid_url_prefixes)
        page = None
        if self.config.content_analysis.enabled:
            page = extract_analyzable_content(
                html, final_url, self.config.content_analysis.max_content_length
            )
        logger.debug("Rendered %s: title=%r, %d links", url, title, len(links))
        return Success(url=url, title=title, links=tuple(links), has_content=True, page=page)
