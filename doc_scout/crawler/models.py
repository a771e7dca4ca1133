# doc_scout/crawler/models.py
"""
Data models for the DocScout crawler: render outcomes, frontier entries,
session state and crawl results.
"""
from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from doc_scout.keywords import AnalyzableContent

__all__ = (
    "Success",
    "HttpError",
    "Timeout",
    "DnsFailure",
    "ConnectionRefused",
    "TlsError",
    "EmptyOrInvalidContent",
    "UnknownError",
    "RenderOutcome",
    "is_valid_title",
    "FrontierEntry",
    "CrawlSessionState",
    "CrawlStats",
    "CrawlResult",
)


def is_valid_title(title: Optional[str]) -> bool:
    """A page title worth saving: longer than 3 chars and not an error page."""
    return bool(title) and len(title.strip()) > 3 and "error" not in title.lower()


# --------------------------------------------------------------------------- #
# Render outcomes                                                             #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class Success:
    url: str
    title: str
    links: tuple[str, ...] = ()
    has_content: bool = True
    page: Optional[AnalyzableContent] = None

    category = "SUCCESS"

    @property
    def is_saveable(self) -> bool:
        return self.has_content and is_valid_title(self.title)


@dataclass(frozen=True, slots=True)
class HttpError:
    status: int

    category = "HTTP_ERROR"


@dataclass(frozen=True, slots=True)
class Timeout:
    category = "TIMEOUT_ERROR"


@dataclass(frozen=True, slots=True)
class DnsFailure:
    category = "DNS_ERROR"


@dataclass(frozen=True, slots=True)
class ConnectionRefused:
    category = "CONNECTION_ERROR"


@dataclass(frozen=True, slots=True)
class TlsError:
    category = "SSL_ERROR"


@dataclass(frozen=True, slots=True)
class EmptyOrInvalidContent:
    reason: str = ""

    category = "EMPTY_CONTENT"


@dataclass(frozen=True, slots=True)
class UnknownError:
    message: str = ""

    category = "ERROR"


RenderOutcome = Union[
    Success,
    HttpError,
    Timeout,
    DnsFailure,
    ConnectionRefused,
    TlsError,
    EmptyOrInvalidContent,
    UnknownError,
]


# --------------------------------------------------------------------------- #
# Frontier & session                                                          #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class FrontierEntry:
    """Admitted URL waiting for dispatch."""

    url: str
    depth: int


@dataclass(slots=True)
class CrawlSessionState:
    """Mutable state of one crawl run, owned by the scheduler."""

    hostname: str
    unique_urls: set[str] = field(default_factory=set)
    visited_urls: set[str] = field(default_factory=set)
    processed_count: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class CrawlStats:
    """Counters collected during a run (for the summary and the log)."""

    dispatched: int = 0
    saved: int = 0
    links_seen: int = 0
    links_queued: int = 0
    rejections: Counter = field(default_factory=Counter)
    failures: Counter = field(default_factory=Counter)
    max_inflight: int = 0
    started: float = field(default_factory=time.monotonic)
    finished: Optional[float] = None

    @property
    def duration(self) -> float:
        end = self.finished if self.finished is not None else time.monotonic()
        return end - self.started


@dataclass(slots=True)
class CrawlResult:
    unique_urls: set[str]
    visited_urls: set[str]
    stats: CrawlStats
    stopped: bool = False
