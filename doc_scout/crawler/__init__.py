# doc_scout/crawler/__init__.py
"""Render gateway, link extraction and the frontier scheduler."""

from doc_scout.crawler.fetcher import HttpRenderGateway, RenderGateway, RendererStartupError, SlotPool, classify_error
from doc_scout.crawler.models import CrawlResult, FrontierEntry, RenderOutcome, Success
from doc_scout.crawler.scheduler import CrawlScheduler

__all__ = (
    "HttpRenderGateway",
    "RenderGateway",
    "RendererStartupError",
    "SlotPool",
    "classify_error",
    "CrawlResult",
    "FrontierEntry",
    "RenderOutcome",
    "Success",
    "CrawlScheduler",
)
