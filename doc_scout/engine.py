# File: doc_scout/engine.py
"""doc_scout.engine: Orchestration layer для запуска обхода и сохранения результатов."""

from __future__ import annotations

import asyncio
import signal
import time
from pathlib import Path
from typing import AsyncContextManager, Callable, Iterable, Optional, Sequence, Union

from doc_scout.aggregator import CrawlSummary, build_summary
from doc_scout.classifier import FilterConfig, SiteContext, UrlClassifier
from doc_scout.config import CrawlConfig, load_config
from doc_scout.crawler.fetcher import HttpRenderGateway, RenderGateway
from doc_scout.crawler.scheduler import CrawlScheduler
from doc_scout.keywords import KeywordContentFilter, validate_keywords
from doc_scout.logger import add_file_handler, get_logger, remove_handler
from doc_scout.persistence import LedgerRecord, UrlLedger
from doc_scout.report import UrlSink, render_html, render_json
from doc_scout.utils import InvalidUrlError, canonicalize, extract_hostname, is_absolute_http_url

__all__ = [
    "OutputPathError",
    "CrawlSummary",
    "prepare_run_dir",
    "run_crawl",
    "start_crawl",
    "Engine",
]

logger = get_logger("engine")

URLS_FILENAME = "unique_urls.txt"

GatewayFactory = Callable[[CrawlConfig], AsyncContextManager[RenderGateway]]


class OutputPathError(OSError):
    """Каталог запуска не удалось создать или в него нельзя писать."""


def prepare_run_dir(
    output_dir: Union[str, Path],
    hostname: str,
    now: Optional[float] = None,
) -> Path:
    """Создаёт ``<output_dir>/<host_with_underscores>_<epoch_ms>``."""
    stamp = int((time.time() if now is None else now) * 1000)
    run_dir = Path(output_dir) / f"{hostname.replace('.', '_')}_{stamp}"
    try:
        run_dir.mkdir(parents=True, exist_ok=True)
        probe = run_dir / ".write-test"
        probe.touch()
        probe.unlink()
    except OSError as exc:
        raise OutputPathError(f"Cannot use output directory {run_dir}: {exc}") from exc
    return run_dir


async def run_crawl(
    start_url: str,
    keywords: Iterable[str] = (),
    config: Optional[CrawlConfig] = None,
    *,
    fresh: bool = False,
    stop_event: Optional[asyncio.Event] = None,
    gateway_factory: Optional[GatewayFactory] = None,
    now: Optional[float] = None,
) -> CrawlSummary:
    """Полный запуск: каталог, лог, состояние хоста, обход, сводки.

    Raises:
        InvalidUrlError: стартовый URL не абсолютный http(s).
        KeywordValidationError: слишком много ключевых слов.
        OutputPathError: каталог запуска недоступен для записи.
        RendererStartupError: рендерер не запустился.
    """
    cfg = config or CrawlConfig()
    if not is_absolute_http_url(start_url):
        raise InvalidUrlError(f"Start URL must be an absolute http(s) URL: {start_url!r}")
    seed = canonicalize(start_url)
    hostname = extract_hostname(seed) if seed else None
    if seed is None or hostname is None:
        raise InvalidUrlError(f"Invalid start URL: {start_url!r}")

    words = validate_keywords(list(keywords), cfg.keyword_filter)
    run_dir = prepare_run_dir(cfg.output_dir, hostname, now)
    log_file = run_dir / f"{run_dir.name}.log"
    handler = add_file_handler(log_file)
    try:
        logger.info("Starting crawl for: %s", seed)
        logger.info("Output folder: %s", run_dir)
        if words:
            logger.info("Keywords (OR): %s", ", ".join(words))

        ledger = UrlLedger(cfg.persistence_dir)
        if fresh:
            ledger.clear(hostname)
            record = LedgerRecord()
        else:
            record = ledger.load(hostname)

        sink = UrlSink(run_dir / URLS_FILENAME)
        classifier = UrlClassifier(SiteContext(seed), FilterConfig.from_config(cfg, words))
        content_filter = KeywordContentFilter.from_config(words, cfg) if words else None

        factory = gateway_factory or HttpRenderGateway
        async with factory(cfg) as gateway:
            scheduler = CrawlScheduler(
                cfg,
                gateway,
                classifier,
                ledger=ledger,
                hostname=hostname,
                on_accept=sink.add,
                content_filter=content_filter,
                stop_event=stop_event,
            )
            result = await scheduler.run(
                seed,
                unique_urls=record.unique_urls,
                visited_urls=record.visited_urls,
                total_processed=record.total_processed,
            )

        summary = build_summary(
            result,
            hostname=hostname,
            seed=seed,
            run_dir=run_dir,
            keywords=words,
            urls_file=sink.path,
            log_file=log_file,
        )
        _write_reports(summary, run_dir)
        logger.info("Unique URLs discovered: %d", summary.unique_count)
        logger.info("Visited URLs: %d", summary.visited_count)
        if summary.inclusion_rate is not None:
            logger.info("Inclusion rate: %.1f%% (%d saved)", summary.inclusion_rate, summary.saved_count)
        return summary
    finally:
        remove_handler(handler)


def _write_reports(summary: CrawlSummary, run_dir: Path) -> None:
    try:
        render_json(summary, run_dir / "summary.json")
        render_html(summary, run_dir / "summary.html")
    except OSError as exc:
        logger.error("Failed to write summary reports to %s: %s", run_dir, exc)


async def _crawl_until_signal(
    start_url: str,
    keywords: Sequence[str],
    config: CrawlConfig,
    fresh: bool,
) -> CrawlSummary:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("Signal handler for %s is not available", sig)
    try:
        return await run_crawl(start_url, keywords, config, fresh=fresh, stop_event=stop)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def start_crawl(
    start_url: str,
    keywords: Sequence[str] = (),
    config: Optional[CrawlConfig] = None,
    *,
    fresh: bool = False,
) -> CrawlSummary:
    """Синхронный запуск для CLI: SIGINT/SIGTERM мягко останавливают обход."""
    return asyncio.run(_crawl_until_signal(start_url, keywords, config or CrawlConfig(), fresh))


class Engine:
    """Фасад для CLI и тестов: загрузка конфига и запуск обхода."""

    @staticmethod
    def load_config(path: Optional[str]) -> CrawlConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

    def start(self, start_url: str, keywords: Sequence[str] = (), *, fresh: bool = False) -> CrawlSummary:
        """Запускает обход и возвращает сводку."""
        logger.info("Starting crawl…")
        try:
            return start_crawl(start_url, keywords, self.config, fresh=fresh)
        except Exception as exc:
            logger.error("Crawl failed: %s", exc)
            raise
