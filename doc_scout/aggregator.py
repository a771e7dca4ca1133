# File: doc_scout/aggregator.py
"""doc_scout.aggregator: итоговая сводка по запуску обхода."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from doc_scout.crawler.models import CrawlResult

__all__ = ["CrawlSummary", "build_summary"]


@dataclass(slots=True)
class CrawlSummary:
    """Сводка, которую видит пользователь: счётчики, доля включения, причины отказов."""

    hostname: str
    seed: str
    run_dir: str
    unique_count: int = 0
    visited_count: int = 0
    rendered_count: int = 0
    saved_count: int = 0
    keywords: List[str] = field(default_factory=list)
    inclusion_rate: Optional[float] = None
    failures: Dict[str, int] = field(default_factory=dict)
    rejections: Dict[str, int] = field(default_factory=dict)
    duration: float = 0.0
    stopped: bool = False
    urls_file: Optional[str] = None
    log_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


def build_summary(
    result: CrawlResult,
    *,
    hostname: str,
    seed: str,
    run_dir: Union[str, Path],
    keywords: Sequence[str] = (),
    urls_file: Union[str, Path, None] = None,
    log_file: Union[str, Path, None] = None,
) -> CrawlSummary:
    """Собирает CrawlSummary из результата планировщика.

    Доля включения (saved / rendered, в процентах) считается только когда
    заданы ключевые слова: без них сохраняется каждая годная страница.
    """
    stats = result.stats
    rate: Optional[float] = None
    if keywords:
        rate = round(100.0 * stats.saved / stats.dispatched, 1) if stats.dispatched else 0.0
    return CrawlSummary(
        hostname=hostname,
        seed=seed,
        run_dir=str(run_dir),
        unique_count=len(result.unique_urls),
        visited_count=len(result.visited_urls),
        rendered_count=stats.dispatched,
        saved_count=stats.saved,
        keywords=list(keywords),
        inclusion_rate=rate,
        failures=dict(sorted(stats.failures.items())),
        rejections=dict(sorted(stats.rejections.items())),
        duration=round(stats.duration, 3),
        stopped=result.stopped,
        urls_file=str(urls_file) if urls_file else None,
        log_file=str(log_file) if log_file else None,
    )
