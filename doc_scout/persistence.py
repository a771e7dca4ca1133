# File: doc_scout/persistence.py
"""doc_scout.persistence: хранение множеств Unique/Visited между запусками.

Одна JSON-запись на хост::

    {"processedUrls": [...], "visitedUrls": [...],
     "lastUpdated": "2024-01-01T00:00:00+00:00", "totalProcessed": 42}

Внутри запуска запись ничего не решает: авторитетны множества в памяти
планировщика. Ошибки чтения и записи только логируются.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Collection, Dict, List, Optional, Union

from doc_scout.logger import get_logger

__all__ = ["LedgerRecord", "UrlLedger", "ledger_filename"]

logger = get_logger("persistence")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def ledger_filename(hostname: str) -> str:
    """Безопасное для файловой системы имя записи для хоста."""
    return f"{_UNSAFE_CHARS.sub('_', hostname)}.json"


@dataclass(slots=True)
class LedgerRecord:
    unique_urls: set[str] = field(default_factory=set)
    visited_urls: set[str] = field(default_factory=set)
    total_processed: int = 0
    last_updated: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.unique_urls and not self.visited_urls

    @property
    def pending_urls(self) -> set[str]:
        return self.unique_urls - self.visited_urls


class UrlLedger:
    """Файловое хранилище состояния обхода, по одному файлу на хост."""

    def __init__(self, directory: Union[str, Path] = "persistence") -> None:
        self.directory = Path(directory)

    def path_for(self, hostname: str) -> Path:
        return self.directory / ledger_filename(hostname)

    def load(self, hostname: str) -> LedgerRecord:
        """Читает запись хоста; при отсутствии или порче файла - пустая запись."""
        path = self.path_for(hostname)
        if not path.exists():
            logger.debug("No saved data found for %s, starting fresh", hostname)
            return LedgerRecord()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read saved data for %s (%s): %s", hostname, path, exc)
            return LedgerRecord()
        if not isinstance(data, dict):
            logger.warning("Saved data for %s is not a JSON object, ignoring", hostname)
            return LedgerRecord()

        record = LedgerRecord(
            unique_urls=_string_set(data.get("processedUrls")),
            visited_urls=_string_set(data.get("visitedUrls")),
            total_processed=_as_int(data.get("totalProcessed")),
            last_updated=data.get("lastUpdated") if isinstance(data.get("lastUpdated"), str) else None,
        )
        logger.debug(
            "Loaded saved data for %s: %d processed, %d visited",
            hostname, len(record.unique_urls), len(record.visited_urls),
        )
        return record

    def save(
        self,
        hostname: str,
        unique_urls: Collection[str],
        visited_urls: Collection[str],
        total_processed: int,
    ) -> bool:
        """Атомарно перезаписывает запись хоста. Возвращает True при успехе."""
        payload: Dict[str, Any] = {
            "processedUrls": sorted(unique_urls),
            "visitedUrls": sorted(visited_urls),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "totalProcessed": int(total_processed),
        }
        path = self.path_for(hostname)
        tmp_name: Optional[str] = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except OSError as exc:
            logger.warning("Failed to save data for %s: %s", hostname, exc)
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False
        logger.debug("Saved data for %s: %d processed, %d visited", hostname, len(unique_urls), len(visited_urls))
        return True

    def has_existing_data(self, hostname: str) -> bool:
        return not self.load(hostname).is_empty

    def hostname_stats(self, hostname: str) -> Dict[str, Any]:
        record = self.load(hostname)
        return {
            "hostname": hostname,
            "processed": len(record.unique_urls),
            "visited": len(record.visited_urls),
            "pending": len(record.pending_urls),
            "total_processed": record.total_processed,
            "last_updated": record.last_updated,
        }

    def clear(self, hostname: str) -> bool:
        """Удаляет запись хоста. False, если удалять было нечего."""
        path = self.path_for(hostname)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to clear saved data for %s: %s", hostname, exc)
            return False
        logger.info("Cleared saved data for %s", hostname)
        return True

    def list_hostnames(self) -> List[str]:
        """Имена записей (файлы без расширения) в каталоге хранилища."""
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


def _string_set(value: Any) -> set[str]:
    if not isinstance(value, list):
        return set()
    return {item for item in value if isinstance(item, str)}


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0
