# File: doc_scout/report/sink.py
"""doc_scout.report.sink: файл принятых URL (по одному на строку, только дозапись)."""

from __future__ import annotations

from pathlib import Path
from typing import Set, Union

from doc_scout.logger import get_logger

__all__ = ["UrlSink"]

logger = get_logger("sink")


class UrlSink:
    """Дописывает канонические URL в файл, не повторяя уже записанные."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._seen: Set[str] = set()
        if self.path.exists():
            with self.path.open("r", encoding="utf-8") as fh:
                self._seen.update(line.strip() for line in fh if line.strip())

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, url: object) -> bool:
        return url in self._seen

    def add(self, url: str) -> bool:
        """Записывает URL; False, если он уже есть или запись не удалась."""
        url = url.strip()
        if not url or url in self._seen:
            return False
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(url + "\n")
        except OSError as exc:
            logger.error("Failed to write %s to %s: %s", url, self.path, exc)
            return False
        self._seen.add(url)
        logger.info("[SAVED] %s", url)
        return True

    __call__ = add
