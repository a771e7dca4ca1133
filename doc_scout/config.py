# === FILE: doc_scout/config.py ===
"""
Модуль для загрузки и валидации конфигурации краулера DocScout.
Используется Pydantic для описания схемы и проверки данных.
Объект конфигурации неизменяемый и передаётся явно в планировщик,
классификатор и шлюз рендеринга.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_EXTENSIONS_TO_AVOID: tuple[str, ...] = (
    ".css", ".jpeg", ".jpg", ".png", ".js", ".gif", ".svg",
    ".xml", ".json", ".mp3", ".mp4",
    ".zip", ".rar", ".tar", ".gz", ".mov", ".its",
)

DEFAULT_INVALID_URL_PREFIXES: tuple[str, ...] = (
    "javascript:", "#", "mailto:", "data:", "tel:", "blob:", "chrome-extension:", "about:",
)


class KeywordFilterOptions(BaseModel):
    """Настройки проверки ключевых слов."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    case_sensitive: bool = Field(False, description="Учитывать регистр при сравнении.")
    logical_and: bool = Field(False, description="True – нужны все слова (AND), False – любое (OR).")
    exact_match: bool = Field(False, description="Совпадение только по границам слова.")
    min_keyword_length: int = Field(2, ge=1, description="Минимальная длина ключевого слова.")
    max_keywords: int = Field(50, ge=1, description="Максимальное число ключевых слов.")


class ContentAnalysisOptions(BaseModel):
    """Какие части страницы анализировать на наличие ключевых слов."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = Field(False, description="Сохранять страницу только при совпадении в контенте.")
    analyze_url: bool = True
    analyze_title: bool = True
    analyze_meta_description: bool = True
    analyze_headings: bool = True
    analyze_content: bool = False
    max_content_length: int = Field(5000, ge=0, description="Лимит длины текста тела страницы.")


class CrawlConfig(BaseModel):
    """Конфигурация для одного запуска обхода."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_concurrent_pages: int = Field(7, ge=1, description="Максимум одновременно рендерящихся страниц.")
    max_depth: int = Field(100, ge=0, description="Максимальная глубина обхода ссылок.")
    navigation_timeout_ms: int = Field(60000, gt=0, description="Таймаут рендеринга одной страницы (мс).")
    extensions_to_avoid: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS_TO_AVOID),
        description="Расширения файлов, которые не обходятся.",
    )
    invalid_url_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_INVALID_URL_PREFIXES),
        description="Префиксы ссылок, которые отбрасываются до нормализации.",
    )
    snapshot_every: int = Field(10, ge=1, description="Сохранять состояние каждые K посещённых URL.")
    poll_interval: float = Field(0.1, gt=0, description="Пауза цикла диспетчеризации (секунд).")
    max_visited: Optional[int] = Field(None, ge=1, description="Необязательный лимит страниц, отправленных на рендеринг за запуск.")
    retry_times: int = Field(0, ge=0, description="Число повторных попыток при 5xx/429 и ошибках соединения.")
    retry_backoff: float = Field(1.0, ge=0, description="База экспоненциальной задержки между попытками.")
    slot_wait_timeout: float = Field(10.0, gt=0, description="Максимальное ожидание свободного слота (секунд).")
    min_content_length: int = Field(100, ge=0, description="Минимальная длина разметки <body>.")
    user_agent: str = Field("DocScoutBot/1.0", min_length=1, description="Заголовок User-Agent.")
    output_dir: Path = Field(Path("output"), description="Каталог для результатов запусков.")
    persistence_dir: Path = Field(Path("persistence"), description="Каталог снимков состояния.")
    max_query_params: int = Field(5, ge=0, description="Порог числа параметров запроса.")
    max_url_length: int = Field(200, ge=1, description="Порог длины URL для правила по умолчанию.")

    keyword_filter: KeywordFilterOptions = Field(default_factory=KeywordFilterOptions)
    content_analysis: ContentAnalysisOptions = Field(default_factory=ContentAnalysisOptions)

    @field_validator("extensions_to_avoid", mode="before")
    def _dot_prefixed(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)):
            return [
                (ext if ext.startswith(".") else f".{ext}").lower() if isinstance(ext, str) else ext
                for ext in v
            ]
        return v

    @property
    def navigation_timeout(self) -> float:
        """Таймаут рендеринга в секундах."""
        return self.navigation_timeout_ms / 1000.0


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None] = None) -> CrawlConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlConfig.
    Без пути используется configs/default.yaml, а если его нет – значения по умолчанию.
    При отсутствии явно указанного файла бросает FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return CrawlConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    return CrawlConfig(**data)


__all__ = [
    "CrawlConfig",
    "KeywordFilterOptions",
    "ContentAnalysisOptions",
    "DEFAULT_EXTENSIONS_TO_AVOID",
    "DEFAULT_INVALID_URL_PREFIXES",
    "load_config",
]
