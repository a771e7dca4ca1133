# File: doc_scout/keywords.py
"""Keyword validation and keyword matching against page content.

Used in two places: the CLI keyword list is validated here before it reaches
the URL classifier, and :class:`KeywordContentFilter` is the content hook
that decides whether a rendered page is saved.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from bs4 import BeautifulSoup

from doc_scout.config import ContentAnalysisOptions, CrawlConfig, KeywordFilterOptions
from doc_scout.logger import get_logger

__all__: Sequence[str] = (
    "KeywordValidationError",
    "AnalyzableContent",
    "KeywordMatchResult",
    "validate_keywords",
    "extract_analyzable_content",
    "check_keyword_match",
    "KeywordContentFilter",
)

logger = get_logger("keywords")

FORBIDDEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
)

_MAX_URL = 2000
_MAX_TITLE = 500
_MAX_META = 1000
_MAX_HEADINGS = 20
_MAX_HEADING = 200


class KeywordValidationError(ValueError):
    """Список ключевых слов не проходит проверку (например, слишком длинный)."""


@dataclass(frozen=True, slots=True)
class AnalyzableContent:
    """Text fragments of a page that keywords are matched against."""

    url: str = ""
    title: str = ""
    meta_description: str = ""
    headings: tuple[str, ...] = ()
    content: str = ""


@dataclass(frozen=True, slots=True)
class KeywordMatchResult:
    matches: bool
    found_keywords: tuple[str, ...] = ()
    match_locations: tuple[str, ...] = ()
    match_count: int = 0

    @property
    def match_location(self) -> str:
        return ", ".join(self.match_locations)


def validate_keywords(
    keywords: Iterable[Any],
    options: KeywordFilterOptions | None = None,
) -> list[str]:
    """Очищает список ключевых слов.

    Нестроковые, слишком короткие и подозрительные слова отбрасываются с
    записью в лог; список длиннее ``max_keywords`` – ошибка.
    """
    opts = options or KeywordFilterOptions()
    if isinstance(keywords, (str, bytes)) or not isinstance(keywords, Iterable):
        raise TypeError("Keywords must be a sequence of strings")
    items = list(keywords)
    if not items:
        return []
    if len(items) > opts.max_keywords:
        raise KeywordValidationError(f"Too many keywords: {len(items)} > {opts.max_keywords}")

    validated: list[str] = []
    for index, keyword in enumerate(items):
        if not isinstance(keyword, str):
            logger.warning("Keyword at index %d is not a string: %r", index, keyword)
            continue
        cleaned = re.sub(r"\s+", " ", keyword.strip())
        if not opts.case_sensitive:
            cleaned = cleaned.lower()
        if any(p.search(cleaned) for p in FORBIDDEN_PATTERNS):
            logger.warning("Suspicious pattern in keyword dropped: %r", keyword)
            continue
        if len(cleaned) < opts.min_keyword_length:
            logger.warning("Keyword too short dropped: %r", keyword)
            continue
        if cleaned not in validated:
            validated.append(cleaned)

    logger.debug("Validated %d/%d keywords", len(validated), len(items))
    return validated


def extract_analyzable_content(html: str, url: str = "", max_content_length: int = 5000) -> AnalyzableContent:
    """Вытаскивает title, meta description, заголовки h1–h3 и текст тела."""
    soup = BeautifulSoup(html or "", "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    meta = soup.find("meta", attrs={"name": "description"})
    meta_description = str(meta.get("content") or "") if meta else ""

    headings = [
        h.get_text(" ", strip=True)[:_MAX_HEADING]
        for h in soup.find_all(["h1", "h2", "h3"])
        if h.get_text(strip=True)
    ][:_MAX_HEADINGS]

    for element in soup(["script", "style", "noscript", "template"]):
        element.decompose()
    container = soup.find("main") or soup.select_one(".content, .main-content") or soup.body or soup
    text = " ".join(container.stripped_strings)

    return AnalyzableContent(
        url=url[:_MAX_URL],
        title=title[:_MAX_TITLE],
        meta_description=meta_description[:_MAX_META],
        headings=tuple(headings),
        content=text[:max_content_length],
    )


def _contains(text: str, keyword: str, opts: KeywordFilterOptions) -> bool:
    if not text:
        return False
    haystack = text if opts.case_sensitive else text.lower()
    needle = keyword if opts.case_sensitive else keyword.lower()
    if opts.exact_match:
        return re.search(rf"\b{re.escape(needle)}\b", haystack) is not None
    return needle in haystack


def check_keyword_match(
    keywords: Sequence[str],
    content: AnalyzableContent,
    filter_options: KeywordFilterOptions | None = None,
    analysis: ContentAnalysisOptions | None = None,
) -> KeywordMatchResult:
    """Ищет ключевые слова в выбранных частях страницы (AND или OR)."""
    opts = filter_options or KeywordFilterOptions()
    areas = analysis or ContentAnalysisOptions()
    if not keywords:
        return KeywordMatchResult(matches=True)

    sources: list[tuple[str, bool, tuple[str, ...]]] = [
        ("url", areas.analyze_url, (content.url,)),
        ("title", areas.analyze_title, (content.title,)),
        ("meta", areas.analyze_meta_description, (content.meta_description,)),
        ("heading", areas.analyze_headings, content.headings),
        ("content", areas.analyze_content, (content.content,)),
    ]

    found: list[str] = []
    locations: list[str] = []
    count = 0
    for keyword in keywords:
        for location, enabled, texts in sources:
            if enabled and any(_contains(t, keyword, opts) for t in texts):
                if keyword not in found:
                    found.append(keyword)
                if location not in locations:
                    locations.append(location)
                count += 1

    matches = len(found) == len(keywords) if opts.logical_and else bool(found)
    logger.debug(
        "[KEYWORD_MATCH] %s | matches=%s | found %d/%d | %s",
        content.url[:80], matches, len(found), len(keywords), ", ".join(locations),
    )
    return KeywordMatchResult(matches, tuple(found), tuple(locations), count)


@dataclass
class KeywordContentFilter:
    """Content hook: should a successfully rendered page be saved?"""

    keywords: Sequence[str]
    filter_options: KeywordFilterOptions = field(default_factory=KeywordFilterOptions)
    analysis: ContentAnalysisOptions = field(default_factory=ContentAnalysisOptions)

    @classmethod
    def from_config(cls, keywords: Sequence[str], config: CrawlConfig) -> KeywordContentFilter:
        return cls(list(keywords), config.keyword_filter, config.content_analysis)

    def __call__(self, url: str, page: AnalyzableContent | None) -> bool:
        if not self.keywords:
            return True
        if page is None:
            page = AnalyzableContent(url=url)
        try:
            result = check_keyword_match(self.keywords, page, self.filter_options, self.analysis)
        except Exception as exc:
            logger.error("[ERROR] Keyword filtering failed for %s: %s | including page", url, exc)
            return True
        decision = "INCLUDE" if result.matches else "EXCLUDE"
        logger.info(
            "[KEYWORD_FILTER] %s %s | found: [%s]", decision, url, ", ".join(result.found_keywords)
        )
        return result.matches
