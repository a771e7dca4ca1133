# File: doc_scout/utils.py
"""doc_scout.utils: нормализация, очистка и сравнение URL.

Каноническая форма URL: схема + хост + путь без завершающего слеша + строка
запроса без трекинговых параметров, фрагмент отбрасывается. Везде в системе
(допуск, дедупликация, проверка посещённых) URL сравниваются только как
строки в канонической форме.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence
from urllib.parse import parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

from doc_scout.config import DEFAULT_INVALID_URL_PREFIXES
from doc_scout.logger import get_logger

__all__: Sequence[str] = (
    "InvalidUrlError",
    "TRACKING_PARAMS",
    "normalize_url",
    "clean_url",
    "canonicalize",
    "extract_hostname",
    "resolve_absolute_url",
    "is_absolute_http_url",
    "has_invalid_prefix",
)

logger = get_logger("urls")

TRACKING_PARAMS: frozenset[str] = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "ref",
        "fbclid",
        "gclid",
        "pk_campaign",
        "pk_kwd",
        "zanpid",
        "origin",
    }
)

_ALLOWED_SCHEMES = ("http", "https")
_DEFAULT_PORTS = {"http": 80, "https": 443}
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_ANY_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
# RFC 3986 pchar + "/" and "%" so that already-encoded paths stay as they are
_PATH_SAFE = "/%:@!$&'()*+,;=~-._"


class InvalidUrlError(ValueError):
    """URL не удалось разобрать или он не http(s)."""


def has_invalid_prefix(raw: str, prefixes: Iterable[str] = DEFAULT_INVALID_URL_PREFIXES) -> bool:
    """True для ссылок вида ``javascript:``, ``mailto:``, ``#…`` и т.п."""
    lowered = raw.strip().lower()
    return any(lowered.startswith(p) for p in prefixes)


def normalize_url(raw: str) -> Optional[str]:
    """Нормализует URL; возвращает None, если он невалиден.

    Пробелы обрезаются, при отсутствии схемы добавляется ``https://``,
    хост и схема приводятся к нижнему регистру, порт по умолчанию удаляется,
    завершающие слеши пути и фрагмент отбрасываются.
    """
    if not isinstance(raw, str):
        logger.debug("Rejected non-string URL input: %r", raw)
        return None
    candidate = raw.strip()
    if not candidate or has_invalid_prefix(candidate):
        logger.debug("Rejected URL input: %r", raw)
        return None
    if not _SCHEME_RE.match(candidate):
        if _ANY_SCHEME_RE.match(candidate):
            logger.debug("Invalid URL protocol: %r", raw)
            return None
        candidate = f"https://{candidate}"

    try:
        parts = urlsplit(candidate)
        scheme = parts.scheme.lower()
        host = parts.hostname
        port = parts.port
    except ValueError as exc:
        logger.debug("Invalid URL %r: %s", raw, exc)
        return None

    if scheme not in _ALLOWED_SCHEMES or not host:
        logger.debug("Invalid URL %r: unsupported scheme or empty host", raw)
        return None

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"

    path = quote(parts.path, safe=_PATH_SAFE).rstrip("/")
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def clean_url(url: str) -> str:
    """Удаляет трекинговые параметры (utm_*, fbclid, gclid, ref …) из строки запроса."""
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        logger.debug("Failed to clean URL %r: %s", url, exc)
        return url
    if not parts.query:
        return url
    pairs = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key.lower() not in TRACKING_PARAMS
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(pairs), ""))


def canonicalize(raw: str) -> Optional[str]:
    """Каноническая форма URL или None (Invalid). Идемпотентна."""
    normalized = normalize_url(raw)
    if normalized is None:
        return None
    return clean_url(normalized)


def extract_hostname(url: str) -> Optional[str]:
    """Возвращает hostname или None, если URL не разбирается."""
    try:
        host = urlsplit(url).hostname
    except (ValueError, AttributeError) as exc:
        logger.debug("Failed to extract hostname from %r: %s", url, exc)
        return None
    return host or None


def resolve_absolute_url(href: str, base_url: str) -> Optional[str]:
    """Разрешает относительную ссылку относительно base_url."""
    try:
        return urljoin(base_url, href.strip())
    except (ValueError, AttributeError) as exc:
        logger.debug("Failed to resolve %r against %s: %s", href, base_url, exc)
        return None


def is_absolute_http_url(raw: str) -> bool:
    """Проверка стартового URL: абсолютный http(s) с хостом."""
    try:
        parts = urlsplit(raw.strip())
        return parts.scheme.lower() in _ALLOWED_SCHEMES and bool(parts.hostname)
    except (ValueError, AttributeError):
        return False
