# doc_scout/crawler/link_extractor.py
"""
Outbound link extraction for rendered pages.
"""
from __future__ import annotations

from typing import Iterable, List

from bs4 import BeautifulSoup
from bs4.element import Tag

from doc_scout.config import DEFAULT_INVALID_URL_PREFIXES
from doc_scout.utils import has_invalid_prefix, resolve_absolute_url

# (selector, attribute) pairs, in the order links are collected
LINK_SOURCES: tuple[tuple[str, str], ...] = (
    ("a[href]", "href"),
    ("area[href]", "href"),
    ("[data-href]", "data-href"),
    ("link[href]", "href"),
    ("script[src]", "src"),
)


def extract_links(
    html: str | BeautifulSoup,
    base_url: str,
    invalid_prefixes: Iterable[str] = DEFAULT_INVALID_URL_PREFIXES,
) -> List[str]:
    """
    Extract absolute URLs referenced by the page.

    Covers anchors, image maps, ``data-href`` attributes, ``<link>`` and
    ``<script src>``. Non-navigable references (``mailto:``, ``javascript:``,
    bare fragments …) are skipped. Duplicates are removed, order is kept.
    Nothing is filtered by host here, that is the classifier's job.
    """
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html or "", "html.parser")
    prefixes = tuple(invalid_prefixes)
    seen: set[str] = set()
    links: List[str] = []
    for selector, attr in LINK_SOURCES:
        for tag in soup.select(selector):
            if not isinstance(tag, Tag):
                continue
            value = tag.get(attr)
            if not isinstance(value, str) or not value.strip():
                continue
            if has_invalid_prefix(value, prefixes):
                continue
            absolute = resolve_absolute_url(value, base_url)
            if absolute and absolute not in seen:
                seen.add(absolute)
                links.append(absolute)
    return links
