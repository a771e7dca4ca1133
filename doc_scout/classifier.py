# File: doc_scout/classifier.py
"""URL admission filter.

Rules are evaluated in a fixed order and the first rule that matches decides
the verdict. Rejecting rules come first, the admitting rules follow, and a URL
that matches nothing is rejected. A failure while evaluating a URL is a
rejection, the classifier never raises to its caller.

The classifier keeps no state between calls: the same URL with the same
context always gets the same verdict.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence
from urllib.parse import parse_qsl, urlsplit

from doc_scout.config import DEFAULT_EXTENSIONS_TO_AVOID, CrawlConfig
from doc_scout.logger import get_logger
from doc_scout.utils import extract_hostname

__all__ = (
    "SiteContext",
    "FilterConfig",
    "UrlView",
    "Rule",
    "Decision",
    "DEFAULT_RULES",
    "UrlClassifier",
    "is_admissible",
)

logger = get_logger("classifier")

ADMIT = True
REJECT = False


@dataclass(frozen=True, slots=True)
class SiteContext:
    """What the crawl is restricted to."""

    base_url: str

    @property
    def hostname(self) -> Optional[str]:
        return extract_hostname(self.base_url)


@dataclass(frozen=True, slots=True)
class FilterConfig:
    keywords: tuple[str, ...] = ()
    max_query_params: int = 5
    max_url_length: int = 200
    max_path_segments: int = 5
    extensions_to_avoid: tuple[str, ...] = DEFAULT_EXTENSIONS_TO_AVOID

    @classmethod
    def from_config(cls, config: CrawlConfig, keywords: Iterable[str] = ()) -> FilterConfig:
        return cls(
            keywords=tuple(keywords),
            max_query_params=config.max_query_params,
            max_url_length=config.max_url_length,
            extensions_to_avoid=tuple(config.extensions_to_avoid),
        )


@dataclass(frozen=True, slots=True)
class UrlView:
    """Pre-parsed pieces of the URL every rule looks at."""

    raw: str
    hostname: Optional[str]
    path: str
    query: str
    params: tuple[tuple[str, str], ...]
    segments: tuple[str, ...]
    site_hostname: Optional[str]

    @classmethod
    def parse(cls, url: str, site: SiteContext) -> UrlView:
        parts = urlsplit(url)
        path = parts.path or ""
        return cls(
            raw=url,
            hostname=parts.hostname,
            path=path,
            query=parts.query,
            params=tuple(parse_qsl(parts.query, keep_blank_values=True)),
            segments=tuple(s for s in path.split("/") if s),
            site_hostname=site.hostname,
        )

    @property
    def param_names(self) -> frozenset[str]:
        return frozenset(name.lower() for name, _ in self.params)


@dataclass(frozen=True, slots=True)
class Rule:
    """One step of the cascade: ``predicate`` matches → ``verdict`` decides."""

    name: str
    verdict: bool
    predicate: Callable[[UrlView, FilterConfig], bool]


@dataclass(frozen=True, slots=True)
class Decision:
    admitted: bool
    rule: str

    def __bool__(self) -> bool:
        return self.admitted


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def _any(patterns: Sequence[re.Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


# --------------------------------------------------------------------------- #
# Pattern tables                                                              #
# --------------------------------------------------------------------------- #

LOCALIZATION_PARAMS = frozenset({"hl", "lang", "locale", "l"})

AUTH_PATTERNS = _compile(
    r"/signin", r"/login", r"/register", r"/signup", r"/logout", r"/account",
    r"/profile", r"/dashboard", r"/admin", r"/_d/signin", r"/oauth$", r"/sso",
)
AUTH_DOC_PATTERNS = _compile(
    r"/(docs?|guides?|tutorials?|examples?).*auth",
    r"/auth.*(docs?|guides?|tutorials?|examples?)",
    r"/guides?/auth/",
)

TECHNICAL_PATTERNS = _compile(
    r"\.css$", r"\.js$", r"\.json$", r"\.xml$", r"\.txt$", r"\.pdf$", r"\.zip$",
    r"\.gz$", r"\.tar$", r"\.png$", r"\.jpe?g$", r"\.gif$", r"\.svg$", r"\.ico$",
    r"/manifest\.json", r"/opensearch\.xml", r"/robots\.txt", r"/sitemap",
    r"/favicon", r"/_pwa/", r"/sw\.js", r"/service-worker",
)

# index pages of these sections are rejected, their sub-pages are not
NON_CONTENT_PATTERNS = _compile(
    r"/newsletter", r"/subscribe", r"/unsubscribe", r"/contact", r"/about",
    r"/privacy", r"/terms", r"/legal", r"/cookies", r"/support$", r"/help$",
    r"/faq$", r"/search$", r"/404", r"/error", r"/maintenance", r"/coming-?soon",
    r"/under-?construction", r"/placeholder", r"/demo$", r"/example$", r"/test$",
    r"/playground$", r"/branding", r"/press", r"/media", r"/careers", r"/jobs",
    r"/investor", r"/blog$", r"/news$",
)

TRACKING_PATTERNS = _compile(
    r"/analytics", r"/tracking", r"/metrics", r"/telemetry", r"/events", r"/pixel",
    r"/beacon", r"/gtm", r"/ga/", r"/facebook", r"/twitter", r"/linkedin",
    r"/social", r"/share", r"/embed",
)
TRACKING_QUERY_PARAMS = frozenset(
    {
        "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
        "fbclid", "gclid", "msclkid", "igshid",
        "ref", "referrer", "source", "campaign",
        "tracking", "track", "campaign_id",
        "affiliate", "partner", "promo",
        "session", "sid", "token", "key",
        "timestamp", "cache", "version", "v",
        "continue", "redirect", "return", "next",
        "prompt", "force", "reload",
    }
)

VIEW_PARAMS = frozenset(
    {
        "sort", "order", "view", "display", "layout",
        "page", "per_page", "limit", "offset",
        "filter", "category", "tag", "type",
        "format", "theme", "skin", "mode",
    }
)

DOC_PATTERNS = _compile(
    r"/docs?/", r"/documentation", r"/guides?/", r"/tutorials?/", r"/examples?/",
    r"/samples?/", r"/reference", r"/api/", r"/sdk/", r"/dev/", r"/developer",
    r"/manual", r"/handbook", r"/wiki", r"/knowledge", r"/learn", r"/training",
    r"/course", r"/tutorial", r"/howto", r"/how[_-]to", r"/getting[_-]?started",
    r"/quickstart", r"/quick[_-]start", r"/setup", r"/installation", r"/config",
    r"/implementation", r"/integration", r"/usage", r"/best[_-]practices",
    r"/guidelines", r"/standards", r"/conventions", r"/specification", r"/spec",
    r"/readme", r"/changelog", r"/release[_-]?notes", r"/migration", r"/upgrade",
    r"/troubleshoot", r"/faq", r"/help/", r"/support/",
)

CONTENT_PATTERNS = _compile(
    r"/articles?/", r"/posts?/", r"/blog/", r"/news/", r"/announcements?/",
    r"/updates?/", r"/releases?/", r"/features?/", r"/products?/", r"/services?/",
    r"/solutions?/", r"/case[_-]?studies?/", r"/case[_-]?study/", r"/stories?/",
    r"/insights?/", r"/research/", r"/papers?/", r"/reports?/", r"/whitepapers?/",
    r"/ebooks?/", r"/presentations?/", r"/webinars?/", r"/videos?/", r"/podcasts?/",
    r"/recordings?/", r"/demos?/", r"/samples?/",
)

MAIN_CONTENT_PATTERNS = _compile(
    r"^/[a-z0-9-]+$", r"^/[a-z0-9-]+/[a-z0-9-]+$", r"/index$", r"/home$", r"/main$",
    r"/overview$", r"/introduction$", r"/intro$", r"/summary$", r"/details$",
    r"/info$", r"/about/",
)


# --------------------------------------------------------------------------- #
# Predicates                                                                  #
# --------------------------------------------------------------------------- #


def _foreign_host(u: UrlView, _: FilterConfig) -> bool:
    return not u.hostname or not u.site_hostname or u.hostname != u.site_hostname


def _localization(u: UrlView, _: FilterConfig) -> bool:
    return bool(u.param_names & LOCALIZATION_PARAMS)


def _auth(u: UrlView, _: FilterConfig) -> bool:
    return _any(AUTH_PATTERNS, u.path) and not _any(AUTH_DOC_PATTERNS, u.path)


def _technical_resource(u: UrlView, f: FilterConfig) -> bool:
    path = u.path.lower()
    return _any(TECHNICAL_PATTERNS, path) or path.endswith(tuple(f.extensions_to_avoid))


def _non_content(u: UrlView, _: FilterConfig) -> bool:
    return _any(NON_CONTENT_PATTERNS, u.path)


def _too_many_params(u: UrlView, f: FilterConfig) -> bool:
    return len(u.params) > f.max_query_params


def _tracking(u: UrlView, _: FilterConfig) -> bool:
    return _any(TRACKING_PATTERNS, u.path) or bool(u.param_names & TRACKING_QUERY_PARAMS)


def _view_params(u: UrlView, _: FilterConfig) -> bool:
    return bool(u.param_names & VIEW_PARAMS)


def _keyword_miss(u: UrlView, f: FilterConfig) -> bool:
    if not f.keywords:
        return False
    lowered = u.raw.lower()
    return not any(k.lower() in lowered for k in f.keywords)


def _documentation(u: UrlView, _: FilterConfig) -> bool:
    return _any(DOC_PATTERNS, u.path)


def _content(u: UrlView, _: FilterConfig) -> bool:
    return _any(CONTENT_PATTERNS, u.path)


def _short_path(u: UrlView, _: FilterConfig) -> bool:
    return len(u.segments) <= 3 and not u.query


def _main_content(u: UrlView, _: FilterConfig) -> bool:
    return _any(MAIN_CONTENT_PATTERNS, u.path)


def _reasonable_length(u: UrlView, f: FilterConfig) -> bool:
    return len(u.raw) < f.max_url_length and len(u.segments) <= f.max_path_segments


def _always(_u: UrlView, _f: FilterConfig) -> bool:
    return True


DEFAULT_RULES: tuple[Rule, ...] = (
    Rule("foreign_host", REJECT, _foreign_host),
    Rule("localization", REJECT, _localization),
    Rule("auth", REJECT, _auth),
    Rule("technical_resource", REJECT, _technical_resource),
    Rule("non_content", REJECT, _non_content),
    Rule("too_many_params", REJECT, _too_many_params),
    Rule("tracking", REJECT, _tracking),
    Rule("view_params", REJECT, _view_params),
    Rule("keyword_gate", REJECT, _keyword_miss),
    Rule("documentation", ADMIT, _documentation),
    Rule("content", ADMIT, _content),
    Rule("short_path", ADMIT, _short_path),
    Rule("main_content", ADMIT, _main_content),
    Rule("reasonable_length", ADMIT, _reasonable_length),
    Rule("default_deny", REJECT, _always),
)


# --------------------------------------------------------------------------- #
# Classifier                                                                  #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class UrlClassifier:
    """Applies an ordered rule chain to URLs of one crawl."""

    site: SiteContext
    filters: FilterConfig = field(default_factory=FilterConfig)
    rules: tuple[Rule, ...] = DEFAULT_RULES

    def classify(self, url: str) -> Decision:
        try:
            view = UrlView.parse(url, self.site)
            for rule in self.rules:
                if rule.predicate(view, self.filters):
                    verdict = "INCLUDE" if rule.verdict else "SKIP"
                    logger.debug("[SMART_FILTER] %s (%s): %s", verdict, rule.name, url)
                    return Decision(rule.verdict, rule.name)
        except Exception as exc:
            logger.debug("[SMART_FILTER] ERROR - failed to evaluate %r: %s", url, exc)
            return Decision(REJECT, "error")
        return Decision(REJECT, "default_deny")

    def is_admissible(self, url: str) -> bool:
        return self.classify(url).admitted


def is_admissible(url: str, site: SiteContext, filters: FilterConfig) -> bool:
    """Functional shortcut for one-off checks."""
    return UrlClassifier(site, filters).is_admissible(url)
