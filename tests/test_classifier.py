# File: tests/test_classifier.py
import pytest

from doc_scout.classifier import (
    DEFAULT_RULES,
    FilterConfig,
    Rule,
    SiteContext,
    UrlClassifier,
    is_admissible,
)
from doc_scout.config import CrawlConfig

SITE = SiteContext("https://x.com")


@pytest.fixture()
def classifier() -> UrlClassifier:
    return UrlClassifier(SITE, FilterConfig())


@pytest.mark.parametrize(
    "url,rule",
    [
        ("https://other.com/docs/a", "foreign_host"),
        ("https://x.com/docs/a?hl=fr", "localization"),
        ("https://x.com/docs/a?lang=de", "localization"),
        ("https://x.com/login", "auth"),
        ("https://x.com/account/settings", "auth"),
        ("https://x.com/style.css", "technical_resource"),
        ("https://x.com/static/app.js?v=3", "technical_resource"),
        ("https://x.com/robots.txt", "technical_resource"),
        ("https://x.com/media/clip.mp4", "technical_resource"),
        ("https://x.com/about", "non_content"),
        ("https://x.com/privacy", "non_content"),
        ("https://x.com/help", "non_content"),
        ("https://x.com/a?p1=1&p2=2&p3=3&p4=4&p5=5&p6=6", "too_many_params"),
        ("https://x.com/share/post", "tracking"),
        ("https://x.com/docs/a?session=abc", "tracking"),
        ("https://x.com/docs/a?sort=asc", "view_params"),
        ("https://x.com/docs/a?page=2", "view_params"),
    ],
)
def test_rejection_rules(classifier, url, rule):
    decision = classifier.classify(url)
    assert not decision
    assert decision.rule == rule


@pytest.mark.parametrize(
    "url,rule",
    [
        ("https://x.com/docs/getting-started", "documentation"),
        ("https://x.com/guides/auth/oauth", "documentation"),
        ("https://x.com/help/billing", "documentation"),
        ("https://x.com/blog/new-release", "content"),
        ("https://x.com", "short_path"),
        ("https://x.com/pricing/plans/enterprise", "short_path"),
        ("https://x.com/a-page?q=1", "main_content"),
        ("https://x.com/one/two/three/four?q=1", "reasonable_length"),
    ],
)
def test_admission_rules(classifier, url, rule):
    decision = classifier.classify(url)
    assert decision
    assert decision.rule == rule


def test_default_deny(classifier):
    url = "https://x.com/a/b/c/d/e/f"
    decision = classifier.classify(url)
    assert not decision
    assert decision.rule == "default_deny"


def test_auth_documentation_exception(classifier):
    assert classifier.is_admissible("https://x.com/docs/authentication/login")
    assert not classifier.is_admissible("https://x.com/login")


def test_keyword_gate():
    filters = FilterConfig(keywords=("api",))
    classifier = UrlClassifier(SITE, filters)

    assert classifier.is_admissible("https://x.com/api/ref")
    decision = classifier.classify("https://x.com/pricing")
    assert not decision
    assert decision.rule == "keyword_gate"


def test_keyword_gate_is_case_insensitive():
    classifier = UrlClassifier(SITE, FilterConfig(keywords=("API",)))
    assert classifier.is_admissible("https://x.com/Api/ref")


def test_keyword_gate_after_earlier_rules():
    classifier = UrlClassifier(SITE, FilterConfig(keywords=("api",)))
    assert classifier.classify("https://x.com/about").rule == "non_content"


def test_parse_failure_is_rejection(classifier):
    decision = classifier.classify("https://[broken/docs")
    assert not decision
    assert decision.rule == "error"


def test_extensions_from_config():
    config = CrawlConfig(extensions_to_avoid=["epub"])
    classifier = UrlClassifier(SITE, FilterConfig.from_config(config))
    assert classifier.classify("https://x.com/books/guide.epub").rule == "technical_resource"


def test_admission_is_deterministic(classifier):
    url = "https://x.com/docs/a?q=1"
    assert classifier.classify(url) == classifier.classify(url)
    assert is_admissible(url, SITE, FilterConfig()) == is_admissible(url, SITE, FilterConfig())


def test_custom_rule_chain():
    allow_all = Rule("allow_all", True, lambda view, filters: True)
    classifier = UrlClassifier(SITE, FilterConfig(), rules=(DEFAULT_RULES[0], allow_all))
    assert classifier.classify("https://x.com/login").rule == "allow_all"
    assert classifier.classify("https://y.com/").rule == "foreign_host"


def test_rule_names_are_in_order():
    assert [rule.name for rule in DEFAULT_RULES] == [
        "foreign_host",
        "localization",
        "auth",
        "technical_resource",
        "non_content",
        "too_many_params",
        "tracking",
        "view_params",
        "keyword_gate",
        "documentation",
        "content",
        "short_path",
        "main_content",
        "reasonable_length",
        "default_deny",
    ]
