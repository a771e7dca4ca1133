# File: tests/test_utils.py
import pytest

from doc_scout.utils import (
    canonicalize,
    clean_url,
    extract_hostname,
    is_absolute_http_url,
    normalize_url,
    resolve_absolute_url,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://Docs.Example.com/Guide/", "https://docs.example.com/Guide"),
        ("docs.example.com/guide", "https://docs.example.com/guide"),
        ("  https://example.com/a//  ", "https://example.com/a"),
        ("https://example.com:443/a", "https://example.com/a"),
        ("http://example.com:80/a", "http://example.com/a"),
        ("http://example.com:8080/a", "http://example.com:8080/a"),
        ("https://example.com/a#section", "https://example.com/a"),
        ("https://example.com/a b", "https://example.com/a%20b"),
        ("https://example.com/a?q=1", "https://example.com/a?q=1"),
        ("https://example.com/", "https://example.com"),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "javascript:void(0)", "mailto:a@b.c", "tel:123", "#top", "ftp://example.com/x", "https://"],
)
def test_normalize_url_rejects(raw):
    assert normalize_url(raw) is None


def test_clean_url_removes_tracking_params():
    url = "https://x.com/a?utm_source=y&id=3&fbclid=abc&UTM_Medium=mail"
    assert clean_url(url) == "https://x.com/a?id=3"


def test_clean_url_keeps_blank_values():
    assert clean_url("https://x.com/a?flag=&ref=home") == "https://x.com/a?flag="


def test_tracking_parameter_invariance():
    assert canonicalize("https://x.com/a?utm_source=y") == canonicalize("https://x.com/a")


@pytest.mark.parametrize(
    "raw",
    [
        "https://Example.com/Docs/Intro/",
        "example.com/a b/?utm_campaign=x&q=hello world",
        "http://example.com:8080/path/?b=2&a=1#frag",
        "https://example.com/a?x=%2F&y=a+b",
        "https://[::1]:8443/v1/",
    ],
)
def test_canonicalize_idempotent(raw):
    once = canonicalize(raw)
    assert once is not None
    assert canonicalize(once) == once


def test_canonicalize_invalid():
    assert canonicalize("javascript:alert(1)") is None


def test_extract_hostname():
    assert extract_hostname("https://docs.example.com/a") == "docs.example.com"
    assert extract_hostname("not a url") is None


def test_resolve_absolute_url():
    assert resolve_absolute_url("../b", "https://x.com/docs/a/") == "https://x.com/docs/b"
    assert resolve_absolute_url("/c", "https://x.com/docs/a") == "https://x.com/c"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://example.com", True),
        ("http://example.com/docs", True),
        ("example.com", False),
        ("ftp://example.com", False),
        ("not a url", False),
    ],
)
def test_is_absolute_http_url(raw, expected):
    assert is_absolute_http_url(raw) is expected
