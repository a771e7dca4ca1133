# File: tests/test_engine.py
"""End-to-end tests for run directories, reports and continuation."""
from __future__ import annotations

import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import web

import doc_scout.engine as engine_module
from doc_scout.engine import Engine, OutputPathError, prepare_run_dir, run_crawl
from doc_scout.persistence import UrlLedger
from doc_scout.utils import InvalidUrlError
from fakes import FakeGateway, page

DOCS = "https://docs.example.com"


def site_gateway() -> FakeGateway:
    a, b = f"{DOCS}/guide/a", f"{DOCS}/guide/b"
    return FakeGateway(
        {
            DOCS: page(DOCS, a, f"{DOCS}/login", f"{DOCS}/app.css"),
            a: page(a, b),
            b: page(b, DOCS),
        }
    )


def test_prepare_run_dir(tmp_path):
    run_dir = prepare_run_dir(tmp_path / "out", "docs.example.com", now=1700000000.5)
    assert run_dir.name == "docs_example_com_1700000000500"
    assert run_dir.is_dir()


def test_prepare_run_dir_unwritable(tmp_path):
    blocker = tmp_path / "out"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(OutputPathError):
        prepare_run_dir(blocker, "x.com")


@pytest.mark.asyncio()
async def test_run_crawl_writes_outputs(crawl_config, work_dirs):
    gateway = site_gateway()

    summary = await run_crawl(
        f"{DOCS}/", [], crawl_config, gateway_factory=lambda cfg: gateway, now=1700000000.0
    )

    run_dir = work_dirs["output"] / "docs_example_com_1700000000000"
    assert summary.run_dir == str(run_dir)
    assert summary.unique_count == 3
    assert summary.visited_count == 3
    assert summary.saved_count == 3
    assert summary.inclusion_rate is None
    assert summary.rejections == {"auth": 1, "technical_resource": 1}
    assert not summary.stopped
    assert gateway.entered and gateway.closed

    urls = (run_dir / "unique_urls.txt").read_text(encoding="utf-8").splitlines()
    assert sorted(urls) == [DOCS, f"{DOCS}/guide/a", f"{DOCS}/guide/b"]

    data = json.loads((run_dir / "summary.json").read_text(encoding="utf-8"))
    assert data["hostname"] == "docs.example.com"
    assert data["visited_count"] == 3

    html = (run_dir / "summary.html").read_text(encoding="utf-8")
    assert "docs.example.com" in html
    assert "Inclusion rate" not in html

    log_text = (run_dir / "docs_example_com_1700000000000.log").read_text(encoding="utf-8")
    assert "Starting crawl for: https://docs.example.com" in log_text

    record = UrlLedger(work_dirs["persistence"]).load("docs.example.com")
    assert record.visited_urls == {DOCS, f"{DOCS}/guide/a", f"{DOCS}/guide/b"}


@pytest.mark.asyncio()
async def test_run_crawl_continues_and_fresh_restarts(crawl_config, work_dirs):
    ledger = UrlLedger(work_dirs["persistence"])
    ledger.save("docs.example.com", {DOCS, f"{DOCS}/guide/a", f"{DOCS}/guide/b"}, {DOCS}, 1)

    gateway = site_gateway()
    await run_crawl(DOCS, [], crawl_config, gateway_factory=lambda cfg: gateway, now=1.0)
    assert sorted(gateway.calls) == [f"{DOCS}/guide/a", f"{DOCS}/guide/b"]
    assert UrlLedger(work_dirs["persistence"]).load("docs.example.com").total_processed == 3

    again = site_gateway()
    await run_crawl(DOCS, [], crawl_config, gateway_factory=lambda cfg: again, now=2.0)
    assert again.calls == []

    fresh = site_gateway()
    await run_crawl(DOCS, [], crawl_config, fresh=True, gateway_factory=lambda cfg: fresh, now=3.0)
    assert fresh.calls[0] == DOCS
    assert len(fresh.calls) == 3


@pytest.mark.asyncio()
async def test_run_crawl_with_keywords(crawl_config):
    seed = f"{DOCS}/guide"
    a, ref = f"{seed}/a", f"{DOCS}/reference/x"
    gateway = FakeGateway({seed: page(seed, a, ref), a: page(a), ref: page(ref)})

    summary = await run_crawl(seed, ["Guide"], crawl_config, gateway_factory=lambda cfg: gateway)

    assert summary.keywords == ["guide"]
    assert ref not in gateway.calls
    assert summary.rejections == {"keyword_gate": 1}
    assert summary.saved_count == 2
    assert summary.inclusion_rate == 100.0


@pytest.mark.asyncio()
@pytest.mark.parametrize("seed", ["docs.example.com", "ftp://docs.example.com", "not a url"])
async def test_run_crawl_rejects_bad_seed(crawl_config, seed):
    with pytest.raises(InvalidUrlError):
        await run_crawl(seed, [], crawl_config, gateway_factory=lambda cfg: FakeGateway())


def test_engine_facade(crawl_config, monkeypatch):
    gateway = site_gateway()
    monkeypatch.setattr(engine_module, "HttpRenderGateway", lambda cfg: gateway)

    summary = Engine(crawl_config).start(DOCS)

    assert summary.visited_count == 3
    assert gateway.closed


# --------------------------------------------------------------------------- #
#                       Full run against a local HTTP server                   #
# --------------------------------------------------------------------------- #

FILLER = "<p>" + "Reference material for the local test site. " * 5 + "</p>"


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def docs_site(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()

    def make_handler(title: str, body: str):
        async def handler(_):
            html = f"<html><head><title>{title}</title></head><body>{body}{FILLER}</body></html>"
            return web.Response(text=html, content_type="text/html")

        return handler

    app.router.add_get("/", make_handler("Docs home", '<a href="/docs/start">Start</a><a href="/login">Login</a>'))
    app.router.add_get("/docs/start", make_handler("Getting started", '<a href="/docs/next">Next</a>'))
    app.router.add_get("/docs/next", make_handler("Next steps", '<a href="/docs/missing">Missing</a>'))

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest.mark.slow
@pytest.mark.asyncio()
async def test_full_run_over_http(crawl_config, work_dirs, docs_site):
    summary = await run_crawl(docs_site, [], crawl_config)

    assert summary.saved_count == 3
    assert summary.failures == {"HTTP_ERROR": 1}
    assert summary.rejections == {"auth": 1}
    urls = Path(summary.urls_file).read_text(encoding="utf-8")
    assert f"{docs_site}/docs/start" in urls.splitlines()
