# File: tests/test_cli.py
"""Тесты для CLI (`doc_scout/cli.py`) с использованием click.testing.CliRunner.
Проверяют команды `run`, `config`, `state`, `--version`, а также обработку ошибок.
"""
import json

import pytest
from click.testing import CliRunner

import doc_scout.cli as cli_module
import doc_scout.engine as engine_module
from doc_scout.aggregator import CrawlSummary
from doc_scout.cli import cli
from doc_scout.engine import OutputPathError
from doc_scout.persistence import UrlLedger
from fakes import FakeGateway, page


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Без configs/default.yaml в рабочем каталоге используются значения по умолчанию."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def calls(monkeypatch):
    """Патчим start_crawl: запоминаем аргументы и возвращаем готовую сводку."""
    seen = []

    def fake_start(start_url, keywords, cfg, *, fresh=False):
        seen.append({"start_url": start_url, "keywords": keywords, "config": cfg, "fresh": fresh})
        return CrawlSummary(
            hostname="docs.example.com",
            seed="https://docs.example.com",
            run_dir=str(cfg.output_dir / "docs_example_com_1"),
            unique_count=12,
            visited_count=10,
            rendered_count=8,
            saved_count=6,
            keywords=list(keywords),
            inclusion_rate=75.0 if keywords else None,
        )

    monkeypatch.setattr(cli_module, "start_crawl", fake_start)
    return seen


@pytest.fixture
def cfg_file(tmp_path):
    path = tmp_path / "crawl.json"
    path.write_text(
        json.dumps({"persistence_dir": str(tmp_path / "state"), "max_depth": 4}),
        encoding="utf-8",
    )
    return path


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "DocScout" in result.output


def test_show_config(cfg_file):
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["max_depth"] == 4
    assert data["max_concurrent_pages"] == 7


def test_broken_config_exits(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("max_depth: -5\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(bad), "config"])
    assert result.exit_code == 1


def test_run_prints_summary(calls):
    runner = CliRunner()
    result = runner.invoke(cli, ["run", "https://docs.example.com"])
    assert result.exit_code == 0
    assert "Unique URLs discovered: 12" in result.output
    assert "Visited URLs: 10" in result.output
    assert "Saved URLs: 6" in result.output
    assert "Inclusion rate" not in result.output
    assert "Output folder:" in result.output
    assert calls[0]["keywords"] == []
    assert calls[0]["fresh"] is False


def test_run_with_keywords_and_json(calls):
    runner = CliRunner()
    result = runner.invoke(cli, ["run", "https://docs.example.com", "api", "guide", "--json", "--fresh"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["keywords"] == ["api", "guide"]
    assert data["inclusion_rate"] == 75.0
    assert calls[0]["fresh"] is True


def test_run_overrides_reach_config(calls, cfg_file, tmp_path):
    runner = CliRunner()
    result = runner.invoke(
        cli,
        [
            "--config", str(cfg_file), "run", "https://docs.example.com",
            "--max-depth", "2", "--max-concurrent", "3", "--timeout-ms", "1500",
            "--output-dir", str(tmp_path / "runs"),
        ],
    )
    assert result.exit_code == 0
    cfg = calls[0]["config"]
    assert cfg.max_depth == 2
    assert cfg.max_concurrent_pages == 3
    assert cfg.navigation_timeout_ms == 1500
    assert cfg.output_dir == tmp_path / "runs"
    assert cfg.persistence_dir == tmp_path / "state"


@pytest.mark.parametrize("url", ["docs.example.com", "ftp://docs.example.com/", "https://"])
def test_run_rejects_bad_url(calls, url):
    runner = CliRunner()
    result = runner.invoke(cli, ["run", url])
    assert result.exit_code == 2
    assert "START_URL" in result.output
    assert calls == []


def test_run_output_path_error(monkeypatch):
    def failing(*args, **kwargs):
        raise OutputPathError("Cannot use output directory /readonly")

    monkeypatch.setattr(cli_module, "start_crawl", failing)
    runner = CliRunner()
    result = runner.invoke(cli, ["run", "https://docs.example.com"])
    assert result.exit_code == 1
    assert "/readonly" in result.output


def test_state_list_show_and_clear(cfg_file, tmp_path):
    ledger = UrlLedger(tmp_path / "state")
    ledger.save("docs.example.com", {"https://docs.example.com", "https://docs.example.com/a"},
                {"https://docs.example.com"}, 1)
    runner = CliRunner()

    listed = runner.invoke(cli, ["--config", str(cfg_file), "state"])
    assert listed.exit_code == 0
    assert "docs.example.com: 2 processed, 1 visited, 1 pending" in listed.output

    shown = runner.invoke(cli, ["--config", str(cfg_file), "state", "docs.example.com"])
    assert shown.exit_code == 0
    assert json.loads(shown.stdout)["pending"] == 1

    cleared = runner.invoke(cli, ["--config", str(cfg_file), "state", "docs.example.com", "--clear"])
    assert cleared.exit_code == 0
    assert "Cleared saved state" in cleared.output

    empty = runner.invoke(cli, ["--config", str(cfg_file), "state"])
    assert "No saved crawl state" in empty.output


def test_state_clear_requires_hostname(cfg_file):
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "state", "--clear"])
    assert result.exit_code == 2


def test_run_json_is_not_mixed_with_logs(monkeypatch, tmp_path):
    docs = "https://docs.example.com"
    guide = f"{docs}/guide/intro"
    gateway = FakeGateway({docs: page(docs, guide), guide: page(guide)})
    monkeypatch.setattr(engine_module, "HttpRenderGateway", lambda cfg: gateway)

    runner = CliRunner()
    result = runner.invoke(cli, ["run", docs, "--json", "--output-dir", str(tmp_path / "runs")])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["saved_count"] == 2
    [log_file] = (tmp_path / "runs").glob("*/*.log")
    assert "Starting crawl for" in log_file.read_text(encoding="utf-8")


def test_state_unknown_host(cfg_file):
    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "state", "nowhere.example.com"])
    assert result.exit_code == 0
    assert "No saved state for nowhere.example.com" in result.output
