# File: tests/conftest.py
from pathlib import Path

import pytest

from doc_scout.config import CrawlConfig


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


@pytest.fixture()
def work_dirs(tmp_path) -> dict[str, Path]:
    """Temporary output and persistence directories."""
    return {"output": tmp_path / "output", "persistence": tmp_path / "persistence"}


@pytest.fixture()
def crawl_config(work_dirs) -> CrawlConfig:
    """
    Return a small, fast CrawlConfig for scheduler and engine tests.
    """
    return CrawlConfig(
        max_concurrent_pages=2,
        max_depth=3,
        navigation_timeout_ms=2000,
        poll_interval=0.01,
        snapshot_every=2,
        user_agent="TestAgent/1.0",
        output_dir=work_dirs["output"],
        persistence_dir=work_dirs["persistence"],
    )
