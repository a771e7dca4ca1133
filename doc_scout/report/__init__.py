# File: doc_scout/report/__init__.py
"""doc_scout.report: файл принятых URL и сводки запуска (JSON и HTML)."""

from doc_scout.report.html_report import render_html
from doc_scout.report.json_report import render_json
from doc_scout.report.sink import UrlSink

__all__ = ["render_json", "render_html", "UrlSink"]
