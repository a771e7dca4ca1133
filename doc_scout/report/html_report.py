# File: doc_scout/report/html_report.py
"""doc_scout.report.html_report: HTML-сводка обхода через Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from doc_scout.aggregator import CrawlSummary

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
TEMPLATE_NAME = "summary.html.j2"


def render_html(
    summary: CrawlSummary,
    output_path: Union[Path, str],
    template_dir: Union[Path, str, None] = None,
) -> Path:
    """Рендерит HTML-сводку из шаблона и сохраняет её по указанному пути.

    Args:
        summary: объект CrawlSummary.
        output_path: путь к итоговому HTML-файлу.
        template_dir: директория с шаблоном ``summary.html.j2``
            (по умолчанию - шаблон из пакета).

    Returns:
        Path до сохранённого HTML-файла.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "xml", "html.j2"]),
    )
    template = env.get_template(TEMPLATE_NAME)

    context: dict[str, Any] = {"summary": summary, **summary.to_dict()}
    output_path.write_text(template.render(**context), encoding="utf-8")

    return output_path
