# doc_scout/report/json_report.py

"""
Сохранение сводки обхода DocScout в JSON.
"""
import json
from pathlib import Path

from doc_scout.aggregator import CrawlSummary


def render_json(summary: CrawlSummary, output_path: Path | str) -> Path:
    """
    Сохраняет summary в формате JSON по указанному пути.

    :param summary: объект CrawlSummary
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(summary.to_dict(), f, ensure_ascii=False, indent=2)

    return output
