#!/usr/bin/env python3
"""
Точка входа для запуска DocScout через командную строку.

Команды:
  run       Обойти документацию сайта, начиная со START_URL
  config    Показать текущую конфигурацию
  state     Сохранённое состояние обхода по хостам

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда run опции:
  --max-depth INT     Максимальная глубина обхода
  --max-concurrent N  Число одновременно загружаемых страниц
  --timeout-ms MS     Таймаут загрузки одной страницы
  --output-dir DIR    Каталог для результатов запусков
  --fresh             Игнорировать и удалить сохранённое состояние хоста
  --json              Напечатать сводку в JSON

Пример:
  doc_scout run https://docs.example.com api reference --max-depth 3
"""
import json
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from doc_scout import __version__
from doc_scout.config import CrawlConfig, load_config
from doc_scout.crawler.fetcher import RendererStartupError
from doc_scout.engine import OutputPathError, start_crawl
from doc_scout.keywords import KeywordValidationError
from doc_scout.logger import init_logging, quiet_console
from doc_scout.persistence import UrlLedger
from doc_scout.utils import InvalidUrlError, is_absolute_http_url

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='DocScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд DocScout CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('run', context_settings=CONTEXT_SETTINGS)
@click.argument('start_url')
@click.argument('keywords', nargs=-1)
@click.option('--max-depth', 'max_depth', type=click.IntRange(min=0), default=None,
              help='Максимальная глубина обхода')
@click.option('--max-concurrent', 'max_concurrent', type=click.IntRange(min=1), default=None,
              help='Число одновременно загружаемых страниц')
@click.option('--timeout-ms', 'timeout_ms', type=click.IntRange(min=1), default=None,
              help='Таймаут загрузки одной страницы (мс)')
@click.option('--output-dir', 'output_dir', default=None,
              type=click.Path(file_okay=False, path_type=Path),
              help='Каталог для результатов запусков')
@click.option('--fresh', is_flag=True, help='Игнорировать и удалить сохранённое состояние хоста')
@click.option('--json', 'as_json', is_flag=True, help='Напечатать сводку в JSON')
@click.pass_context
def run(ctx, start_url, keywords, max_depth, max_concurrent, timeout_ms, output_dir, fresh, as_json):
    """Обойти документацию сайта начиная со START_URL.

    KEYWORDS - необязательный список ключевых слов (OR): в очередь попадают
    только URL, содержащие хотя бы одно из них.
    """
    if not is_absolute_http_url(start_url):
        raise click.BadParameter(
            f'{start_url!r} is not an absolute http(s) URL', param_hint="'START_URL'"
        )

    overrides = {
        'max_depth': max_depth,
        'max_concurrent_pages': max_concurrent,
        'navigation_timeout_ms': timeout_ms,
        'output_dir': output_dir,
    }
    cfg = ctx.obj['config']
    try:
        cfg = CrawlConfig.model_validate(
            {**cfg.model_dump(), **{k: v for k, v in overrides.items() if v is not None}}
        )
    except ValidationError as e:
        print_error(f'Некорректные параметры: {e}')

    if as_json:
        quiet_console()

    try:
        summary = start_crawl(start_url, list(keywords), cfg, fresh=fresh)
    except InvalidUrlError as e:
        raise click.BadParameter(str(e), param_hint="'START_URL'")
    except KeywordValidationError as e:
        raise click.BadParameter(str(e), param_hint="'KEYWORDS'")
    except (OutputPathError, RendererStartupError) as e:
        print_error(f'Ошибка запуска: {e}')
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    if as_json:
        click.echo(summary.json(pretty=True))
        return

    click.echo(f'Unique URLs discovered: {summary.unique_count}')
    click.echo(f'Visited URLs: {summary.visited_count}')
    click.echo(f'Saved URLs: {summary.saved_count}')
    if summary.inclusion_rate is not None:
        click.echo(f'Inclusion rate: {summary.inclusion_rate:.1f}%')
    if summary.stopped:
        click.secho('Crawl stopped before the frontier was exhausted', fg='yellow')
    click.echo(f'Output folder: {summary.run_dir}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


@cli.command('state', context_settings=CONTEXT_SETTINGS)
@click.argument('hostname', required=False)
@click.option('--clear', is_flag=True, help='Удалить сохранённое состояние HOSTNAME')
@click.pass_context
def state(ctx, hostname, clear):
    """Показать (или удалить) сохранённое состояние обхода."""
    ledger = UrlLedger(ctx.obj['config'].persistence_dir)
    if clear:
        if not hostname:
            raise click.UsageError('--clear requires HOSTNAME')
        if ledger.clear(hostname):
            click.echo(f'Cleared saved state for {hostname}')
        else:
            click.echo(f'No saved state for {hostname}')
        return

    if hostname:
        quiet_console()
        if not ledger.has_existing_data(hostname):
            click.echo(f'No saved state for {hostname}')
            return
        click.echo(json.dumps(ledger.hostname_stats(hostname), ensure_ascii=False, indent=2))
        return

    names = ledger.list_hostnames()
    if not names:
        click.echo('No saved crawl state')
        return
    for name in names:
        stats = ledger.hostname_stats(name)
        click.echo(
            f"{name}: {stats['processed']} processed, {stats['visited']} visited, "
            f"{stats['pending']} pending (updated {stats['last_updated'] or 'never'})"
        )


if __name__ == "__main__":
    cli()
