"""Main CLI entry point for the hierarchy sitemap builder."""

import asyncio
import json
import logging
import sys
from typing import List, Optional

import click
import yaml

from .config import get_config_from_env, validate_config
from .exceptions import ConfigError
from .record_source import Record
from .record_store import RecordStore
from .server import create_builder, run_server
from .sitemap_writer import SitemapWriter
from .types import AppConfig, Link
from .utils import format_number, setup_logging

logger = logging.getLogger(__name__)


def common_options(func):
    """Options shared by every command, defaulting to the environment."""
    env = get_config_from_env()
    options = [
        click.option('--base-url', default=env.base_url, help='Site base URL', show_default=True),
        click.option('--definition', 'definition_path', default=env.definition_path,
                     help='Sitemap definition file (YAML or JSON)', show_default=True),
        click.option('--database-path', default=env.database_path, help='SQLite record store path',
                     show_default=True),
        click.option('--locales', default=','.join(env.locales), help='Comma-separated available locales',
                     show_default=True),
        click.option('--default-locale', default=None,
                     help='Default locale (SITEMAP_DEFAULT_LOCALE, else the first locale)'),
        click.option('--hierarchical-types', default=','.join(env.hierarchical_types),
                     help='Comma-separated record types filtered by their parent record'),
        click.option('--cache-size', default=env.cache_size, type=int,
                     help='Presentation contexts cached per build', show_default=True),
        click.option('--sitemap', 'sitemap_ident', default=env.sitemap_ident, help='Sitemap identifier',
                     show_default=True),
        click.option('--log-level', default='INFO', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
                     help='Logging level', show_default=True),
        click.option('--log-file', help='Log file path (optional)', type=click.Path()),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def make_config(
    base_url: str,
    definition_path: Optional[str],
    database_path: str,
    locales: str,
    default_locale: Optional[str],
    hierarchical_types: str,
    sitemap_ident: str,
    **overrides,
) -> AppConfig:
    locale_list = [locale.strip() for locale in locales.split(',') if locale.strip()]
    if not default_locale:
        env_locale = get_config_from_env().default_locale
        default_locale = env_locale if env_locale in locale_list else (locale_list[0] if locale_list else '')

    config = AppConfig(
        base_url=base_url,
        definition_path=definition_path,
        database_path=database_path,
        hierarchical_types=[t.strip() for t in hierarchical_types.split(',') if t.strip()],
        locales=locale_list,
        default_locale=default_locale,
        sitemap_ident=sitemap_ident,
        **overrides,
    )
    validate_config(config)
    return config


def run_command(log_level: str, action) -> None:
    """Run a command body with the CLI's error handling."""
    try:
        action()
    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        sys.exit(130)  # Standard exit code for SIGINT
    except (ConfigError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        if log_level == 'DEBUG':
            import traceback
            traceback.print_exc()
        sys.exit(1)


@click.group()
def main() -> None:
    """
    Hierarchy sitemap builder - localized sitemaps from a content hierarchy.

    Builds sitemaps.org XML with hreflang alternates from a declarative
    definition of record types and their children.
    """


@main.command()
@common_options
@click.option('--output', type=click.Path(), help='Write the sitemap to this file instead of stdout')
def build(log_level: str, log_file: Optional[str], output: Optional[str], **options) -> None:
    """Build a sitemap once."""
    setup_logging(log_level, log_file)

    def action() -> None:
        config = make_config(**options)
        if not config.definition_path:
            raise ConfigError("A sitemap definition is required")

        forest = asyncio.run(build_sitemap(config))
        writer = SitemapWriter(config.base_url)

        if output:
            if writer.write(forest, output) is None:
                raise RuntimeError("Sitemap could not be serialized")
            print_summary(writer, output)
            return

        xml = writer.to_xml(forest)
        if xml is None:
            raise RuntimeError("Sitemap could not be serialized")
        click.echo(xml, nl=False)

    run_command(log_level, action)


@main.command()
@common_options
@click.option('--host', default=get_config_from_env().host, help='Bind address', show_default=True)
@click.option('--port', default=get_config_from_env().port, type=int, help='Bind port', show_default=True)
def serve(log_level: str, log_file: Optional[str], **options) -> None:
    """Serve /sitemap.xml over HTTP."""
    setup_logging(log_level, log_file)
    run_command(log_level, lambda: run_server(make_config(**options)))


@main.command('import-records')
@common_options
@click.argument('records_file', type=click.Path(exists=True))
@click.option('--clean', is_flag=True, help='Clean the record store before importing')
def import_records(log_level: str, log_file: Optional[str], records_file: str, clean: bool, **options) -> None:
    """Load records from a YAML or JSON file into the record store."""
    setup_logging(log_level, log_file)

    def action() -> None:
        config = make_config(**options)
        records = read_records(records_file)
        count = asyncio.run(store_records(config, records, clean))
        click.echo(f"Imported {format_number(count)} records into {config.database_path}")

    run_command(log_level, action)


async def build_sitemap(config: AppConfig) -> List[List[Link]]:
    """Build a sitemap's link forest from the record store."""
    store = RecordStore(config.database_path, config.hierarchical_types)
    await store.initialize()

    try:
        builder = create_builder(config, store)
        return await builder.build(config.sitemap_ident)
    finally:
        await store.close()


async def store_records(config: AppConfig, records: List[Record], clean: bool = False) -> int:
    store = RecordStore(config.database_path, config.hierarchical_types)
    await store.initialize()

    try:
        if clean:
            await store.reset_database()
        return await store.add_records_batch(records)
    finally:
        await store.close()


def read_records(path: str) -> List[Record]:
    """Read records from a YAML or JSON list."""
    with open(path, 'r', encoding='utf-8') as f:
        raw = json.load(f) if path.endswith('.json') else yaml.safe_load(f)

    if isinstance(raw, dict):
        raw = raw.get('records', [])

    if not isinstance(raw, list):
        raise ConfigError(f"Records file {path} must contain a list of records")

    return [Record.from_mapping(item) for item in raw]


def print_summary(writer: SitemapWriter, output: str) -> None:
    """Print a summary of a written sitemap file."""
    with open(output, 'r', encoding='utf-8') as f:
        xml = f.read()

    stats = writer.get_sitemap_stats(xml)

    click.echo("\n" + "=" * 70)
    click.echo("SITEMAP SUMMARY")
    click.echo("=" * 70)
    click.echo(f"Output: {output}")
    click.echo(f"URLs: {format_number(stats.total_urls)}")
    click.echo(f"Alternates: {format_number(stats.total_alternates)}")
    click.echo(f"With lastmod: {format_number(stats.has_lastmod)}")
    click.echo(f"With priority: {format_number(stats.has_priority)}")
    for lang, count in sorted(stats.hreflang_distribution.items()):
        click.echo(f"  • {lang}: {format_number(count)}")
    click.echo(f"Valid: {'yes' if writer.validate_sitemap(xml) else 'no'}")
    click.echo("=" * 70)


if __name__ == '__main__':
    main()
