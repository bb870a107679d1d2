"""CLI interface for Pagestage.

Command-line tool for building static pages from templates and Markdown.
"""

import logging
import sys
from pathlib import Path

import click

from pagestage.config import Config
from pagestage.core.bundler import build_site
from pagestage.core.errors import PagestageError
from pagestage.core.pages import describe_pages


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_config(config_path: Path | None) -> Config:
    try:
        return Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: auto-discover pagestage.toml)",
)

verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)


@click.group()
def cli() -> None:
    """Pagestage - static pages from templates and Markdown."""


@cli.command()
@config_option
@click.option(
    "--site-url",
    default=None,
    help="Base URL for canonical links (overrides SITE_URL and config)",
)
@click.option(
    "--cdn-url",
    default=None,
    help="Public asset path prefix (overrides CDN_URL and config)",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Build output directory (overrides config)",
)
@click.option(
    "--cache/--no-cache",
    default=None,
    help="Enable/disable incremental builds (overrides config, default: enabled)",
)
@verbose_option
def build(
    config_path: Path | None,
    site_url: str | None,
    cdn_url: str | None,
    output_dir: Path | None,
    cache: bool | None,
    verbose: bool,
) -> None:
    """Build all pages into the output directory."""
    _setup_logging(verbose)
    config = _load_config(config_path).with_overrides(
        site_url=site_url,
        cdn_url=cdn_url,
        output_dir=output_dir,
        cache_enabled=cache,
    )

    click.echo(f"Pages directory: {config.pages.source_dir}")
    click.echo(f"Site URL: {config.site.url}")

    try:
        result = build_site(config)
    except (PagestageError, FileNotFoundError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(
        click.style(
            f"\nBuilt {len(result.pages)} pages into {config.pages.output_dir}",
            fg="green",
            bold=True,
        ),
    )
    click.echo(f"Written: {len(result.report.written)}")
    click.echo(f"Up to date: {len(result.report.skipped)}")


@cli.command()
@config_option
@click.option(
    "--site-url",
    default=None,
    help="Base URL for canonical links (overrides SITE_URL and config)",
)
def pages(config_path: Path | None, site_url: str | None) -> None:
    """List pages with their output paths and URLs."""
    config = _load_config(config_path).with_overrides(site_url=site_url)

    try:
        descriptors = describe_pages(config)
    except (PagestageError, FileNotFoundError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    for descriptor in descriptors:
        source = descriptor.source_path.relative_to(config.pages.source_dir)
        click.echo(f"{source} -> {descriptor.relative_output_path} ({descriptor.public_url})")


@cli.command()
@config_option
@click.option(
    "--host",
    default=None,
    help="Host to bind to (overrides config)",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (overrides config)",
)
@click.option(
    "--live-reload/--no-live-reload",
    default=None,
    help="Enable/disable live reload (overrides config, default: enabled)",
)
@verbose_option
def serve(
    config_path: Path | None,
    host: str | None,
    port: int | None,
    live_reload: bool | None,
    verbose: bool,
) -> None:
    """Build the site and serve the output directory."""
    from pagestage.server import run_server

    _setup_logging(verbose)
    config = _load_config(config_path).with_overrides(
        host=host,
        port=port,
        live_reload_enabled=live_reload,
    )

    try:
        result = build_site(config)
    except (PagestageError, FileNotFoundError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Built {len(result.pages)} pages into {config.pages.output_dir}")
    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    if config.live_reload.enabled:
        click.echo("Live reload: enabled")
    else:
        click.echo("Live reload: disabled")

    run_server(config)
