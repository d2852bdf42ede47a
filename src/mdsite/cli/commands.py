"""CLI command implementations"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from mdsite.config import Settings, load_config
from mdsite.core.pipeline import plan_site, run_build
from mdsite.errors import BuildError


def _fail(msg: str, cause: Exception = None) -> None:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(overrides=overrides)
    except ValueError as e:
        _fail(str(e))


def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    ):
    """Static site builder for Markdown blogs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def build_cmd(
    source: Annotated[Path, typer.Argument(help="Source directory")],
    output: Annotated[Optional[Path], typer.Argument(help="Output directory (default: output_dir setting)")] = None,
    site_url: Annotated[Optional[str], typer.Option("--site-url", help="Absolute base URL of the site")] = None,
    url_style: Annotated[Optional[str], typer.Option("--url-style", help="pretty or plain")] = None,
    workers: Annotated[Optional[int], typer.Option("--workers", help="Render threads")] = None,
    clean: Annotated[Optional[bool], typer.Option("--clean/--no-clean", help="Remove output dir before writing")] = None,
    ):
    """Render SOURCE into OUTPUT: documents, tag pages, archive, feed and sitemap."""
    settings = _settings(overrides={
        "site_url": site_url, "url_style": url_style, "workers": workers, "clean": clean,
    })
    out_dir = output or Path(settings.output_dir)
    try:
        result = run_build(source, out_dir, settings)
    except BuildError as e:
        _fail(str(e))
    except OSError as e:
        _fail("Build failed", e)

    for page in result.pages:
        typer.echo(f"  {page.route.source} -> {page.route.output_path}")
    typer.echo(
        f"Built {len(result.pages)} page(s), {len(result.listings)} listing(s), "
        f"{len(result.static)} static file(s) to {out_dir}/"
    )


def routes_cmd(
    source: Annotated[Path, typer.Argument(help="Source directory")],
    url_style: Annotated[Optional[str], typer.Option("--url-style", help="pretty or plain")] = None,
    ):
    """Print every computed route without writing anything."""
    settings = _settings(overrides={"url_style": url_style})
    try:
        plan = plan_site(source, settings)
    except BuildError as e:
        _fail(str(e))
    except OSError as e:
        _fail("Planning routes failed", e)
    for route in sorted(plan.routes, key=lambda r: r.url):
        typer.echo(f"{route.url}\t{route.source}")
