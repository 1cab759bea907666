#!/usr/bin/env python3
"""
Main CLI entry point for metricshare.

Provides commands to run a metric server, to compute the fingerprints used in
route paths, and to create scoped access token records.
"""

import asyncio
import secrets
import sys
from pathlib import Path
from typing import Any

import click
from loguru import logger
from rich.console import Console
from rich.table import Table

from metricshare.access.loader import access_manager_from_settings
from metricshare.access.tokens import ScopedAccessToken
from metricshare.core.config import MetricShareSettings
from metricshare.core.logging import configure_logging
from metricshare.core.metric_store import InMemoryMetricObserver
from metricshare.core.routes import Scope
from metricshare.datastructures.metric_identity import metric_fingerprint
from metricshare.server.provider import create_metric_provider

console = Console()


def setup_logging(verbose: bool = False, debug_scopes: tuple[str, ...] = ()) -> None:
    """Setup logging configuration."""
    level = "DEBUG" if verbose else "INFO"
    configure_logging(level, debug_scopes=debug_scopes, colorize=True)


def apply_logging_settings(
    settings: MetricShareSettings,
    verbose: bool = False,
    debug_scopes: tuple[str, ...] = (),
) -> None:
    """Reconfigure logging from loaded settings; command line flags take precedence."""
    configure_logging(
        "DEBUG" if verbose else settings.log_level,
        debug_scopes=(*settings.log_debug_scopes, *debug_scopes),
        colorize=True,
        log_file=settings.log_file,
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--debug-scope",
    "debug_scopes",
    multiple=True,
    help="Module whose debug output is shown, e.g. federation.sync",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug_scopes: tuple[str, ...]) -> None:
    """
    metricshare command line interface.

    Serve recorded metrics over HTTP and manage the credentials that grant
    access to them.
    """
    setup_logging(verbose, debug_scopes)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug_scopes"] = debug_scopes


def _load_settings(config: Path | None, overrides: dict[str, Any]) -> MetricShareSettings:
    settings = (
        MetricShareSettings.from_toml(config) if config else MetricShareSettings()
    )
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if not overrides:
        return settings
    return MetricShareSettings.from_dict({**settings.model_dump(), **overrides})


@cli.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="TOML file with a [metricshare] table",
)
@click.option("--host", help="Address to listen on")
@click.option("--port", "-p", type=int, help="Port to listen on (0 for ephemeral)")
@click.option("--prefix", "route_prefix", help="Path prefix of the metric routes")
@click.option(
    "--tokens",
    "access_token_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file with scoped access tokens",
)
@click.option("--secret", "shared_secret", help="Shared secret granting full access")
@click.pass_context
def serve(
    ctx: click.Context,
    config: Path | None,
    host: str | None,
    port: int | None,
    route_prefix: str | None,
    access_token_file: Path | None,
    shared_secret: str | None,
) -> None:
    """Serve an in-memory metric observer until interrupted."""
    settings = _load_settings(
        config,
        {
            "host": host,
            "port": port,
            "route_prefix": route_prefix,
            "access_token_file": access_token_file,
            "shared_secret": shared_secret,
        },
    )
    options = ctx.find_object(dict) or {}
    apply_logging_settings(
        settings, options.get("verbose", False), options.get("debug_scopes", ())
    )

    async def _serve() -> None:
        observer = InMemoryMetricObserver(settings.log_metric_id)
        provider = create_metric_provider(
            observer, access_manager_from_settings(settings), settings=settings
        )
        await provider.start()
        console.print(
            f"[green]Serving {len(observer)} metrics on {provider.base_url}[/green]"
        )
        await observer.log(f"{settings.name} started")
        try:
            await asyncio.Event().wait()
        finally:
            await provider.stop()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped[/yellow]")


@cli.command()
@click.argument("metric_ids", nargs=-1, required=True)
@click.option("--plain", is_flag=True, help="Print only the fingerprints")
def fingerprint(metric_ids: tuple[str, ...], plain: bool) -> None:
    """Show the fingerprints of metric identifiers."""
    if plain:
        for metric_id in metric_ids:
            click.echo(metric_fingerprint(metric_id))
        return

    table = Table(title="Metric Fingerprints")
    table.add_column("Metric ID", style="cyan", no_wrap=True)
    table.add_column("Fingerprint", style="green", no_wrap=True)
    for metric_id in metric_ids:
        table.add_row(metric_id, metric_fingerprint(metric_id))
    console.print(table)


@cli.group()
def token() -> None:
    """Manage scoped access tokens."""


@token.command("create")
@click.option("--token", "secret", help="Secret of the token (random if omitted)")
@click.option(
    "--permission",
    "-p",
    "permissions",
    multiple=True,
    type=click.Choice([scope.value for scope in Scope]),
    help="Granted scope, may be repeated",
)
@click.option("--allow", multiple=True, help="Accessible metric id, may be repeated")
@click.option("--deny", multiple=True, help="Inaccessible metric id, may be repeated")
def create_token(
    secret: str | None,
    permissions: tuple[str, ...],
    allow: tuple[str, ...],
    deny: tuple[str, ...],
) -> None:
    """Print the JSON record of a new scoped access token."""
    scoped = ScopedAccessToken(
        token=secret or secrets.token_urlsafe(32),
        permissions=frozenset(Scope(permission) for permission in permissions),
        accessible_metrics=frozenset(allow),
        inaccessible_metrics=frozenset(deny),
    )
    if allow and not scoped.accessible_metrics:
        logger.warning("Every allowed metric is also denied; the token allows all others")
    click.echo(scoped.to_record().to_json(indent=2))


def main() -> None:
    """Main CLI entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
