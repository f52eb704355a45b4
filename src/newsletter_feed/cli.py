"""CLI entry point for the newsletter feed pipeline."""

import asyncio
import os
from pathlib import Path
from typing import NoReturn

import typer

from newsletter_feed.bootstrap import build_services
from newsletter_feed.config import Settings, get_settings
from newsletter_feed.core import PipelineError
from newsletter_feed.logging_config import setup_logging

app = typer.Typer(help="Aggregate AI newsletters into a personalized story feed.")

ConfigOption = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to config.yaml")


def _load(config: Path) -> Settings:
    settings = get_settings(config)
    setup_logging(settings.log_level)
    return settings


def _fail(e: PipelineError) -> NoReturn:
    typer.echo(f"❌ {e}", err=True)
    raise typer.Exit(code=1)


@app.command()
def fetch(config: Path = ConfigOption) -> None:
    """Fetch all sources and store new articles."""
    services = build_services(_load(config))
    try:
        result = asyncio.run(services.pipeline.fetch())
    except PipelineError as e:
        _fail(e)
    typer.echo(f"✓ Fetched {result.fetched} articles, {result.inserted} new")


@app.command()
def process(config: Path = ConfigOption) -> None:
    """Segment unprocessed articles and score them for every user."""
    services = build_services(_load(config))
    try:
        result = asyncio.run(services.pipeline.process())
    except PipelineError as e:
        _fail(e)
    typer.echo(
        f"✓ Processed {result.processed} articles into {result.segments} segments "
        f"({result.scored_users} users scored)"
    )


@app.command()
def run(config: Path = ConfigOption) -> None:
    """Fetch and process in one go (needed with the in-memory store)."""
    services = build_services(_load(config))

    async def _run():
        return await services.pipeline.fetch(), await services.pipeline.process()

    try:
        fetched, processed = asyncio.run(_run())
    except PipelineError as e:
        _fail(e)
    typer.echo(f"✓ Fetched {fetched.fetched} articles, {fetched.inserted} new")
    typer.echo(f"✓ Processed {processed.processed} articles into {processed.segments} segments")


@app.command()
def feed(
    user_id: str,
    config: Path = ConfigOption,
    refresh: bool = typer.Option(False, "--refresh", help="Recompute scores before ranking"),
) -> None:
    """Print the ranked feed for a user."""
    services = build_services(_load(config))
    try:
        ranked = services.feed.get_feed(user_id, refresh=refresh)
    except PipelineError as e:
        _fail(e)

    if not ranked:
        typer.echo("No segments in the feed window")
        return

    for position, item in enumerate(ranked, 1):
        marker = "★" if item.personalized else "·"
        typer.echo(f"{position:>3}. {marker} [{item.combined_score:.2f}] {item.segment.title}")
        typer.echo(f"       {', '.join(item.segment.topics)} | {', '.join(item.segment.source_names)}")


@app.command()
def serve(
    config: Path = ConfigOption,
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(int(os.environ.get("PORT", 3000)), help="Bind port"),
) -> None:
    """Run the HTTP trigger and feed endpoints."""
    from newsletter_feed.api import create_app

    settings = _load(config)
    if not settings.cron_secret:
        typer.echo("⚠️  CRON_SECRET is not set; cron endpoints will reject every request", err=True)

    create_app(settings).run(host=host, port=port)


if __name__ == "__main__":
    app()
