#!/usr/bin/env python3
"""
Paperlib CLI.

Usage:
    paperlib import-url https://arxiv.org/abs/2301.12345
    paperlib import-file /path/to/paper.pdf
    paperlib classify "doi:10.1000/xyz123"
    paperlib runs --outcome failed
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

# Add paperlib to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from paperlib import __version__
from paperlib.config import config


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def cli(verbose: bool):
    """Paperlib - document import CLI."""
    _setup_logging(verbose)


# ============================================================================
# Import Commands
# ============================================================================

def _print_progress(progress):
    click.echo(f"  [{progress.percent:3d}%] {progress.stage.value}: {progress.message}", err=True)


def _print_result(result, output_json: bool):
    if output_json:
        click.echo(json.dumps({
            "id": result.id,
            "file_path": result.file_path,
            "paper": result.paper.to_dict(),
            "warnings": list(result.warnings),
        }, indent=2))
        return

    paper = result.paper
    click.echo(click.style("✓ Import successful!", fg="green"))
    click.echo(f"  Title: {paper.title}")
    if paper.authors:
        click.echo(f"  Authors: {', '.join(paper.authors)}")
    if paper.year:
        click.echo(f"  Year: {paper.year}")
    if paper.venue:
        click.echo(f"  Venue: {paper.venue}")
    if paper.identifier:
        click.echo(f"  DOI: {paper.identifier}")
    if paper.keywords:
        click.echo(f"  Keywords: {', '.join(paper.keywords)}")
    click.echo(f"  Source: {paper.source.value}")
    click.echo(f"  File: {result.file_path}")
    for warning in result.warnings:
        click.echo(click.style(f"  ! {warning}", fg="yellow"))


def _run_import(coro_factory, output_json: bool):
    from paperlib.ingest import DownloadCancelled, ImportFailed, create_orchestrator

    errors = config.validate()
    if errors:
        for error in errors:
            click.echo(click.style(f"Config error: {error}", fg="red"), err=True)
        sys.exit(2)

    orchestrator = create_orchestrator()

    try:
        result = asyncio.run(coro_factory(orchestrator))
    except DownloadCancelled as e:
        click.echo(click.style(f"✗ {e}", fg="yellow"), err=True)
        sys.exit(130)
    except ImportFailed as e:
        click.echo(click.style("✗ Import failed!", fg="red"), err=True)
        click.echo(f"  Error: {e}", err=True)
        sys.exit(1)

    _print_result(result, output_json)


@cli.command("import-url")
@click.argument("url")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--quiet", is_flag=True, help="Do not print progress events")
def import_url(url: str, output_json: bool, quiet: bool):
    """Import a paper from a URL, DOI or arXiv reference."""
    on_progress = None if quiet else _print_progress
    _run_import(lambda o: o.import_from_url(url, on_progress=on_progress), output_json)


@cli.command("import-file")
@click.argument("pdf_path", type=click.Path())
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--quiet", is_flag=True, help="Do not print progress events")
def import_file(pdf_path: str, output_json: bool, quiet: bool):
    """Import a local PDF file."""
    on_progress = None if quiet else _print_progress
    _run_import(lambda o: o.import_from_local_file(pdf_path, on_progress=on_progress), output_json)


# ============================================================================
# Diagnostics
# ============================================================================

@cli.command()
@click.argument("reference")
def classify(reference: str):
    """Show how a reference would be imported, without fetching it."""
    from paperlib.ingest.classifier import classify_reference, fetch_url_for
    from paperlib.ingest.errors import InvalidReference

    try:
        ref = classify_reference(reference)
    except InvalidReference as e:
        click.echo(click.style(f"✗ {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Kind: {ref.kind.value}")
    click.echo(f"Value: {ref.value}")
    if ref.is_remote:
        try:
            click.echo(f"Fetch URL: {fetch_url_for(ref)}")
        except InvalidReference as e:
            click.echo(click.style(f"Not fetchable: {e}", fg="yellow"))


@cli.command()
@click.option("-n", "--limit", default=20, help="Number of records")
@click.option("--outcome", type=click.Choice(["complete", "cancelled", "failed"]), help="Filter by outcome")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def runs(limit: int, outcome: str, output_json: bool):
    """Show recent import telemetry (PAPERLIB_TELEMETRY=1)."""
    from paperlib.telemetry import read_telemetry_logs

    records = read_telemetry_logs(outcome=outcome, limit=limit)

    if output_json:
        click.echo(json.dumps(records, indent=2))
        return

    if not records:
        click.echo("No telemetry records.")
        return

    colors = {"complete": "green", "cancelled": "yellow", "failed": "red"}
    for r in records:
        status = click.style(r.get("outcome", "?"), fg=colors.get(r.get("outcome"), "white"))
        click.echo(f"{r.get('timestamp', '')}  {status}  {r.get('total_latency_ms', 0):.0f}ms  {r.get('reference', '')}")
        if r.get("error"):
            click.echo(f"    {r['error']}")


def main():
    cli()


if __name__ == "__main__":
    main()
