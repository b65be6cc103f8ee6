"""CLI interface for govcon-ingest."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import IngestConfig, load_config
from .errors import ConfigError
from .jobs import IngestionJobs, SourceSet, build_sources
from .logging import configure_logging
from .outcomes import OutcomeRecorder

app = typer.Typer(
    name="govcon-ingest",
    help="Government contracting data ingestion (SAM.gov, SBIR.gov, USAspending, Census)",
    add_completion=False,
)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="YAML configuration file")
OutputOption = typer.Option(None, "--output", "-o", help="Write records to this JSON file")
LogLevelOption = typer.Option("WARNING", "--log-level", help="DEBUG, INFO, WARNING or ERROR")

SUMMARY_FIELDS = ("title", "award_title", "recipient_name", "matched_address", "agency_name")


def get_config(config_path: Path | None) -> IngestConfig:
    """Load configuration from .env, the YAML file and the environment."""
    from dotenv import load_dotenv

    load_dotenv()
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _as_dict(item) -> dict:
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json", exclude={"raw_data"})
    return dict(item)


def _summary(row: dict) -> str:
    for key in SUMMARY_FIELDS:
        if row.get(key):
            return str(row[key])
    return ""


def _run(title: str, config_path: Path | None, output: Path | None, log_level: str, job) -> None:
    configure_logging(log_level.upper(), json=False)
    config = get_config(config_path)
    recorder = OutcomeRecorder()

    async def run():
        async with build_sources(config, on_outcome=recorder) as sources:
            return await job(IngestionJobs(sources), sources)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Fetching {title}...", total=None)
        result = asyncio.run(run())
        progress.update(task, completed=True)

    if result is None:
        rows = []
    elif isinstance(result, list):
        rows = [_as_dict(r) for r in result]
    else:
        rows = [_as_dict(result)]

    _print_records(title, rows)
    _print_outcomes(recorder)

    if output:
        output.write_text(json.dumps(rows, indent=2, default=str))
        console.print(f"[green]Wrote {len(rows)} records to {output}[/green]")


def _print_records(title: str, rows: list[dict], limit: int = 20) -> None:
    if not rows:
        console.print(f"[yellow]No {title} found[/yellow]")
        return

    table = Table(title=f"{title.capitalize()} ({len(rows)})")
    table.add_column("Source", style="cyan")
    table.add_column("ID")
    table.add_column("Summary")
    for row in rows[:limit]:
        table.add_row(
            str(row.get("source", "")),
            str(row.get("record_id") or row.get("toptier_code") or ""),
            _summary(row)[:80],
        )
    console.print(table)
    if len(rows) > limit:
        console.print(f"[dim]... and {len(rows) - limit} more[/dim]")


def _print_outcomes(recorder: OutcomeRecorder) -> None:
    snapshot = recorder.snapshot()
    if not snapshot:
        return
    table = Table(title="Source Outcomes")
    table.add_column("Source", style="cyan")
    table.add_column("Calls", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Kinds")
    table.add_column("Last Error")
    for name, stats in snapshot.items():
        failed = stats["failed"]
        table.add_row(
            name,
            str(stats["calls"]),
            f"[red]{failed}[/red]" if failed else "0",
            str(stats["records"]),
            ", ".join(f"{k}={v}" for k, v in sorted(stats["kinds"].items())),
            stats["last_error"] or "",
        )
    console.print(table)


@app.command()
def opportunities(
    naics: str = typer.Option(None, "--naics", "-n", help="Single NAICS code (default: all configured)"),
    ptype: str = typer.Option(None, "--ptype", "-p", help="Procurement type: o, k, p or r"),
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """Fetch SAM.gov contract opportunities."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        kind = ptype or sources.config.opportunities.ptype
        if naics:
            return await sources.opportunities.fetch_with_params(naics, kind, sources.config.opportunities.limit)
        return await jobs.opportunities_for_ptype(kind)

    _run("opportunities", config_path, output, log_level, job)


@app.command("sources-sought")
def sources_sought(
    naics: str = typer.Option(None, "--naics", "-n", help="Single NAICS code (default: all configured)"),
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """Fetch Sources Sought notices."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        if naics:
            return await sources.opportunities.fetch_sources_sought(naics)
        return await jobs.sources_sought_for_all_naics()

    _run("sources sought notices", config_path, output, log_level, job)


@app.command("sbir-opportunities")
def sbir_opportunities(
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """Fetch SBIR/STTR opportunities by title keyword."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        return await jobs.sbir_sttr_opportunities()

    _run("SBIR/STTR opportunities", config_path, output, log_level, job)


@app.command("sbir-awards")
def sbir_awards(
    agency: str = typer.Option(None, "--agency", "-a", help="Single agency (default: all configured)"),
    year: int = typer.Option(None, "--year", "-y", help="Award year"),
    recent: bool = typer.Option(False, "--recent", help="Current and previous year"),
    firm: str = typer.Option(None, "--firm", help="Search by company name"),
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """Fetch SBIR/STTR awards from SBIR.gov."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        if firm:
            return await sources.awards.search_by_firm(firm)
        if recent:
            return await jobs.recent_sbir_awards()
        if agency:
            return await sources.awards.fetch_awards(agency, year)
        return await jobs.sbir_awards_for_all_agencies(year)

    _run("SBIR awards", config_path, output, log_level, job)


@app.command()
def solicitations(
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """Fetch open SBIR/STTR solicitations."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        return await jobs.open_solicitations()

    _run("solicitations", config_path, output, log_level, job)


@app.command()
def spending(
    naics: str = typer.Option(None, "--naics", "-n", help="NAICS code filter"),
    agency: str = typer.Option(None, "--agency", "-a", help="Awarding toptier agency name"),
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """Search USAspending prime awards."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        if naics or agency:
            return await sources.spending.fetch_all_awards(naics, agency)
        return await jobs.spending_awards_by_naics() + await jobs.spending_awards_by_agency()

    _run("spending awards", config_path, output, log_level, job)


@app.command()
def geocode(
    address: str = typer.Argument(..., help='Single-line address, e.g. "4600 Silver Hill Rd, Washington, DC 20233"'),
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """Geocode an address with the Census geocoder."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        return await sources.geocoder.geocode_address(address)

    _run("geocode matches", config_path, output, log_level, job)


@app.command()
def agencies(
    config_path: Path = ConfigOption,
    output: Path = OutputOption,
    log_level: str = LogLevelOption,
):
    """List USAspending toptier agencies."""

    async def job(jobs: IngestionJobs, sources: SourceSet):
        return await sources.spending.get_toptier_agencies()

    _run("agencies", config_path, output, log_level, job)


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
