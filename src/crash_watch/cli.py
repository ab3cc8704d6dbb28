from __future__ import annotations
import json
from pathlib import Path
import typer
from rich import print as rprint

from crash_watch.citizen import parse_incidents
from crash_watch.classifier import classify
from crash_watch.config import ConfigError, build_run_config, load_locations, summary_file
from crash_watch.log import setup_logging
from crash_watch.poster import build_poster
from crash_watch.runner import run as run_once
from crash_watch.storage import RunLockedError
from crash_watch.summary import load_summary

app = typer.Typer(help="crash-watch: posts 911-reported traffic violence from the Citizen feed")

@app.command()
def run(
    location: str = typer.Option(None, help="Location id from the locations file, e.g. richmond"),
    tweet_satellite: bool = typer.Option(False, help="Attach a Google satellite image (needs google_key)"),
    tweet_reps: bool = typer.Option(False, help="Name the district representative for each incident"),
    dry_run: bool = typer.Option(False, help="Log threads instead of posting; nothing is persisted"),
    days: int = typer.Option(1, help="How many days back to look for incidents"),
    summary: str = typer.Option("off", help="Summary mode: off | on | districts"),
    config: str = typer.Option("configs/locations.yaml", help="Locations config path"),
    archive_dir: str = typer.Option("archive", help="Where the dedup archive and counters live"),
    assets_root: str = typer.Option(".", help="Parent directory of the per-location assets folder"),
    log_level: str = typer.Option("INFO", help="Logging level"),
    log_file: str = typer.Option(None, help="Also append logs to this file"),
):
    setup_logging(log_level, log_file)
    try:
        cfg = build_run_config(
            location,
            load_locations(config),
            include_satellite=tweet_satellite,
            include_representatives=tweet_reps,
            dry_run=dry_run,
            days=days,
            summary_mode=summary,
            archive_dir=Path(archive_dir),
            assets_root=Path(assets_root),
        )
    except (ConfigError, FileNotFoundError) as exc:
        rprint(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        rep = run_once(cfg, poster=build_poster(cfg.location, cfg.dry_run))
    except RunLockedError as exc:
        rprint(f"[bold red]Locked:[/bold red] {exc}")
        raise typer.Exit(code=2)

    rprint("[bold green]OK[/bold green]", cfg.location.display_name, "(dry run)" if cfg.dry_run else "")
    rprint("Fetched:", rep.fetched, "| Recent:", rep.recent,
           "| Ped/bike:", rep.pedestrian_or_cyclist, "| Vehicle only:", rep.vehicle_only)
    rprint("New:", rep.new, "| Posted:", rep.posted, "| Failed:", rep.failed, "| Rollups:", rep.rollups)

@app.command(name="classify")
def classify_file(
    feed: str = typer.Argument(..., help="Saved Citizen feed JSON (the whole response or its 'results' list)"),
):
    feed_path = Path(feed)
    if not feed_path.exists():
        raise typer.BadParameter(f"Feed file not found: {feed}")

    data = json.loads(feed_path.read_text(encoding="utf-8"))
    rows = data.get("results", []) if isinstance(data, dict) else data
    for incident in parse_incidents(rows):
        rprint(f"[cyan]{classify(incident).value:22}[/cyan]", incident.key, "-", incident.raw or incident.title)

@app.command(name="summary")
def show_summary(
    location: str = typer.Option(..., help="Location id"),
    archive_dir: str = typer.Option("archive", help="Where the counters live"),
):
    state = load_summary(summary_file(archive_dir, location))
    rprint("[bold]Week:[/bold]", state.week.total, state.week.districts or "")
    rprint("[bold]Month:[/bold]", state.month.total, state.month.districts or "")

def main():
    app()

if __name__ == "__main__":
    main()
