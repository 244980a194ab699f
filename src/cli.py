"""Click CLI: run the webhook server, try the estimator, read the audit log."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
import uvicorn

from src.audit.logger import read_audit_events
from src.estimator.estimator import CalorieEstimator, FoodTableError
from src.models import AuditEventType


@click.group()
def cli() -> None:
    """Kali WhatsApp relay."""


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address.")
@click.option("--port", default=8080, envvar="PORT", type=int, help="HTTP port.")
@click.option("--log-level", default="info", help="Logging level.")
def serve(host: str, port: int, log_level: str) -> None:
    """Run the webhook server (configuration from environment variables)."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "src.server.app:create_app_from_env",
        factory=True,
        host=host,
        port=port,
        log_level=log_level,
    )


@cli.command()
@click.argument("text")
@click.option("--table", default="config/food-table.json", help="Path to food table JSON.")
def estimate(text: str, table: str) -> None:
    """Estimate calories for a meal description."""
    try:
        estimator = CalorieEstimator.from_file(table)
    except (FileNotFoundError, FoodTableError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(estimator.estimate(text).model_dump_json(indent=2))


@cli.command()
@click.option(
    "--log", "log_path", envvar="AUDIT_LOG_PATH", required=True,
    type=click.Path(dir_okay=False, path_type=Path), help="Audit log (JSONL).",
)
@click.option(
    "--type", "event_type",
    type=click.Choice([t.value for t in AuditEventType]),
    default=None, help="Only show events of this type.",
)
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text")
def audit(log_path: Path, event_type: str | None, fmt: str) -> None:
    """Show events from the audit log."""
    try:
        events = read_audit_events(log_path)
    except ValueError as exc:
        raise click.ClickException(f"Malformed audit log {log_path}: {exc}") from exc
    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]

    if fmt == "json":
        click.echo(json.dumps(events, indent=2, ensure_ascii=False))
        return

    for event in events:
        click.echo(
            f"{event.get('timestamp', '')} {event.get('event_type', '')} "
            f"{event.get('action', '')} {event.get('result', '')} "
            f"{event.get('sender_id') or '-'}"
        )
    click.echo(f"{len(events)} event(s)")


if __name__ == "__main__":
    cli()
