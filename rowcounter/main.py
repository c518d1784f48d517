from __future__ import annotations

import json
import sys
from typing import Optional

import psycopg
import typer

from rowcounter.client import CounterClient
from rowcounter.config import get_settings
from rowcounter.coordination import WorkloadContext
from rowcounter.domain.models import Operation
from rowcounter.infrastructure.db_factory import build_dsn, build_store_factory, get_sync_connection
from rowcounter.orchestrator import RunConfig, available_variants, build_strategy, run_workload
from rowcounter.reporter import print_summary
from rowcounter.strategies.abstract import CounterStrategy
from rowcounter.utils.logging import configure_logging

app = typer.Typer(help="Row-based distributed counter workload CLI.")

VARIANT_HELP = "Counter variant (operation, state)."


def _configure() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


def _strategy(variant: str, context: WorkloadContext) -> CounterStrategy:
    try:
        return build_strategy(variant, context)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--variant") from exc


@app.command()
def info(
    ping: bool = typer.Option(False, "--ping", help="Also check that PostgreSQL is reachable."),
) -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"backend={settings.store_backend} "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} "
        f"keyspace={settings.keyspace} | counter={settings.counter_id} "
        f"consistency={settings.consistency.value} deletion={settings.deletion_mode.value} "
        f"payload={settings.extra_payload_size}B page_size={settings.page_size} "
        f"rf={settings.replication_factor} compaction={settings.compaction_strategy}"
    )
    if ping:
        try:
            with get_sync_connection(build_dsn(settings)):
                typer.echo("PostgreSQL reachable.")
        except psycopg.Error as exc:
            typer.echo(f"PostgreSQL unreachable: {exc}", err=True)
            raise typer.Exit(code=1)


@app.command()
def setup(
    variant: str = typer.Option("operation", "--variant", "-v", help=VARIANT_HELP),
) -> None:
    """
    Create the keyspace and the variant's table.
    """
    _configure()
    context = WorkloadContext()
    strategy = _strategy(variant, context)
    with CounterClient(strategy, context, build_store_factory()) as client:
        client.setup()
    typer.echo(f"Schema ready for variant '{variant}'.")


@app.command()
def read(
    variant: str = typer.Option("operation", "--variant", "-v", help=VARIANT_HELP),
) -> None:
    """
    Print the counter's current total.
    """
    _configure()
    context = WorkloadContext()
    strategy = _strategy(variant, context)
    with CounterClient(strategy, context, build_store_factory()) as client:
        client.setup()
        result = client.invoke(Operation(f="read"))
    if result.type != "ok":
        typer.echo(f"Read failed: {result.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(result.value))


@app.command()
def run(
    variant: str = typer.Option(
        "operation",
        "--variant",
        "-v",
        help="Counter variant to exercise (operation, state, or 'list').",
    ),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Concurrent workers."),
    ops: Optional[int] = typer.Option(None, "--ops", "-n", help="Operations per worker."),
    read_ratio: Optional[float] = typer.Option(None, "--read-ratio", help="Share of reads in the mix."),
    seed: int = typer.Option(0, "--seed", help="Base seed for the per-worker operation mix."),
    persist: bool = typer.Option(True, "--persist/--no-persist", help="Write results/ JSON artifacts."),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON instead of a table."),
) -> None:
    """
    Run a concurrent add/read workload and report whether the final read is consistent.
    """
    _configure()

    if variant == "list":
        typer.echo("Available variants: " + ", ".join(available_variants()))
        return
    if variant not in available_variants():
        raise typer.BadParameter(
            f"Unknown variant '{variant}'. Available: {', '.join(available_variants())}",
            param_hint="--variant",
        )

    summary = run_workload(
        RunConfig(
            variant=variant,
            workers=workers,
            ops_per_worker=ops,
            read_ratio=read_ratio,
            seed=seed,
            persist=persist,
        )
    )
    if as_json:
        typer.echo(json.dumps(summary, indent=2))
    else:
        print_summary(summary)
    if not summary["within_bounds"]:
        raise typer.Exit(code=2)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
