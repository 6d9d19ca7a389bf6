"""Operator CLI for the DMS search index, implemented with Typer."""

from __future__ import annotations

import json
import signal
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Event
from typing import Any, Callable

import typer

from packages.dms_shared.config import load_settings
from packages.dms_shared.errors import ErrorCategory
from packages.dms_shared.logging import configure_logging
from resources.substrates.postgres import resolve_postgres_settings
from services.state.search_index import (
    DefaultSearchIndexService,
    PageRequest,
    SearchIndexError,
    SearchIndexService,
    request_identity,
)
from services.state.search_index.config import resolve_search_index_settings
from services.state.search_index.data import upgrade_schema

SUCCESS_EXIT_CODE = 0
DOMAIN_ERROR_EXIT_CODE = 3
DEPENDENCY_ERROR_EXIT_CODE = 4


@dataclass(frozen=True)
class CliConfig:
    """Global CLI options shared by every command."""

    config_path: Path | None
    tenant: str | None
    default_tenant: str
    principal: str
    as_json: bool

    @property
    def effective_tenant(self) -> str:
        return self.tenant or self.default_tenant


def _serialize(value: Any) -> Any:
    """Convert result objects to JSON-serializable structures."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "model_dump"):
        return _serialize(value.model_dump(mode="python"))
    if isinstance(value, dict):
        return {str(key): _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_serialize(item) for item in value]
    if hasattr(value, "__dataclass_fields__"):
        return {name: _serialize(getattr(value, name)) for name in value.__dataclass_fields__}
    return str(value)


def _emit_output(result: Any, as_json: bool) -> None:
    """Render command output as compact JSON or indented text."""
    data = _serialize(result)
    if as_json:
        typer.echo(json.dumps(data, sort_keys=True, separators=(",", ":")))
    elif isinstance(data, (dict, list)):
        typer.echo(json.dumps(data, indent=2, sort_keys=True))
    else:
        typer.echo("ok" if data is None else str(data))


def _emit_error(exc: SearchIndexError, as_json: bool) -> None:
    """Render a service error to stderr."""
    if as_json:
        typer.echo(json.dumps({"error": exc.detail.as_dict()}, sort_keys=True), err=True)
        return
    typer.echo(f"error: {exc.detail.code}: {exc.detail.message}", err=True)


def _build_service(cfg: CliConfig) -> SearchIndexService:
    """Return a service wired from settings resolved for this invocation."""
    return DefaultSearchIndexService.from_settings(
        load_settings(config_path=cfg.config_path)
    )


def _run_command(cfg: CliConfig, invoke: Callable[[SearchIndexService], Any]) -> None:
    """Execute one service call under the CLI identity and map errors to exit codes."""
    service = _build_service(cfg)
    try:
        with request_identity(tenant_id=cfg.effective_tenant, principal=cfg.principal):
            result = invoke(service)
    except SearchIndexError as exc:
        _emit_error(exc, cfg.as_json)
        code = (
            DEPENDENCY_ERROR_EXIT_CODE
            if exc.detail.category is ErrorCategory.DEPENDENCY
            else DOMAIN_ERROR_EXIT_CODE
        )
        raise typer.Exit(code=code) from exc

    _emit_output(result, cfg.as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


def _require_config(ctx: typer.Context) -> CliConfig:
    """Return required CLI config from Typer context."""
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


def _wait_for_shutdown() -> None:
    """Block until SIGINT or SIGTERM."""
    stop = Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    stop.wait()


app = typer.Typer(no_args_is_help=True, help="DMS search index operations")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, envvar="DMS_CONFIG_PATH", help="Path to dms.yaml"
    ),
    tenant: str | None = typer.Option(
        None, help="Tenant id; defaults to the configured default tenant"
    ),
    principal: str = typer.Option("operator", help="Acting principal"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """Store global options and configure logging."""
    settings = load_settings(config_path=config)
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=settings.logging.service,
        environment=settings.logging.environment,
    )
    ctx.obj = CliConfig(
        config_path=config,
        tenant=tenant,
        default_tenant=resolve_search_index_settings(settings).default_tenant_id,
        principal=principal,
        as_json=as_json,
    )


@app.command("worker")
def worker_command(ctx: typer.Context) -> None:
    """Run the outbox processor until interrupted."""
    cfg = _require_config(ctx)
    service = _build_service(cfg)
    service.start_worker()
    try:
        _wait_for_shutdown()
    finally:
        service.stop_worker()


@app.command("process-once")
def process_once_command(ctx: typer.Context) -> None:
    """Drain the pending outbox once."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service: service.process_outbox())


@app.command("drift")
def drift_command(ctx: typer.Context) -> None:
    """Report drift between source chunks and the index."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service: service.analyze_drift(tenant_id=cfg.tenant))


@app.command("reconcile")
def reconcile_command(ctx: typer.Context) -> None:
    """Re-index the tenant and report remaining drift."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service: service.reconcile_drift(tenant_id=cfg.tenant))


@app.command("rebuild")
def rebuild_command(ctx: typer.Context) -> None:
    """Queue an upsert for every live document of the tenant."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service: {"queued": service.rebuild_tenant_index(tenant_id=cfg.tenant)},
    )


@app.command("dead-letters")
def dead_letters_command(ctx: typer.Context) -> None:
    """List dead-lettered outbox events, newest first."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service: service.list_dead_lettered_events())


@app.command("replay")
def replay_command(
    ctx: typer.Context, event_id: str = typer.Argument(..., help="Outbox event id")
) -> None:
    """Return one dead-lettered event to the pending queue."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service: service.replay_event(event_id=event_id))


@app.command("search")
def search_command(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Search text"),
    page: int = typer.Option(0, min=0, help="Zero-based page number"),
    size: int = typer.Option(20, min=1, help="Page size"),
) -> None:
    """Run a hybrid search as the CLI principal."""
    cfg = _require_config(ctx)
    _run_command(
        cfg,
        lambda service: service.hybrid_search(
            query=query, page=PageRequest(page_number=page, page_size=size)
        ),
    )


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Report database and index readiness."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda service: service.health())


@app.command("migrate")
def migrate_command(
    ctx: typer.Context,
    revision: str = typer.Option("head", help="Target alembic revision"),
) -> None:
    """Apply outbox schema migrations."""
    cfg = _require_config(ctx)
    settings = load_settings(config_path=cfg.config_path)
    upgrade_schema(url=resolve_postgres_settings(settings).url, revision=revision)
    typer.echo(f"migrated to {revision}")


if __name__ == "__main__":
    app()
