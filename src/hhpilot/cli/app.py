from __future__ import annotations

import json

import typer
import uvicorn

from hhpilot.api.app import create_app
from hhpilot.config import get_settings
from hhpilot.core.supervisor import Supervisor
from hhpilot.db.base import as_utc
from hhpilot.db.init import init_database
from hhpilot.db.repositories import Repository
from hhpilot.db.session import SessionLocal
from hhpilot.errors import AgentError
from hhpilot.hh.client import HHClient
from hhpilot.logging_config import configure_logging

app = typer.Typer(help="hhpilot job-search agent CLI")
auth_app = typer.Typer(help="Job board OAuth onboarding")
agent_app = typer.Typer(help="Run agent cycles")

app.add_typer(auth_app, name="auth")
app.add_typer(agent_app, name="agent")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _run_cycle(name: str, fn) -> None:
    try:
        report = fn()
    except AgentError as exc:
        typer.echo(json.dumps({"ok": False, "cycle": name, "error": str(exc)}, indent=2))
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps({"ok": True, "cycle": name, **report.model_dump()}, indent=2))


@app.command("init")
def init_cmd() -> None:
    """Create the database schema and the default search settings."""
    configure_logging()
    result = init_database()
    typer.echo(json.dumps({"ok": True, **result}, indent=2))


@auth_app.command("url")
def auth_url() -> None:
    configure_logging()
    settings = get_settings()
    if not settings.hh_client_id:
        raise typer.BadParameter("HH_CLIENT_ID is not configured")
    typer.echo(HHClient.authorize_url(settings.hh_client_id, settings.hh_redirect_uri, base_url=settings.hh_oauth_base_url))


@auth_app.command("exchange")
def auth_exchange(code: str = typer.Option(..., "--code")) -> None:
    """Trade an authorization code for a token pair and store it."""
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    try:
        grant = HHClient(settings).exchange_code(
            settings.hh_client_id, settings.hh_client_secret, code, settings.hh_redirect_uri
        )
    except AgentError as exc:
        typer.echo(json.dumps({"ok": False, "error": str(exc)}, indent=2))
        raise typer.Exit(code=1) from exc
    with SessionLocal() as db:
        repo = Repository(db)
        token = repo.add_token(grant)
        repo.log_activity("system", "job board account authorized")
        typer.echo(json.dumps({"ok": True, "expires_at": as_utc(token.expires_at).isoformat()}, indent=2))


@agent_app.command("search")
def agent_search() -> None:
    """Run one vacancy search cycle."""
    configure_logging()
    ensure_initialized()
    _run_cycle("search", Supervisor().run_search)


@agent_app.command("chats")
def agent_chats() -> None:
    """Run one chat monitoring cycle."""
    configure_logging()
    ensure_initialized()
    _run_cycle("chats", Supervisor().run_chats)


@agent_app.command("status")
def agent_status() -> None:
    """Reconcile application statuses once."""
    configure_logging()
    ensure_initialized()
    _run_cycle("status", Supervisor().run_status)


@agent_app.command("run")
def agent_run() -> None:
    """Run the supervisor loop in the foreground until interrupted."""
    configure_logging()
    ensure_initialized()
    supervisor = Supervisor()
    supervisor.start()
    try:
        supervisor.run_forever()
    except KeyboardInterrupt:
        typer.echo("interrupted")
    finally:
        supervisor.stop()


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
