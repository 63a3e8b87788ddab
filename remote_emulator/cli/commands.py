"""CLI commands for remote-emulator."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console

from remote_emulator import __logo__, __version__
from remote_emulator.broker.models import RequestOutcome
from remote_emulator.config.schema import Config
from remote_emulator.errors import AdapterExecutionError, MissingCredentialError, SessionNotFoundError
from remote_emulator.session.coordinator import SessionCoordinator

app = typer.Typer(
    name="remote-emulator",
    help=f"{__logo__} remote-emulator - attach remote Android devices to local adb",
    no_args_is_help=True,
)

console = Console()

FORWARD_USAGE = "Usage: forwardPorts --deviceId xxx --ip y.y.y.y --port 8080 --port 9000"

_state: dict[str, Any] = {"config_path": None}


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} remote-emulator v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    config: Path | None = typer.Option(None, "--config", help="Config JSON path"),
    logs: bool = typer.Option(True, "--logs/--no-logs", help="Show runtime logs on stderr"),
):
    """remote-emulator - remote device session client."""
    _state["config_path"] = config
    logger.remove()
    if logs:
        logger.add(sys.stderr, level="INFO", format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}")
        logger.enable("remote_emulator")
    else:
        logger.disable("remote_emulator")


def _load_config() -> Config:
    from remote_emulator.config.loader import load_config

    return load_config(_state.get("config_path"))


def _make_coordinator(config: Config) -> SessionCoordinator:
    """Build the coordinator; exits with status 1 when no broker token is set."""
    from remote_emulator.adb import AdbCommandAdapter
    from remote_emulator.broker import BrokerClient
    from remote_emulator.storage import FileSessionStore

    try:
        broker = BrokerClient.from_config(config)
    except MissingCredentialError as exc:
        console.print("[red]Token empty pls set env EMULATOR_REMOTE_TOKEN[/red]")
        console.print("example: export EMULATOR_REMOTE_TOKEN=xxxx")
        raise typer.Exit(1) from exc

    adapter = AdbCommandAdapter(
        adb_path=config.adb.path,
        public_key_path=config.adb.public_key_path,
    )
    return SessionCoordinator.from_config(
        config,
        broker=broker,
        adapter=adapter,
        store=FileSessionStore(config.session.directory),
    )


def _run(coro) -> Any:
    """Run one coordinator call; local failures exit with status 1."""
    try:
        return asyncio.run(coro)
    except (AdapterExecutionError, SessionNotFoundError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc


def _print_outcome(outcome: RequestOutcome, success: str, failure: str) -> None:
    if outcome.ok:
        console.print(f"[green]✓[/green] {success}")
    else:
        console.print(f"[red]{failure}[/red]")
    payload = outcome.payload
    if isinstance(payload, (dict, list)):
        console.print_json(json.dumps(payload, ensure_ascii=False, default=str))
    elif payload not in (None, ""):
        console.print(str(payload))


# ============================================================================
# Session Commands
# ============================================================================


@app.command("connect")
def connect(
    retry_time: int = typer.Option(None, "--retryTime", help="Registration attempts (default from config: 5)"),
    trace_request_id: str = typer.Option(None, "--traceRequestId", help="Trace correlation id"),
):
    """Register with the broker and adb-connect the assigned device."""
    config = _load_config()
    coordinator = _make_coordinator(config)
    attempts = retry_time if retry_time is not None else config.retry.attempts

    if _run(coordinator.try_register(attempts, trace_request_id or None)):
        registration = coordinator.last_registration
        url = registration.remote_connect_url if registration else ""
        console.print(f"[green]✓[/green] Connected {url}")
    else:
        console.print(f"[red]Connect failed after {attempts} attempt(s)[/red]")


@app.command("disconnect")
def disconnect(
    device_id: str = typer.Option(None, "--deviceId", help="Device id (default: stored session)"),
):
    """Release a device on the broker."""
    coordinator = _make_coordinator(_load_config())
    outcome = _run(coordinator.disconnect(device_id or None))
    _print_outcome(outcome, "disconnect device successfully", "disconnect fail")


@app.command("disconnectByTraceRequestId")
def disconnect_by_trace_request_id(
    trace_request_id: str = typer.Option(None, "--traceRequestId", help="Trace correlation id"),
):
    """Release the device registered under a trace id, reporting local adb state."""
    coordinator = _make_coordinator(_load_config())
    outcome = _run(coordinator.disconnect_by_trace_request_id(trace_request_id or None))
    _print_outcome(outcome, "disconnect device successfully", "disconnect fail")


@app.command("forwardPorts")
def forward_ports(
    device_id: str = typer.Option(None, "--deviceId", help="Device id"),
    ip: str = typer.Option(None, "--ip", help="Host the device ports forward to"),
    port: list[str] = typer.Option(None, "--port", help="Port to forward (repeatable)"),
):
    """Ask the broker to forward device ports to a host."""
    coordinator = _make_coordinator(_load_config())

    if not device_id or not ip or not port:
        console.print(FORWARD_USAGE)
        raise typer.Exit(1)
    try:
        outcome = _run(coordinator.forward_ports(port, ip, device_id=device_id))
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        console.print(FORWARD_USAGE)
        raise typer.Exit(1) from exc
    _print_outcome(outcome, "forward port successfully", "forward port fail")


@app.command("listConnected")
def list_connected():
    """List devices the broker reports as connected."""
    coordinator = _make_coordinator(_load_config())
    outcome = _run(coordinator.list_connected())
    _print_outcome(outcome, "list device:", "get device fail")


# ============================================================================
# Status Commands
# ============================================================================


@app.command()
def status():
    """Show the locally stored session."""
    from remote_emulator.errors import PersistenceError
    from remote_emulator.storage import FileSessionStore

    config = _load_config()
    store = FileSessionStore(config.session.directory)

    console.print(f"{__logo__} remote-emulator Status\n")
    console.print(f"Session dir: {store.directory}")
    console.print(f"Token: {'[green]✓[/green]' if config.has_token else '[dim]not set[/dim]'}")

    try:
        record = asyncio.run(store.load_full_record())
    except SessionNotFoundError:
        console.print("Session: [dim]none[/dim]")
        return
    except PersistenceError as exc:
        console.print(f"Session: [red]{exc}[/red]")
        return
    console.print(f"Device: {record.device_id or '-'}")
    console.print(f"Connect address: {record.remote_connect_address or '-'}")


# ============================================================================
# Config Commands
# ============================================================================


config_app = typer.Typer(help="Inspect remote-emulator config")
app.add_typer(config_app, name="config")


@config_app.command("show")
def config_show():
    """Print the effective configuration with secrets masked."""
    from remote_emulator.utils.redaction import redact_secrets

    config = _load_config()
    console.print_json(json.dumps(redact_secrets(config.model_dump())))


if __name__ == "__main__":
    app()
