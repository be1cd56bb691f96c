#!/usr/bin/env python3

from __future__ import annotations
import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from bridge.config import BridgeConfig, ConfigError, load_config
from bridge.errors import BridgeError
from bridge.events import BufferedEvent
from bridge.state import Session
from bridge.ws_client import BridgeClient
from shared.log import configure_root_logging, get_logger

app = typer.Typer(help="Arcus bridge client CLI")
console = Console()
logger = get_logger(__name__)


def _load(config_path: Optional[Path], require_credentials: bool = True) -> BridgeConfig:
    try:
        config = load_config(config_path).validate(require_credentials=require_credentials)
    except ConfigError as e:
        console.print(f"[red]Configuration error[/]: {e}")
        raise typer.Exit(code=2)
    logger.debug("Using bridge at %s", config.base_url)
    if config.log_level:
        configure_root_logging(config.log_level)
    return config


def _parse_attrs(attrs: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(attrs)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--attrs must be JSON: {e}")
    if not isinstance(parsed, dict):
        raise typer.BadParameter("--attrs must be a JSON object")
    return parsed


def places_table(session: Session) -> Table:
    table = Table(title=f"Places for {session.subject_id}")
    table.add_column("Place ID")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Account")
    for place in session.places:
        table.add_row(place.place_id, place.place_name, place.role, place.account_id)
    return table


def events_table(events: List[BufferedEvent]) -> Table:
    table = Table(title=f"{len(events)} event(s)")
    table.add_column("Time")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Attributes")
    for event in events:
        when = datetime.fromtimestamp(event.timestamp / 1000).strftime("%H:%M:%S")
        table.add_row(when, event.message_type, event.source or "", json.dumps(event.attributes)[:120])
    return table


async def _activate(client: BridgeClient, place: Optional[str]) -> None:
    if not place:
        return
    response = await client.set_active_place(place)
    if response.is_error:
        raise BridgeError(f"Could not activate place {place}: {response.error_code} {response.error_message}")


@app.command()
def login(
    config: Optional[Path] = typer.Option(None, help="YAML config file"),
):
    """Log in with username/password and print the auth token."""
    cfg = _load(config, require_credentials=False)

    async def run() -> str:
        return await BridgeClient(cfg).login()

    try:
        token = asyncio.run(run())
    except BridgeError as e:
        console.print(f"[red]Login failed[/]: {e}")
        raise typer.Exit(code=1)
    console.print(token)


@app.command()
def places(
    config: Optional[Path] = typer.Option(None, help="YAML config file"),
):
    """Connect and list the places accessible to the logged-in person."""
    cfg = _load(config)

    async def run() -> Session:
        async with BridgeClient(cfg) as client:
            return await client.ensure_connected()

    try:
        session = asyncio.run(run())
    except BridgeError as e:
        console.print(f"[red]Connection failed[/]: {e}")
        raise typer.Exit(code=1)
    console.print(places_table(session))


@app.command()
def request(
    destination: str = typer.Argument(..., help="Destination address, e.g. SERV:sess:"),
    message_type: str = typer.Argument(..., help="Message type, e.g. sess:ListAvailablePlaces"),
    attrs: str = typer.Option("{}", help="Request attributes as a JSON object"),
    place: Optional[str] = typer.Option(None, help="Activate this place first"),
    config: Optional[Path] = typer.Option(None, help="YAML config file"),
):
    """Send one correlated request and print the response frame."""
    cfg = _load(config)
    attributes = _parse_attrs(attrs)

    async def run():
        async with BridgeClient(cfg) as client:
            await client.ensure_connected()
            await _activate(client, place)
            return await client.send_request(destination, message_type, attributes)

    try:
        response = asyncio.run(run())
    except BridgeError as e:
        console.print(f"[red]Request failed[/]: {e}")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(response.to_dict()))
    if response.is_error:
        raise typer.Exit(code=1)


@app.command()
def listen(
    seconds: float = typer.Option(30.0, help="How long to collect events"),
    place: Optional[str] = typer.Option(None, help="Activate this place first"),
    config: Optional[Path] = typer.Option(None, help="YAML config file"),
):
    """Connect, collect unsolicited events for a while, then print them."""
    cfg = _load(config)

    async def run() -> List[BufferedEvent]:
        async with BridgeClient(cfg) as client:
            session = await client.ensure_connected()
            await _activate(client, place)
            console.print(f"[bold green]Listening[/] as {session.subject_id} for {seconds:g}s")
            await asyncio.sleep(seconds)
            return client.drain_events()

    try:
        events = asyncio.run(run())
    except BridgeError as e:
        console.print(f"[red]Listen failed[/]: {e}")
        raise typer.Exit(code=1)
    console.print(events_table(events))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
