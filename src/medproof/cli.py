# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Command line interface for operating a PostgreSQL-backed custody ledger."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
import yaml
from pydantic import ValidationError

from medproof.config import Settings
from medproof.errors import LedgerError
from medproof.ledger import CustodyLedger
from medproof.models import Role
from medproof.store.postgres import PostgresStore
from medproof.utils import hash_details

logger = logging.getLogger(__name__)

app = typer.Typer(help="Track custody of medication units across the supply chain.")


def load_config(config_file: str | None) -> dict[str, Any]:
    """Loads configuration from a YAML file."""
    if config_file:
        try:
            with open(config_file) as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Config file not found: %s", config_file)
    return {}


def _store(ctx: typer.Context) -> PostgresStore:
    settings: Settings = ctx.obj
    return PostgresStore(settings.db_connection_string, schema=settings.db_schema)


def _ledger(ctx: typer.Context) -> CustodyLedger:
    return CustodyLedger(_store(ctx))


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn ledger and validation failures into a message and exit code 1."""
    try:
        yield
    except (LedgerError, ValidationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_file: str = typer.Option(None, help="Path to YAML config file."),
    db_dsn: str = typer.Option(None, help="Override database DSN."),
) -> None:
    config = load_config(config_file)
    if db_dsn:
        config["db_dsn"] = db_dsn
    settings = Settings(**config)
    # Basic structured logging setup
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = settings


@app.command("init-db")
def init_db(
    ctx: typer.Context,
    owner: str = typer.Option(..., help="Address of the ledger owner."),
) -> None:
    """Create the ledger tables and record the owner."""
    store = _store(ctx)
    with store:
        store.create_schema()
    with _reported_errors():
        ledger = CustodyLedger(store, owner=owner)
    typer.echo(f"Ledger ready, owned by {ledger.owner}")


@app.command("register-actor")
def register_actor(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Address of the new actor."),
    name: str = typer.Argument(..., help="Display name."),
    role: str = typer.Argument(..., help="manufacturer, distributor or pharmacy (or 0-2)."),
    caller: str = typer.Option(..., help="Address performing the call."),
) -> None:
    """Register a supply-chain actor (owner only)."""
    try:
        parsed_role = Role.parse(role)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="ROLE") from e
    with _reported_errors():
        actor = _ledger(ctx).register_actor(caller, address, name, parsed_role)
    typer.echo(f"Registered {actor.address} as {actor.role.name}")


@app.command("register-medication")
def register_medication(
    ctx: typer.Context,
    medication_id: str = typer.Argument(..., help="Unique medication identifier."),
    details_hash: str = typer.Option(None, help="0x-prefixed 32-byte digest."),
    details: str = typer.Option(None, help="Details text to hash instead."),
    caller: str = typer.Option(..., help="Address performing the call."),
) -> None:
    """Register a medication held by the calling actor."""
    if (details_hash is None) == (details is None):
        msg = "Provide exactly one of --details-hash or --details."
        raise typer.BadParameter(msg)
    digest = details_hash if details_hash is not None else hash_details(details)
    with _reported_errors():
        medication = _ledger(ctx).register_medication(caller, medication_id, digest)
    typer.echo(f"Registered {medication.medication_id} ({medication.details_hash})")


@app.command()
def transfer(
    ctx: typer.Context,
    medication_id: str = typer.Argument(...),
    to_address: str = typer.Argument(..., help="Address receiving the medication."),
    caller: str = typer.Option(..., help="Address performing the call."),
) -> None:
    """Transfer a medication to another address."""
    with _reported_errors():
        _ledger(ctx).transfer_medication(caller, medication_id, to_address)
    typer.echo(f"Transferred {medication_id} to {to_address}")


@app.command()
def sell(
    ctx: typer.Context,
    medication_id: str = typer.Argument(...),
    caller: str = typer.Option(..., help="Address performing the call."),
) -> None:
    """Sell a medication (pharmacy holder only)."""
    with _reported_errors():
        _ledger(ctx).sell_medication(caller, medication_id)
    typer.echo(f"Sold {medication_id}")


@app.command()
def validate(
    ctx: typer.Context,
    medication_id: str = typer.Argument(...),
    caller: str = typer.Option(..., help="Address performing the call."),
) -> None:
    """Mark a medication as validated (owner only)."""
    with _reported_errors():
        _ledger(ctx).validate_medication(caller, medication_id)
    typer.echo(f"Validated {medication_id}")


@app.command()
def verify(ctx: typer.Context, medication_id: str = typer.Argument(...)) -> None:
    """Print the verification record of a medication as JSON."""
    with _reported_errors():
        result = _ledger(ctx).verify_medication(medication_id)
    typer.echo(result.model_dump_json(indent=2))


@app.command()
def history(ctx: typer.Context, medication_id: str = typer.Argument(...)) -> None:
    """Print the custody history of a medication, one JSON event per line."""
    with _reported_errors():
        events = _ledger(ctx).custody_history(medication_id)
    for event in events:
        typer.echo(event.model_dump_json())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
