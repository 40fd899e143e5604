import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from medproof.cli import app, load_config
from medproof.store.memory import InMemoryStore
from medproof.utils import hash_details

pytestmark = pytest.mark.unit

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keeps INFO records out of the captured command output."""
    monkeypatch.setenv("MEDPROOF_LOG_LEVEL", "WARNING")


OWNER = "0xowner"
MANUFACTURER = "0xmanufacturer"
DISTRIBUTOR = "0xdistributor"
PHARMACY = "0xpharmacy"


class SchemaAwareMemoryStore(InMemoryStore):
    """In-memory stand-in for PostgresStore that records schema creation."""

    def __init__(self):
        super().__init__()
        self.schema_created = False

    def create_schema(self):
        self.schema_created = True


@pytest.fixture
def store():
    """Routes every command to one shared in-memory store."""
    shared = SchemaAwareMemoryStore()
    with patch("medproof.cli.PostgresStore", return_value=shared) as mock_store_cls:
        shared.mock_cls = mock_store_cls
        yield shared


def invoke(*args):
    return runner.invoke(app, list(args))


@pytest.fixture
def initialized(store):
    result = invoke("init-db", "--owner", OWNER)
    assert result.exit_code == 0, result.output
    for address, name, role in (
        (MANUFACTURER, "Manufacturer", "manufacturer"),
        (DISTRIBUTOR, "Distributor", "1"),
        (PHARMACY, "Pharmacy", "pharmacy"),
    ):
        result = invoke("register-actor", address, name, role, "--caller", OWNER)
        assert result.exit_code == 0, result.output
    return store


def test_load_config_missing_file_returns_empty(tmp_path):
    assert load_config(str(tmp_path / "missing.yaml")) == {}
    assert load_config(None) == {}


def test_load_config_reads_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("db_schema: custody\ndb_port: 6543\n")
    assert load_config(str(config_file)) == {"db_schema": "custody", "db_port": 6543}


def test_init_db_creates_schema_and_owner(store):
    result = invoke("init-db", "--owner", OWNER)

    assert result.exit_code == 0, result.output
    assert "owned by 0xowner" in result.output
    assert store.schema_created is True
    with store:
        assert store.get_owner() == OWNER


def test_settings_from_config_file_reach_store(store, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("db_schema: custody\n")

    result = runner.invoke(
        app,
        ["--config-file", str(config_file), "--db-dsn", "postgresql://x", "init-db", "--owner", OWNER],
    )

    assert result.exit_code == 0, result.output
    store.mock_cls.assert_called_with("postgresql://x", schema="custody")


def test_commands_fail_before_init(store):
    result = invoke("verify", "med123")
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_full_chain_through_cli(initialized):
    steps = [
        ("register-medication", "med123", "--details", "details", "--caller", MANUFACTURER),
        ("transfer", "med123", DISTRIBUTOR, "--caller", MANUFACTURER),
        ("transfer", "med123", PHARMACY, "--caller", DISTRIBUTOR),
        ("sell", "med123", "--caller", PHARMACY),
        ("validate", "med123", "--caller", OWNER),
    ]
    for step in steps:
        result = invoke(*step)
        assert result.exit_code == 0, result.output

    result = invoke("verify", "med123")
    assert result.exit_code == 0, result.output
    verification = json.loads(result.output)
    assert verification["registered_by"] == MANUFACTURER
    assert verification["details_hash"] == hash_details("details")
    assert verification["is_validated"] is True
    assert verification["current_holder"] is None

    result = invoke("history", "med123")
    assert result.exit_code == 0, result.output
    events = [json.loads(line) for line in result.output.splitlines()]
    assert [e["event"] for e in events] == [
        "MedicationRegistered",
        "MedicationTransferred",
        "MedicationTransferred",
        "MedicationSold",
        "MedicationValidated",
    ]


def test_ledger_errors_exit_with_status_one(initialized):
    result = invoke("register-actor", MANUFACTURER, "Again", "0", "--caller", OWNER)
    assert result.exit_code == 1
    assert "Actor already registered" in result.output

    result = invoke("validate", "med123", "--caller", MANUFACTURER)
    assert result.exit_code == 1
    assert "Only the ledger owner" in result.output


def test_register_medication_requires_exactly_one_details_source(initialized):
    result = invoke("register-medication", "med123", "--caller", MANUFACTURER)
    assert result.exit_code != 0

    result = invoke(
        "register-medication", "med123",
        "--details", "x", "--details-hash", hash_details("x"),
        "--caller", MANUFACTURER,
    )
    assert result.exit_code != 0


def test_register_medication_rejects_malformed_hash(initialized):
    result = invoke(
        "register-medication", "med123", "--details-hash", "0x1234", "--caller", MANUFACTURER,
    )
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_register_actor_rejects_unknown_role(initialized):
    result = invoke("register-actor", "0xnew", "New", "wholesaler", "--caller", OWNER)
    assert result.exit_code == 2
