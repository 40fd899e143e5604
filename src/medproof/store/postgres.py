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
"""Provides a ledger store persisted in PostgreSQL."""

import types
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..models import Actor, LedgerEvent, Medication, Role
from ..schema import SchemaRenderer
from .base import BaseStore

_OWNER_KEY = "owner"


class PostgresStore(BaseStore):
    """A ledger store for PostgreSQL.

    Each ``with`` block runs on its own connection inside one transaction.
    An instance handles one transaction at a time; entering it again before
    the current block has finished raises ``RuntimeError``.
    The transaction takes an advisory lock scoped to the ledger schema, so
    concurrent writers against the same ledger are applied one at a time.
    """

    def __init__(self, conn_string: str, schema: str = "medproof") -> None:
        """Initialize the store with the database connection string.

        Args:
            conn_string: A libpq connection string (e.g., "dbname=test user=postgres").
            schema: The database schema holding the ledger tables.

        """
        self.conn_string = conn_string
        self.schema = schema
        self.conn: psycopg.Connection | None = None
        self.cursor: psycopg.Cursor | None = None

    def __enter__(self) -> "PostgresStore":
        """Establish the connection, begin a transaction and take the writer lock."""
        if self.conn is not None:
            msg = "A transaction is already open on this store."
            raise RuntimeError(msg)

        conn = psycopg.connect(
            self.conn_string, autocommit=False, row_factory=dict_row,
        )
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT pg_advisory_xact_lock(hashtext(%s))", (self.schema,),
            )
        except BaseException:
            conn.close()
            raise
        self.conn = conn
        self.cursor = cursor
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        """Commit the transaction on success or roll back on error.

        Closes the database connection.
        """
        if not self.conn:
            return

        try:
            if exc_type:
                self.conn.rollback()
            else:
                self.conn.commit()
        finally:
            if self.cursor:
                self.cursor.close()
            self.conn.close()
            self.conn = None
            self.cursor = None

    def _table(self, name: str) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(self.schema), sql.Identifier(name))

    def _execute(
        self, query: sql.Composable | str, params: Any = None, fetch: str | None = None,
    ) -> Any:
        if not self.cursor:
            msg = (
                "Cursor is not available. "
                "The store must be used as a context manager."
            )
            raise RuntimeError(msg)

        self.cursor.execute(query, params)

        if fetch == "one":
            return self.cursor.fetchone()
        if fetch == "all":
            return self.cursor.fetchall()
        return None

    def create_schema(self) -> None:
        """Create the ledger schema and tables if they do not exist yet."""
        self._execute(SchemaRenderer().create_tables_sql(self.schema))

    def get_owner(self) -> str | None:
        query = sql.SQL("SELECT value FROM {} WHERE key = %s").format(
            self._table("ledger_meta"),
        )
        row = self._execute(query, (_OWNER_KEY,), fetch="one")
        return row["value"] if row else None

    def set_owner(self, address: str) -> None:
        query = sql.SQL(
            "INSERT INTO {} (key, value) VALUES (%s, %s) "
            "ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value",
        ).format(self._table("ledger_meta"))
        self._execute(query, (_OWNER_KEY, address))

    def get_actor(self, address: str) -> Actor | None:
        query = sql.SQL(
            "SELECT address, name, role, is_registered FROM {} WHERE address = %s",
        ).format(self._table("actors"))
        row = self._execute(query, (address,), fetch="one")
        if not row:
            return None
        return Actor(
            address=row["address"],
            name=row["name"],
            role=Role(row["role"]),
            is_registered=row["is_registered"],
        )

    def add_actor(self, actor: Actor) -> None:
        query = sql.SQL(
            "INSERT INTO {} (address, name, role, is_registered) "
            "VALUES (%s, %s, %s, %s)",
        ).format(self._table("actors"))
        self._execute(
            query, (actor.address, actor.name, int(actor.role), actor.is_registered),
        )

    def get_medication(self, medication_id: str) -> Medication | None:
        query = sql.SQL(
            "SELECT medication_id, details_hash, registered_by, current_holder, "
            "is_validated FROM {} WHERE medication_id = %s",
        ).format(self._table("medications"))
        row = self._execute(query, (medication_id,), fetch="one")
        return Medication(**row) if row else None

    def add_medication(self, medication: Medication) -> None:
        query = sql.SQL(
            "INSERT INTO {} (medication_id, details_hash, registered_by, "
            "current_holder, is_validated) VALUES (%s, %s, %s, %s, %s)",
        ).format(self._table("medications"))
        self._execute(
            query,
            (
                medication.medication_id,
                medication.details_hash,
                medication.registered_by,
                medication.current_holder,
                medication.is_validated,
            ),
        )

    def save_medication(self, medication: Medication) -> None:
        # Only possession and validation ever change after creation.
        query = sql.SQL(
            "UPDATE {} SET current_holder = %s, is_validated = %s "
            "WHERE medication_id = %s",
        ).format(self._table("medications"))
        self._execute(
            query,
            (
                medication.current_holder,
                medication.is_validated,
                medication.medication_id,
            ),
        )
        if self.cursor.rowcount == 0:
            msg = f"Medication {medication.medication_id} does not exist"
            raise KeyError(msg)

    def append_event(self, event: LedgerEvent) -> LedgerEvent:
        query = sql.SQL(
            "INSERT INTO {} (event, caller, medication_id, subject, details, "
            "recorded_at) VALUES (%s, %s, %s, %s, %s, %s) RETURNING seq",
        ).format(self._table("ledger_events"))
        row = self._execute(
            query,
            (
                event.event.value,
                event.caller,
                event.medication_id,
                event.subject,
                Jsonb(event.details),
                event.recorded_at,
            ),
            fetch="one",
        )
        return event.model_copy(update={"seq": row["seq"]})

    def list_events(self, medication_id: str | None = None) -> list[LedgerEvent]:
        columns = sql.SQL(
            "SELECT seq, event, caller, medication_id, subject, details, recorded_at "
            "FROM {}",
        ).format(self._table("ledger_events"))
        if medication_id is None:
            query = sql.SQL("{} ORDER BY seq").format(columns)
            rows = self._execute(query, fetch="all")
        else:
            query = sql.SQL("{} WHERE medication_id = %s ORDER BY seq").format(columns)
            rows = self._execute(query, (medication_id,), fetch="all")
        return [LedgerEvent(**row) for row in rows]
