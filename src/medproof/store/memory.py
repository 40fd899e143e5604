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
"""Provides a process-local ledger store backed by dictionaries."""

import threading
import types

from ..models import Actor, LedgerEvent, Medication
from .base import BaseStore


class InMemoryStore(BaseStore):
    """A ledger store that keeps its tables in memory.

    Transactions are serialized with a re-entrant lock. The tables are
    snapshotted when the outermost transaction begins and restored if it
    fails, so a rejected call never leaves partial state behind. Records are
    immutable models, so shallow copies of the tables are sufficient.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshot: tuple | None = None
        self._owner: str | None = None
        self._actors: dict[str, Actor] = {}
        self._medications: dict[str, Medication] = {}
        self._events: list[LedgerEvent] = []

    def __enter__(self) -> "InMemoryStore":
        """Acquire the writer lock and snapshot the tables."""
        self._lock.acquire()
        if self._depth == 0:
            self._snapshot = (
                self._owner,
                dict(self._actors),
                dict(self._medications),
                list(self._events),
            )
        self._depth += 1
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        """Drop the snapshot on success or restore it on error."""
        try:
            self._depth -= 1
            if self._depth == 0:
                if exc_type and self._snapshot is not None:
                    (
                        self._owner,
                        self._actors,
                        self._medications,
                        self._events,
                    ) = self._snapshot
                self._snapshot = None
        finally:
            self._lock.release()

    def _require_transaction(self) -> None:
        if self._depth == 0:
            msg = (
                "No active transaction. "
                "The store must be used as a context manager."
            )
            raise RuntimeError(msg)

    def get_owner(self) -> str | None:
        self._require_transaction()
        return self._owner

    def set_owner(self, address: str) -> None:
        self._require_transaction()
        self._owner = address

    def get_actor(self, address: str) -> Actor | None:
        self._require_transaction()
        return self._actors.get(address)

    def add_actor(self, actor: Actor) -> None:
        self._require_transaction()
        if actor.address in self._actors:
            msg = f"Actor {actor.address} already exists"
            raise KeyError(msg)
        self._actors[actor.address] = actor

    def get_medication(self, medication_id: str) -> Medication | None:
        self._require_transaction()
        return self._medications.get(medication_id)

    def add_medication(self, medication: Medication) -> None:
        self._require_transaction()
        if medication.medication_id in self._medications:
            msg = f"Medication {medication.medication_id} already exists"
            raise KeyError(msg)
        self._medications[medication.medication_id] = medication

    def save_medication(self, medication: Medication) -> None:
        self._require_transaction()
        if medication.medication_id not in self._medications:
            msg = f"Medication {medication.medication_id} does not exist"
            raise KeyError(msg)
        self._medications[medication.medication_id] = medication

    def append_event(self, event: LedgerEvent) -> LedgerEvent:
        self._require_transaction()
        stored = event.model_copy(update={"seq": len(self._events) + 1})
        self._events.append(stored)
        return stored

    def list_events(self, medication_id: str | None = None) -> list[LedgerEvent]:
        self._require_transaction()
        if medication_id is None:
            return list(self._events)
        return [e for e in self._events if e.medication_id == medication_id]
