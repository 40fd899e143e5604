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
"""Defines the abstract base class for ledger stores."""

import abc
import types

from ..models import Actor, LedgerEvent, Medication


class BaseStore(abc.ABC):
    """Abstract Base Class for all ledger stores.

    A store holds the actor registry, the medication registry, the ledger
    owner and the audit trail. It acts as a context manager: entering it
    begins a single-writer transaction, leaving it commits on success or
    rolls back everything written inside the block on error. All other
    methods must only be called inside such a block.
    """

    @abc.abstractmethod
    def __enter__(self) -> "BaseStore":
        """Begin a serialized transaction.

        Returns:
            The store instance.

        """
        raise NotImplementedError

    @abc.abstractmethod
    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        """Commit the transaction on success or roll back on error."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_owner(self) -> str | None:
        """Return the ledger owner address, or None if none is recorded."""
        raise NotImplementedError

    @abc.abstractmethod
    def set_owner(self, address: str) -> None:
        """Record the ledger owner. Called once, when the ledger is deployed."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_actor(self, address: str) -> Actor | None:
        raise NotImplementedError

    @abc.abstractmethod
    def add_actor(self, actor: Actor) -> None:
        """Insert a new actor. The address must not already be present."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_medication(self, medication_id: str) -> Medication | None:
        raise NotImplementedError

    @abc.abstractmethod
    def add_medication(self, medication: Medication) -> None:
        """Insert a new medication. The id must not already be present."""
        raise NotImplementedError

    @abc.abstractmethod
    def save_medication(self, medication: Medication) -> None:
        """Replace an existing medication record with an updated copy."""
        raise NotImplementedError

    @abc.abstractmethod
    def append_event(self, event: LedgerEvent) -> LedgerEvent:
        """Append an audit event.

        Returns:
            The stored event, with its sequence number assigned.

        """
        raise NotImplementedError

    @abc.abstractmethod
    def list_events(self, medication_id: str | None = None) -> list[LedgerEvent]:
        """Return audit events in append order, optionally for one medication."""
        raise NotImplementedError
