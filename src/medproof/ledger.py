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
"""The access-controlled custody ledger.

Tracks which registered actor holds each medication unit, from registration
through any number of transfers to the final sale by a pharmacy. Every
mutating call takes the caller's address explicitly and runs as one store
transaction: preconditions are checked first, and any failure rolls the
whole call back.
"""

import logging

from pydantic import TypeAdapter

from .errors import (
    AlreadyRegistered,
    DuplicateMedication,
    LedgerError,
    LedgerNotInitialized,
    NotFound,
    NotHolder,
    NotPharmacyHolder,
    NotRegisteredActor,
    OwnerMismatch,
    Unauthorized,
)
from .models import Actor, Address, EventType, LedgerEvent, Medication, Role, Verification
from .store.base import BaseStore

logger = logging.getLogger(__name__)

# Addresses and ids are stripped before any lookup so that keys read from the
# store always match the keys written to it.
_identifier = TypeAdapter(Address).validate_python


def _reject(error: LedgerError) -> LedgerError:
    logger.warning("Rejected ledger call: %s", error)
    return error


class CustodyLedger:
    """Actor registry and medication custody state machine."""

    def __init__(self, store: BaseStore, owner: str | None = None) -> None:
        """Attach to a store, recording ``owner`` if the store has none yet.

        Args:
            store: The transactional store holding the registries.
            owner: The administrative principal. Required the first time a
                   store is used; afterwards it must match the recorded owner
                   or be omitted.

        """
        self.store = store
        if owner is not None:
            owner = _identifier(owner)
        with store:
            recorded = store.get_owner()
            if recorded is None:
                if owner is None:
                    raise LedgerNotInitialized()
                store.set_owner(owner)
                logger.info("Initialized ledger with owner %s", owner)
                recorded = owner
            elif owner is not None and owner != recorded:
                raise OwnerMismatch(expected=owner, actual=recorded)
        self.owner = recorded

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise _reject(Unauthorized(caller))

    def _require_medication(self, medication_id: str) -> Medication:
        medication = self.store.get_medication(medication_id)
        if medication is None:
            raise _reject(NotFound(medication_id))
        return medication

    def register_actor(self, caller: str, address: str, name: str, role: Role | int | str) -> Actor:
        """Register a supply-chain participant. Owner only; once per address."""
        caller, address = _identifier(caller), _identifier(address)
        with self.store as store:
            self._require_owner(caller)
            if store.get_actor(address) is not None:
                raise _reject(AlreadyRegistered(address))
            actor = Actor(address=address, name=name, role=Role.parse(role))
            store.add_actor(actor)
            store.append_event(
                LedgerEvent(
                    event=EventType.ACTOR_REGISTERED,
                    caller=caller,
                    subject=address,
                    details={"name": name, "role": actor.role.name},
                ),
            )
        logger.info("Registered actor %s (%s) as %s", address, name, actor.role.name)
        return actor

    def register_medication(self, caller: str, medication_id: str, details_hash: str) -> Medication:
        """Register a new medication unit held by the caller.

        Any registered actor may register a medication, whatever its role.
        """
        caller, medication_id = _identifier(caller), _identifier(medication_id)
        with self.store as store:
            if store.get_actor(caller) is None:
                raise _reject(NotRegisteredActor(caller))
            if store.get_medication(medication_id) is not None:
                raise _reject(DuplicateMedication(medication_id))
            medication = Medication(
                medication_id=medication_id,
                details_hash=details_hash,
                registered_by=caller,
                current_holder=caller,
            )
            store.add_medication(medication)
            store.append_event(
                LedgerEvent(
                    event=EventType.MEDICATION_REGISTERED,
                    caller=caller,
                    medication_id=medication_id,
                    subject=caller,
                    details={"details_hash": medication.details_hash},
                ),
            )
        logger.info("Registered medication %s by %s", medication_id, caller)
        return medication

    def transfer_medication(self, caller: str, medication_id: str, to_address: str) -> Medication:
        """Hand a medication over to ``to_address``. Only the holder may do this."""
        caller, medication_id = _identifier(caller), _identifier(medication_id)
        to_address = _identifier(to_address)
        with self.store as store:
            medication = self._require_medication(medication_id)
            if medication.current_holder is None or caller != medication.current_holder:
                raise _reject(NotHolder(caller, medication_id))
            medication = medication.model_copy(update={"current_holder": to_address})
            store.save_medication(medication)
            store.append_event(
                LedgerEvent(
                    event=EventType.MEDICATION_TRANSFERRED,
                    caller=caller,
                    medication_id=medication_id,
                    subject=to_address,
                    details={"from": caller, "to": to_address},
                ),
            )
        logger.info("Transferred medication %s from %s to %s", medication_id, caller, to_address)
        return medication

    def sell_medication(self, caller: str, medication_id: str) -> Medication:
        """Sell a medication to the public, ending its custody chain.

        The caller must hold the unit and be registered as a pharmacy.
        """
        caller, medication_id = _identifier(caller), _identifier(medication_id)
        with self.store as store:
            medication = self._require_medication(medication_id)
            if medication.current_holder is None or caller != medication.current_holder:
                raise _reject(NotPharmacyHolder(caller, medication_id, reason="not_holder"))
            actor = store.get_actor(caller)
            if actor is None or actor.role is not Role.PHARMACY:
                raise _reject(NotPharmacyHolder(caller, medication_id, reason="not_pharmacy"))
            medication = medication.model_copy(update={"current_holder": None})
            store.save_medication(medication)
            store.append_event(
                LedgerEvent(
                    event=EventType.MEDICATION_SOLD,
                    caller=caller,
                    medication_id=medication_id,
                    subject=caller,
                ),
            )
        logger.info("Medication %s sold by %s", medication_id, caller)
        return medication

    def validate_medication(self, caller: str, medication_id: str) -> Medication:
        """Mark a medication as authentic. Owner only; idempotent."""
        caller, medication_id = _identifier(caller), _identifier(medication_id)
        with self.store as store:
            self._require_owner(caller)
            medication = self._require_medication(medication_id)
            medication = medication.model_copy(update={"is_validated": True})
            store.save_medication(medication)
            store.append_event(
                LedgerEvent(
                    event=EventType.MEDICATION_VALIDATED,
                    caller=caller,
                    medication_id=medication_id,
                ),
            )
        logger.info("Medication %s validated", medication_id)
        return medication

    def verify_medication(self, medication_id: str) -> Verification:
        medication_id = _identifier(medication_id)
        with self.store:
            medication = self._require_medication(medication_id)
        return Verification(
            medication_id=medication.medication_id,
            registered_by=medication.registered_by,
            details_hash=medication.details_hash,
            is_validated=medication.is_validated,
            current_holder=medication.current_holder,
        )

    def get_actor(self, address: str) -> Actor | None:
        address = _identifier(address)
        with self.store as store:
            return store.get_actor(address)

    def get_medication(self, medication_id: str) -> Medication | None:
        medication_id = _identifier(medication_id)
        with self.store as store:
            return store.get_medication(medication_id)

    def custody_history(self, medication_id: str) -> list[LedgerEvent]:
        """Return the audit events concerning one medication, oldest first."""
        medication_id = _identifier(medication_id)
        with self.store as store:
            self._require_medication(medication_id)
            return store.list_events(medication_id)

    def events(self) -> list[LedgerEvent]:
        with self.store as store:
            return store.list_events()
