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
"""Error taxonomy for the custody ledger.

Every rejected call raises exactly one of these, before any state is written.
"""


class LedgerError(Exception):
    """Base class for all custody ledger failures."""

    message = "Ledger operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class Unauthorized(LedgerError):
    """The caller is not the ledger owner."""

    message = "Only the ledger owner can perform this operation"

    def __init__(self, caller: str) -> None:
        self.caller = caller
        super().__init__()


class AlreadyRegistered(LedgerError):
    message = "Actor already registered"

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__()


class DuplicateMedication(LedgerError):
    message = "Medication already registered"

    def __init__(self, medication_id: str) -> None:
        self.medication_id = medication_id
        super().__init__()


class NotRegisteredActor(LedgerError):
    message = "Not a registered actor"

    def __init__(self, caller: str) -> None:
        self.caller = caller
        super().__init__()


class NotFound(LedgerError):
    message = "Medication not registered"

    def __init__(self, medication_id: str) -> None:
        self.medication_id = medication_id
        super().__init__()


class NotHolder(LedgerError):
    message = "You do not have possession of this medication"

    def __init__(self, caller: str, medication_id: str) -> None:
        self.caller = caller
        self.medication_id = medication_id
        super().__init__()


class NotPharmacyHolder(LedgerError):
    """A sale was attempted by someone who is not a pharmacy holding the unit.

    Both conditions are reported as this single error; ``reason`` records
    which one failed ("not_holder" or "not_pharmacy").
    """

    message = (
        "Either you do not have possession of this medication "
        "or you are not a pharmacy"
    )

    def __init__(self, caller: str, medication_id: str, reason: str) -> None:
        self.caller = caller
        self.medication_id = medication_id
        self.reason = reason
        super().__init__()


class LedgerNotInitialized(LedgerError):
    message = "Ledger has no owner; initialize it with an owner address first"


class OwnerMismatch(LedgerError):
    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Ledger is already owned by {actual}, not {expected}")
