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
"""Defines the Pydantic data models for the custody ledger."""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

DetailsHash = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, pattern=r"^0x[0-9a-fA-F]{64}$"),
]
Address = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class Role(IntEnum):
    """Supply-chain role of a registered actor."""

    MANUFACTURER = 0
    DISTRIBUTOR = 1
    PHARMACY = 2

    @classmethod
    def parse(cls, value: "str | int | Role") -> "Role":
        """Resolve a role from its numeric value or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        text = str(value).strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            msg = f"Unknown role: {value!r}"
            raise ValueError(msg) from None


class EventType(str, Enum):
    ACTOR_REGISTERED = "ActorRegistered"
    MEDICATION_REGISTERED = "MedicationRegistered"
    MEDICATION_TRANSFERRED = "MedicationTransferred"
    MEDICATION_SOLD = "MedicationSold"
    MEDICATION_VALIDATED = "MedicationValidated"


class Actor(BaseModel):
    """A registered supply-chain participant."""

    model_config = ConfigDict(frozen=True)

    address: Address
    name: str
    role: Role
    is_registered: bool = True


class Medication(BaseModel):
    """Custody record for a single pharmaceutical unit.

    Records are immutable; state transitions replace the record with an
    updated copy (see ``model_copy``).
    """

    model_config = ConfigDict(frozen=True)

    # Named medication_id rather than id to avoid shadowing a Python builtin
    medication_id: Address = Field(..., description="Caller-supplied unique identifier.")
    details_hash: DetailsHash = Field(
        ..., description="Digest of the off-chain medication details."
    )
    registered_by: Address = Field(
        ..., description="Address of the actor that registered the unit."
    )
    current_holder: str | None = Field(
        ..., description="Address in possession of the unit; None once sold."
    )
    is_validated: bool = False

    @property
    def is_sold(self) -> bool:
        return self.current_holder is None


class Verification(BaseModel):
    """Result of a verification query."""

    medication_id: str
    registered_by: str
    details_hash: str
    is_validated: bool
    current_holder: str | None


class LedgerEvent(BaseModel):
    """Append-only audit record emitted by every committed transition."""

    # Assigned by the store when the event is appended.
    seq: int | None = None
    event: EventType
    caller: str
    medication_id: str | None = None
    subject: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
