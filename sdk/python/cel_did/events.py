"""DID Event Log wire format, hashing and authoring.

A log is ``{"log": [entry, ...]}``; each entry holds the ``event``, the
controller ``proof`` list and the ``witness`` proof list. An event's hash
is the base58btc multibase of the sha2-256 multihash of its RFC 8785
canonical JSON, taken exactly as stored. Event 0's hash is the did:cel
method-specific id; every later event links its predecessor through
``previousEventHash``.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from cel_did.did import CelDid
from cel_did.document import Service, VerificationMethod
from cel_did.encoding import b58_encode, multihash
from cel_did.errors import MalformedEventError
from cel_did.signing import CryptoSuite, DataIntegrityProof, canonicalize, format_created

OperationType = Literal["create", "update", "heartbeat", "deactivate", "reactivate"]

_NO_CHANGES: frozenset[str] = frozenset({"heartbeat", "deactivate", "reactivate"})


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")


class AddKey(_Wire):
    action: Literal["addKey"] = "addKey"
    verification_method: VerificationMethod = Field(alias="verificationMethod")


class RotateKey(_Wire):
    action: Literal["rotateKey"] = "rotateKey"
    id: str
    verification_method: VerificationMethod = Field(alias="verificationMethod")


class RevokeKey(_Wire):
    action: Literal["revokeKey"] = "revokeKey"
    id: str


class AddService(_Wire):
    action: Literal["addService"] = "addService"
    service: Service


class RemoveService(_Wire):
    action: Literal["removeService"] = "removeService"
    id: str


Change = Annotated[
    AddKey | RotateKey | RevokeKey | AddService | RemoveService,
    Field(discriminator="action"),
]


class Operation(_Wire):
    type: OperationType
    changes: list[Change] = Field(default_factory=list)

    @model_validator(mode="after")
    def _no_changes_on_markers(self) -> Operation:
        if self.changes and self.type in _NO_CHANGES:
            raise ValueError(f"{self.type} events carry no changes")
        return self


class Event(_Wire):
    operation: Operation
    timestamp: str
    previous_event_hash: str | None = Field(default=None, alias="previousEventHash")

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, value: str) -> str:
        parse_timestamp(value)
        return value

    @property
    def moment(self) -> datetime:
        return parse_timestamp(self.timestamp)


class LogEntry(_Wire):
    event: Event
    proof: list[DataIntegrityProof] = Field(default_factory=list)
    witness: list[DataIntegrityProof] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LogRecord:
    """A validated entry with the hash of its event as stored."""

    index: int
    entry: LogEntry
    raw_event: dict[str, Any]
    event_hash: str

    @property
    def event(self) -> Event:
        return self.entry.event


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp that carries a UTC offset."""
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        raise ValueError("timestamp must carry a UTC offset")
    return moment


def hash_event(event: dict[str, Any], algorithm: str = "sha256") -> str:
    """Multibase multihash of an event's canonical JSON."""
    return b58_encode(multihash(canonicalize(event), algorithm))


def parse_log(data: bytes | str | dict[str, Any]) -> list[LogRecord]:
    """Validate a serialized event log.

    Raises:
        MalformedEventError: If the log or one of its entries is malformed;
            the error names the entry index.
    """
    if isinstance(data, (bytes, str)):
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise MalformedEventError(0, f"event log is not JSON: {exc}") from exc

    entries = data.get("log") if isinstance(data, dict) else None
    if not isinstance(entries, list) or not entries:
        raise MalformedEventError(0, "event log must be an object with a non-empty 'log' list")

    records = []
    for index, raw in enumerate(entries):
        try:
            entry = LogEntry.model_validate(raw)
        except ValidationError as exc:
            raise MalformedEventError(index, str(exc)) from exc
        records.append(
            LogRecord(
                index=index,
                entry=entry,
                raw_event=raw["event"],
                event_hash=hash_event(raw["event"]),
            )
        )

    return records


@dataclass(frozen=True, slots=True)
class Signer:
    """A cryptosuite paired with the verification method it signs as."""

    suite: CryptoSuite
    verification_method: str

    def sign(self, digest: str) -> DataIntegrityProof:
        return self.suite.sign(digest, self.verification_method)


class EventLogBuilder:
    """
    Authors a did:cel event log.

    Every appended event is linked to the current head, signed by the
    controllers and attested by the witnesses.

    Example:
        >>> builder = EventLogBuilder(controllers=[Signer(suite, "#key-1")])
        >>> did = builder.create([AddKey(verification_method=vm)])
        >>> builder.heartbeat()
        >>> log_bytes = builder.to_json()
    """

    def __init__(
        self,
        controllers: Sequence[Signer],
        witnesses: Sequence[Signer] = (),
    ) -> None:
        self.controllers = list(controllers)
        self.witnesses = list(witnesses)
        self._entries: list[dict[str, Any]] = []
        self._head: str | None = None

    @property
    def head(self) -> str | None:
        """Hash of the most recent event."""
        return self._head

    @property
    def did(self) -> CelDid:
        if not self._entries:
            raise ValueError("log has no genesis event")
        return CelDid.from_genesis_hash(hash_event(self._entries[0]["event"]))

    def create(
        self,
        changes: Sequence[AddKey | AddService],
        timestamp: datetime | str | None = None,
    ) -> CelDid:
        """Write the genesis event and return the resulting DID."""
        if self._entries:
            raise ValueError("log already has a genesis event")
        self.append("create", changes, timestamp)
        return self.did

    def update(self, changes: Sequence[Any], timestamp: datetime | str | None = None) -> str:
        return self.append("update", changes, timestamp)

    def heartbeat(self, timestamp: datetime | str | None = None) -> str:
        return self.append("heartbeat", (), timestamp)

    def deactivate(self, timestamp: datetime | str | None = None) -> str:
        return self.append("deactivate", (), timestamp)

    def reactivate(self, timestamp: datetime | str | None = None) -> str:
        return self.append("reactivate", (), timestamp)

    def append(
        self,
        operation: OperationType,
        changes: Sequence[Any],
        timestamp: datetime | str | None = None,
    ) -> str:
        """Append a signed, witnessed event. Returns its hash."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)
        if isinstance(timestamp, datetime):
            timestamp = format_created(timestamp)

        event = Event(
            operation=Operation(type=operation, changes=list(changes)),
            timestamp=timestamp,
            previous_event_hash=self._head,
        )
        event_data = event.model_dump(by_alias=True, exclude_none=True)
        event_hash = hash_event(event_data)

        self._entries.append(
            {
                "event": event_data,
                "proof": [signer.sign(event_hash).to_dict() for signer in self.controllers],
                "witness": [signer.sign(event_hash).to_dict() for signer in self.witnesses],
            }
        )
        self._head = event_hash
        return event_hash

    def to_dict(self) -> dict[str, Any]:
        """The log as plain JSON data (a deep copy)."""
        return json.loads(self.to_json())

    def to_json(self) -> bytes:
        return json.dumps({"log": self._entries}).encode("utf-8")

    def __len__(self) -> int:
        return len(self._entries)
