"""DID Event Log verification.

Walks a log in order and rebuilds the DID document from it:

1. Inception: event 0 must hash to the genesis hash the DID commits to
2. Chain: each event names the hash of its predecessor
3. Authorization: each event carries a proof from a key authorized by the
   state before it (event 0 by a key it declares itself)
4. Witnesses: the injected policy must accept the witnesses whose proofs
   verify
5. Liveness: consecutive timestamps are at most one heartbeat interval
   (plus tolerance) apart, unless the earlier event is a deactivation
6. Projection: the event's changes are folded into the document

Any violation rejects the whole log; the error names the event index and
the rule.
"""

from __future__ import annotations

import enum
import hashlib
from collections.abc import Iterable, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Protocol

from cel_did.config import Settings
from cel_did.did import CelDid, Did
from cel_did.document import DidDocument
from cel_did.errors import (
    CelError,
    ChainBrokenError,
    InceptionMismatchError,
    LivenessGapExceededError,
    MalformedEventError,
    ResolutionError,
    UnapprovedStorageOriginError,
    UnauthorizedEventError,
    WitnessQuorumNotMetError,
)
from cel_did.events import (
    AddKey,
    AddService,
    LogRecord,
    RemoveService,
    RevokeKey,
    RotateKey,
    parse_log,
    parse_timestamp,
)
from cel_did.logging import get_logger
from cel_did.signing import DataIntegrityProof, canonicalize, constant_time_compare
from cel_did.verifier import verify_proof

logger = get_logger(__name__)


class ResolutionState(enum.Enum):
    AWAITING_INCEPTION = "AwaitingInception"
    VERIFYING_CHAIN = "VerifyingChain"
    PROJECTING_STATE = "ProjectingState"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


class WitnessPolicy(Protocol):
    """Decides whether the verified witnesses of an event form a quorum."""

    def __call__(self, index: int, event_hash: str, witnesses: Sequence[str]) -> bool: ...


@dataclass(frozen=True)
class ThresholdWitnessPolicy:
    """
    Requires ``threshold`` distinct witnesses.

    When ``witnesses`` is given only those DIDs count; otherwise any
    did:key witness with a valid proof counts.
    """

    threshold: int
    witnesses: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.threshold < 0:
            raise ValueError("threshold must not be negative")
        if self.witnesses is not None:
            object.__setattr__(
                self,
                "witnesses",
                frozenset(str(Did.parse(witness)) for witness in self.witnesses),
            )

    def __call__(self, index: int, event_hash: str, witnesses: Sequence[str]) -> bool:
        counted = set(witnesses)
        if self.witnesses is not None:
            counted &= self.witnesses
        return len(counted) >= self.threshold


class EventLogVerifier:
    """
    Verifies DID event logs and projects the resulting document.

    Instances hold only configuration and can be shared between threads;
    every call works on its own state.

    Example:
        >>> verifier = EventLogVerifier(ThresholdWitnessPolicy(2), timedelta(days=1))
        >>> document = verifier.verify("did:cel:z...", log_bytes)
    """

    def __init__(
        self,
        witness_policy: WitnessPolicy,
        heartbeat_interval: timedelta,
        heartbeat_tolerance: timedelta = timedelta(0),
        executor: Executor | None = None,
    ) -> None:
        if heartbeat_interval <= timedelta(0):
            raise ValueError("heartbeat interval must be positive")
        if heartbeat_tolerance < timedelta(0):
            raise ValueError("heartbeat tolerance must not be negative")
        self._policy = witness_policy
        self._max_gap = heartbeat_interval + heartbeat_tolerance
        self._executor = executor

    @classmethod
    def from_settings(cls, settings: Settings, executor: Executor | None = None) -> EventLogVerifier:
        witnesses = frozenset(settings.witnesses) if settings.witnesses is not None else None
        return cls(
            witness_policy=ThresholdWitnessPolicy(settings.witness_threshold, witnesses),
            heartbeat_interval=settings.heartbeat_interval,
            heartbeat_tolerance=settings.heartbeat_tolerance,
            executor=executor,
        )

    @property
    def max_gap(self) -> timedelta:
        return self._max_gap

    def verify(
        self,
        did: CelDid | str,
        log: bytes | str | dict[str, Any] | Sequence[LogRecord],
        now: datetime | None = None,
    ) -> DidDocument:
        """
        Verify ``log`` against ``did`` and return the projected document.

        Args:
            did: The identifier the log must belong to. A ``storage`` hint
                must be one of the document's storage services.
            log: Serialized log, its JSON data, or already parsed records.
            now: When given, the last event must also be recent enough.

        Raises:
            ValueError: If ``now`` carries no UTC offset.
            ResolutionError: The first rule the log violates.
        """
        if isinstance(did, str):
            did = CelDid.parse(did)
        if now is not None:
            _require_aware(now)

        bound = logger.bind(did=did.did)
        state = ResolutionState.AWAITING_INCEPTION
        try:
            records = _records(log)

            self._check_inception(did, records[0])

            state = ResolutionState.VERIFYING_CHAIN
            bound.debug("resolution_state", state=state.value, events=len(records))
            document = DidDocument(did=did.did)
            for record in records:
                document = self._verify_event(document, record, records)

            state = ResolutionState.PROJECTING_STATE
            bound.debug("resolution_state", state=state.value, head=document.head)
            if now is not None:
                self.check_liveness(document, now)

            state = ResolutionState.RESOLVED
            if did.storage is not None:
                self.check_storage(document, did.storage)

        except ResolutionError as exc:
            bound.warning(
                "resolution_rejected",
                state=ResolutionState.REJECTED.value,
                during=state.value,
                index=exc.index,
                rule=exc.rule,
                detail=exc.detail,
            )
            raise

        bound.info("resolution_state", state=ResolutionState.RESOLVED.value, events=len(records))
        return document

    def check_liveness(self, document: DidDocument, now: datetime) -> None:
        """Reject a document whose last event is older than the heartbeat allows.

        Raises:
            ValueError: If ``now`` carries no UTC offset.
            LivenessGapExceededError: If the heartbeat has lapsed.
        """
        _require_aware(now)
        if document.deactivated or document.updated is None:
            return
        gap = now - parse_timestamp(document.updated)
        if gap > self._max_gap:
            raise LivenessGapExceededError(
                document.event_count,
                f"no event for {gap}, heartbeat allows {self._max_gap}",
            )

    def check_storage(self, document: DidDocument, storage: str) -> None:
        """Reject a storage hint the document does not list as a storage service."""
        if not document.approves_storage(storage):
            raise UnapprovedStorageOriginError(
                document.event_count - 1,
                f"{storage} is not an approved storage service",
            )

    def _check_inception(self, did: CelDid, genesis: LogRecord) -> None:
        algorithm, committed = did.genesis_hash
        computed = hashlib.new(algorithm, canonicalize(genesis.raw_event)).digest()
        if not constant_time_compare(computed, committed):
            raise InceptionMismatchError(0, "genesis event does not hash to the DID")

    def _verify_event(
        self,
        document: DidDocument,
        record: LogRecord,
        records: Sequence[LogRecord],
    ) -> DidDocument:
        index = record.index
        event = record.event
        operation = event.operation.type

        if index == 0:
            if operation != "create" or event.previous_event_hash is not None:
                raise MalformedEventError(0, "log must start with a create event without predecessor")
            # the genesis event is signed by the keys it declares
            authority = self._project(document, record)
        else:
            previous = records[index - 1]
            if operation == "create":
                raise MalformedEventError(index, "create is only allowed as the first event")
            if event.previous_event_hash != previous.event_hash:
                raise ChainBrokenError(index, "previousEventHash does not match the preceding event")
            if document.deactivated and operation != "reactivate":
                raise MalformedEventError(index, f"{operation} after deactivation")
            if not document.deactivated and operation == "reactivate":
                raise MalformedEventError(index, "reactivate without deactivation")
            authority = document

        if not self._authorized(record, authority):
            raise UnauthorizedEventError(index, "no proof from an authorized key")

        witnesses = self._verified_witnesses(record)
        if not self._policy(index, record.event_hash, witnesses):
            raise WitnessQuorumNotMetError(
                index, f"witness policy rejected {len(witnesses)} verified witness(es)"
            )

        if index > 0:
            self._check_gap(records[index - 1], record)

        return authority if index == 0 else self._project(document, record)

    def _check_gap(self, previous: LogRecord, record: LogRecord) -> None:
        gap = record.event.moment - previous.event.moment
        if gap < timedelta(0):
            raise MalformedEventError(record.index, "timestamp precedes the previous event")
        if previous.event.operation.type == "deactivate":
            return
        if gap > self._max_gap:
            raise LivenessGapExceededError(
                record.index, f"gap of {gap} exceeds heartbeat allowance {self._max_gap}"
            )

    def _authorized(self, record: LogRecord, authority: DidDocument) -> bool:
        for proof in record.entry.proof:
            vm = authority.find_key(proof.verification_method)
            if vm is None:
                continue
            try:
                if verify_proof(vm.public_key, proof, record.event_hash):
                    return True
            except CelError as exc:
                logger.warning(
                    "controller_proof_malformed",
                    index=record.index,
                    verification_method=proof.verification_method,
                    error=str(exc),
                )
        return False

    def _verified_witnesses(self, record: LogRecord) -> list[str]:
        def check(proof: DataIntegrityProof) -> str | None:
            try:
                witness = Did.parse(proof.verification_method)
                if verify_proof(witness.public_key, proof, record.event_hash):
                    return str(witness)
            except CelError as exc:
                logger.warning(
                    "witness_proof_malformed",
                    index=record.index,
                    verification_method=proof.verification_method,
                    error=str(exc),
                )
            return None

        proofs = record.entry.witness
        results: Iterable[str | None]
        if self._executor is not None and len(proofs) > 1:
            results = self._executor.map(check, proofs)
        else:
            results = map(check, proofs)
        return sorted({witness for witness in results if witness is not None})

    def _project(self, document: DidDocument, record: LogRecord) -> DidDocument:
        operation = record.event.operation
        try:
            for change in operation.changes:
                if isinstance(change, AddKey):
                    document = document.with_key(change.verification_method)
                elif isinstance(change, RotateKey):
                    document = document.rotate_key(change.id, change.verification_method)
                elif isinstance(change, RevokeKey):
                    document = document.revoke_key(change.id)
                elif isinstance(change, AddService):
                    document = document.with_service(change.service)
                elif isinstance(change, RemoveService):
                    document = document.without_service(change.id)
        except ValueError as exc:
            raise MalformedEventError(record.index, str(exc)) from exc

        deactivated = document.deactivated
        if operation.type == "deactivate":
            deactivated = True
        elif operation.type == "reactivate":
            deactivated = False

        return replace(
            document,
            deactivated=deactivated,
            updated=record.event.timestamp,
            event_count=record.index + 1,
            head=record.event_hash,
        )


def _records(log: bytes | str | dict[str, Any] | Sequence[LogRecord]) -> Sequence[LogRecord]:
    if isinstance(log, (bytes, str, dict)):
        return parse_log(log)
    if not log:
        raise MalformedEventError(0, "event log is empty")
    return log


def _require_aware(now: datetime) -> None:
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must carry a UTC offset")
