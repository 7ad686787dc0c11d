"""Tests for the event log wire format and authoring."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from cel_did import (
    AddKey,
    AddService,
    CelDid,
    Ed25519Key,
    EventLogBuilder,
    MalformedEventError,
    RevokeKey,
    Service,
    hash_event,
    parse_log,
)
from cel_did.encoding import multibase_decode, multihash
from cel_did.events import Event, Operation
from cel_did.signing import canonicalize

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestHashEvent:
    def test_multibase_multihash(self) -> None:
        """Event hashes are base58btc sha2-256 multihashes of the canonical JSON."""
        event = {"timestamp": "2026-01-01T00:00:00Z", "operation": {"type": "heartbeat"}}

        event_hash = hash_event(event)

        assert event_hash.startswith("z")
        assert multibase_decode(event_hash) == multihash(canonicalize(event))

    def test_key_order_irrelevant(self) -> None:
        assert hash_event({"a": 1, "b": 2}) == hash_event({"b": 2, "a": 1})

    def test_sha384(self) -> None:
        decoded = multibase_decode(hash_event({"a": 1}, "sha384"))

        assert decoded[:2] == bytes([0x20, 48])


class TestWireModels:
    def test_markers_carry_no_changes(self) -> None:
        with pytest.raises(ValidationError, match="carry no changes"):
            Operation(type="heartbeat", changes=[RevokeKey(id="#key-1")])

    def test_change_discriminator(self) -> None:
        operation = Operation.model_validate(
            {"type": "update", "changes": [{"action": "revokeKey", "id": "#key-1"}]}
        )

        assert operation.changes == [RevokeKey(id="#key-1")]

    def test_unknown_action(self) -> None:
        with pytest.raises(ValidationError):
            Operation.model_validate({"type": "update", "changes": [{"action": "rename"}]})

    def test_unknown_operation(self) -> None:
        with pytest.raises(ValidationError):
            Operation(type="suspend")

    @pytest.mark.parametrize(
        "timestamp",
        ["2026-01-01T00:00:00", "yesterday", ""],
        ids=["naive", "text", "empty"],
    )
    def test_timestamp_requires_offset(self, timestamp: str) -> None:
        with pytest.raises(ValidationError):
            Event(operation=Operation(type="heartbeat"), timestamp=timestamp)

    def test_moment(self) -> None:
        event = Event(operation=Operation(type="heartbeat"), timestamp="2026-01-01T01:00:00+01:00")

        assert event.moment == T0


class TestParseLog:
    def test_records(self, builder: EventLogBuilder) -> None:
        builder.heartbeat(timestamp=T0 + timedelta(hours=1))

        records = parse_log(builder.to_json())

        assert [record.index for record in records] == [0, 1]
        assert records[0].event_hash == builder.did.method_specific_id
        assert records[1].event.previous_event_hash == records[0].event_hash
        assert records[1].event_hash == builder.head

    def test_accepts_str_and_dict(self, builder: EventLogBuilder) -> None:
        from_bytes = parse_log(builder.to_json())

        assert parse_log(builder.to_json().decode()) == from_bytes
        assert parse_log(builder.to_dict()) == from_bytes

    def test_hashes_event_as_stored(self, builder: EventLogBuilder) -> None:
        """Unknown formatting of the stored JSON does not affect the hash."""
        pretty = json.dumps(builder.to_dict(), indent=4, sort_keys=True)

        assert parse_log(pretty)[0].event_hash == builder.did.method_specific_id

    @pytest.mark.parametrize(
        "data",
        [b"{not json", b"[]", b"{}", b'{"log": []}', b'{"log": {}}'],
        ids=["not-json", "array", "no-log", "empty", "not-a-list"],
    )
    def test_malformed_log(self, data: bytes) -> None:
        with pytest.raises(MalformedEventError) as exc_info:
            parse_log(data)

        assert exc_info.value.index == 0

    def test_malformed_entry_index(self, builder: EventLogBuilder) -> None:
        builder.heartbeat(timestamp=T0 + timedelta(hours=1))
        data = builder.to_dict()
        data["log"][1]["event"]["operation"]["type"] = "suspend"

        with pytest.raises(MalformedEventError) as exc_info:
            parse_log(data)

        assert exc_info.value.index == 1
        assert exc_info.value.rule == "MalformedEvent"

    def test_unknown_entry_field(self, builder: EventLogBuilder) -> None:
        data = builder.to_dict()
        data["log"][0]["extra"] = True

        with pytest.raises(MalformedEventError, match="at event 0"):
            parse_log(data)


class TestEventLogBuilder:
    def test_create(self, controller, make_signer, key_method) -> None:
        log = EventLogBuilder(controllers=[make_signer(controller, "#key-1")])
        did = log.create([AddKey(verification_method=key_method(controller))], timestamp=T0)

        assert isinstance(did, CelDid)
        assert did.method_specific_id == log.head
        assert len(log) == 1

        entry = log.to_dict()["log"][0]
        assert entry["event"] == {
            "operation": {
                "type": "create",
                "changes": [
                    {
                        "action": "addKey",
                        "verificationMethod": {
                            "id": "#key-1",
                            "type": "Multikey",
                            "publicKeyMultibase": controller.did.key_id,
                        },
                    }
                ],
            },
            "timestamp": "2026-01-01T00:00:00Z",
        }
        assert [proof["verificationMethod"] for proof in entry["proof"]] == ["#key-1"]
        assert entry["witness"] == []

    def test_chain_links(self, builder: EventLogBuilder) -> None:
        genesis = builder.head
        second = builder.heartbeat(timestamp=T0 + timedelta(hours=1))
        third = builder.update(
            [
                AddService(
                    service=Service(
                        id="#storage", type="CelStorageService", service_endpoint="https://x/"
                    )
                )
            ],
            timestamp=T0 + timedelta(hours=2),
        )

        events = [entry["event"] for entry in builder.to_dict()["log"]]

        assert "previousEventHash" not in events[0]
        assert events[1]["previousEventHash"] == genesis
        assert events[2]["previousEventHash"] == second
        assert builder.head == third == hash_event(events[2])

    def test_witness_proofs(self, controller, make_signer, key_method) -> None:
        witness = Ed25519Key.generate()
        log = EventLogBuilder(
            controllers=[make_signer(controller, "#key-1")],
            witnesses=[make_signer(witness)],
        )
        log.create([AddKey(verification_method=key_method(controller))], timestamp=T0)

        (proof,) = log.to_dict()["log"][0]["witness"]
        assert proof["verificationMethod"] == witness.verification_method

    def test_string_timestamp(self, builder: EventLogBuilder) -> None:
        builder.deactivate(timestamp="2026-01-01T06:00:00+00:00")

        assert builder.to_dict()["log"][1]["event"]["timestamp"] == "2026-01-01T06:00:00+00:00"

    def test_create_twice(self, builder: EventLogBuilder) -> None:
        with pytest.raises(ValueError, match="already has a genesis"):
            builder.create([], timestamp=T0)

    def test_did_before_create(self, make_signer, controller) -> None:
        log = EventLogBuilder(controllers=[make_signer(controller)])

        with pytest.raises(ValueError, match="no genesis"):
            log.did

    def test_to_dict_is_a_copy(self, builder: EventLogBuilder) -> None:
        data = builder.to_dict()
        data["log"][0]["event"]["timestamp"] = "tampered"

        assert builder.to_dict()["log"][0]["event"]["timestamp"] == "2026-01-01T00:00:00Z"
