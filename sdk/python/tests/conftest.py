"""Shared fixtures for cel-did tests."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest

from cel_did import (
    AddKey,
    CryptoSuite,
    Ed25519Key,
    EventLogBuilder,
    EventLogVerifier,
    Profile,
    Signer,
    SigningOracle,
    ThresholdWitnessPolicy,
    VerificationMethod,
)

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
INTERVAL = timedelta(days=1)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def make_signer() -> Callable[..., Signer]:
    """Build a Signer for a key; signs synchronously with no timeout."""

    def factory(
        key: SigningOracle,
        verification_method: str | None = None,
        profile: Profile = Profile.JCS,
    ) -> Signer:
        suite = CryptoSuite.from_oracle(key, profile, signing_timeout=None)
        return Signer(suite, verification_method or key.verification_method)

    return factory


@pytest.fixture
def key_method() -> Callable[..., VerificationMethod]:
    """Build a relative Multikey verification method for a key."""

    def factory(key: SigningOracle, key_id: str = "#key-1") -> VerificationMethod:
        return VerificationMethod(id=key_id, public_key_multibase=key.did.key_id)

    return factory


@pytest.fixture
def controller() -> Ed25519Key:
    return Ed25519Key.generate()


@pytest.fixture
def builder(controller, make_signer, key_method) -> EventLogBuilder:
    """A log whose genesis declares ``controller`` as ``#key-1``."""
    log = EventLogBuilder(controllers=[make_signer(controller, "#key-1")])
    log.create([AddKey(verification_method=key_method(controller))], timestamp=T0)
    return log


@pytest.fixture
def verifier() -> EventLogVerifier:
    return EventLogVerifier(ThresholdWitnessPolicy(0), INTERVAL)
