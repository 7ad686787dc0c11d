"""Tests for the witness signing service handler."""

import json

import pytest

from cel_did import (
    CryptoSuite,
    DataIntegrityProof,
    Ed25519Key,
    Profile,
    Settings,
    WitnessService,
    verify_proof,
)
from cel_did.codec import KeyAlgorithm
from cel_did.signing import SuiteConfig

DIGEST = "z5C5b1uzYJN6pDR3aWgAqUMo"


@pytest.fixture
def key() -> Ed25519Key:
    return Ed25519Key.generate()


@pytest.fixture
def service(key: Ed25519Key) -> WitnessService:
    suite = CryptoSuite.from_oracle(key, Profile.JCS, signing_timeout=None)
    return WitnessService(suite, key.verification_method)


def _body(value) -> bytes:
    return json.dumps(value).encode()


class TestWitnessService:
    @pytest.mark.parametrize("digest", [DIGEST, "uAQIDBA"], ids=["base58btc", "base64url"])
    def test_signs_digest(self, service: WitnessService, key: Ed25519Key, digest: str) -> None:
        response = service.handle("POST", _body({"digestMultibase": digest}))

        assert response.status_code == 200
        assert response.content_type == "application/json"
        proof = DataIntegrityProof.model_validate_json(response.json())
        assert proof.verification_method == key.verification_method
        assert verify_proof(key.public_key, proof, digest)

    def test_method_case_insensitive(self, service: WitnessService) -> None:
        response = service.handle("post", _body({"digestMultibase": DIGEST}))

        assert response.status_code == 200

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_method_not_allowed(self, service: WitnessService, method: str) -> None:
        response = service.handle(method, b"")

        assert response.status_code == 405
        assert response.body == {"status": "Method Not Allowed", "message": "Use POST"}

    @pytest.mark.parametrize(
        ("body", "message"),
        [
            (b"{not json", None),
            (b"\x80\x81", None),
            (_body(["digestMultibase"]), "Malformatted body"),
            (_body({}), "Malformatted body"),
            (_body({"digestMultibase": DIGEST, "nonce": "x"}), "Malformatted body"),
            (_body({"digest": DIGEST}), "value must be JSON string"),
            (_body({"digestMultibase": 42}), "value must be JSON string"),
            (_body({"digestMultibase": "f00ff"}), "must be multibase"),
            (_body({"digestMultibase": "z0OIl"}), "must be multibase"),
            (_body({"digestMultibase": "uAQ=="}), "must be multibase"),
        ],
        ids=[
            "not-json",
            "not-utf8",
            "array",
            "empty-object",
            "extra-field",
            "wrong-field",
            "number",
            "base16",
            "bad-base58",
            "padded-base64url",
        ],
    )
    def test_bad_request(self, service: WitnessService, body: bytes, message: str | None) -> None:
        response = service.handle("POST", body)

        assert response.status_code == 400
        assert response.body["status"] == "Bad Request"
        if message is not None:
            assert message in response.body["message"]

    def test_signing_failure(self, key: Ed25519Key) -> None:
        def failing(data: bytes) -> bytes:
            raise RuntimeError("kms unavailable")

        suite = CryptoSuite(
            SuiteConfig(KeyAlgorithm.ED25519, Profile.JCS, signing_timeout=None), failing
        )
        response = WitnessService(suite, key.verification_method).handle(
            "POST", _body({"digestMultibase": DIGEST})
        )

        assert response.status_code == 500
        assert response.body["status"] == "Signing Failed"
        assert "kms unavailable" in response.body["message"]

    def test_requires_verification_method(self, service: WitnessService) -> None:
        with pytest.raises(ValueError):
            WitnessService(service.suite, "")


class TestFromSettings:
    def test_builds_suite(self, key: Ed25519Key) -> None:
        settings = Settings(c14n="RDFC", verification_method=key.verification_method)

        service = WitnessService.from_settings(key, settings)

        assert service.suite.name == "eddsa-rdfc-2022"
        response = service.handle("POST", _body({"digestMultibase": DIGEST}))
        assert response.status_code == 200
        service.suite.close()

    def test_missing_verification_method(self, key: Ed25519Key) -> None:
        with pytest.raises(ValueError, match="CEL_VERIFICATION_METHOD"):
            WitnessService.from_settings(key, Settings(verification_method=None))
