"""
Witness signing service.

A transport-agnostic request handler: the hosting runtime passes in the
HTTP method and raw body and writes back the returned status and JSON.

Request:  POST {"digestMultibase": "z..."}
Response: 200 with a DataIntegrityProof, or {"status", "message"} on error
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from cel_did.config import Settings
from cel_did.encoding import is_multibase
from cel_did.errors import SigningOracleError
from cel_did.keys import SigningOracle
from cel_did.logging import get_logger
from cel_did.signing import CryptoSuite
from cel_did.templates import Profile

logger = get_logger(__name__)

DIGEST_FIELD = "digestMultibase"
CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class ServiceResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)
    content_type: str = CONTENT_TYPE

    def json(self) -> str:
        return json.dumps(self.body)


def _error(status_code: int, status: str, message: str) -> ServiceResponse:
    return ServiceResponse(status_code, {"status": status, "message": message})


class WitnessService:
    """
    Signs witness digests with a fixed cryptosuite and verification method.

    Example:
        >>> service = WitnessService(CryptoSuite.from_oracle(key, Profile.JCS), key.verification_method)
        >>> response = service.handle("POST", b'{"digestMultibase": "z..."}')
        >>> response.status_code
        200
    """

    def __init__(self, suite: CryptoSuite, verification_method: str) -> None:
        if not verification_method:
            raise ValueError("verification method is required")
        self._suite = suite
        self._verification_method = verification_method

    @classmethod
    def from_settings(cls, oracle: SigningOracle, settings: Settings) -> WitnessService:
        """Cold-start construction from process settings.

        Raises:
            ValueError: If no verification method is configured.
        """
        if not settings.verification_method:
            raise ValueError("CEL_VERIFICATION_METHOD is not configured")
        suite = CryptoSuite.from_oracle(
            oracle,
            Profile.from_name(settings.c14n),
            verification_method=settings.verification_method,
            signing_timeout=settings.signing_timeout,
        )
        return cls(suite, settings.verification_method)

    @property
    def suite(self) -> CryptoSuite:
        return self._suite

    def handle(self, method: str, body: bytes | str) -> ServiceResponse:
        """Handle one request."""
        if method.upper() != "POST":
            return _error(405, "Method Not Allowed", "Use POST")

        try:
            payload = json.loads(body)
        except ValueError as exc:
            return _error(400, "Bad Request", str(exc))

        if not isinstance(payload, dict) or len(payload) != 1:
            return _error(400, "Bad Request", "Malformatted body")

        digest = payload.get(DIGEST_FIELD)
        if not isinstance(digest, str):
            return _error(400, "Bad Request", f"{DIGEST_FIELD} value must be JSON string")

        if not is_multibase(digest):
            return _error(
                400,
                "Bad Request",
                f"{DIGEST_FIELD} value must be multibase: base58btc or base64url",
            )

        try:
            proof = self._suite.sign(digest, self._verification_method)
        except SigningOracleError as exc:
            logger.error("witness_signing_failed", error=str(exc))
            return _error(500, "Signing Failed", str(exc))

        return ServiceResponse(200, proof.to_dict())
