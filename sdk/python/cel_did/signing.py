"""Data Integrity proof creation.

A proof signs ``H(canonicalProof) || H(canonicalDocument)``, the hash of
the proof options first and the hash of the document second, with the
digest bound to the key's curve (SHA-256 for Ed25519 and P-256, SHA-384
for P-384). Signer and verifier share ``combined_hash``.
"""

from __future__ import annotations

import hashlib
import secrets
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, get_args

import canonicaljson
from pydantic import BaseModel, ConfigDict, Field

from cel_did import templates
from cel_did.codec import KeyAlgorithm
from cel_did.encoding import b58_encode
from cel_did.errors import SerializationError, SigningOracleError
from cel_did.keys import SigningOracle
from cel_did.logging import get_logger
from cel_did.templates import Profile

logger = get_logger(__name__)

Cryptosuite = Literal[
    "ecdsa-jcs-2019",
    "eddsa-jcs-2022",
    "ecdsa-rdfc-2019",
    "eddsa-rdfc-2022",
]

CRYPTOSUITES: frozenset[str] = frozenset(get_args(Cryptosuite))

NONCE_BYTES = 32


class DataIntegrityProof(BaseModel):
    """A detached Data Integrity proof, as it appears on the wire."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    type: Literal["DataIntegrityProof"] = templates.PROOF_TYPE
    cryptosuite: Cryptosuite
    created: str
    nonce: str
    verification_method: str = Field(alias="verificationMethod")
    proof_purpose: Literal["assertionMethod"] = Field(
        default=templates.PROOF_PURPOSE, alias="proofPurpose"
    )
    proof_value: str = Field(alias="proofValue")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def suite_name(algorithm: KeyAlgorithm, profile: Profile) -> str:
    """Cryptosuite identifier for a key algorithm and profile."""
    year = "2022" if algorithm is KeyAlgorithm.ED25519 else "2019"
    return f"{algorithm.family}-{profile.value}-{year}"


def parse_suite_name(cryptosuite: str) -> tuple[str, Profile]:
    """Split a cryptosuite identifier into (family, profile).

    Raises:
        ValueError: If the cryptosuite is not supported.
    """
    if cryptosuite not in CRYPTOSUITES:
        raise ValueError(f"Unsupported DI cryptosuite [{cryptosuite}]")
    family, profile, _ = cryptosuite.split("-")
    return family, Profile(profile)


def combined_hash(digest: str, canonical_document: bytes, canonical_proof: bytes) -> bytes:
    """``H(canonical_proof) || H(canonical_document)`` with hashlib ``digest``."""
    proof_hash = hashlib.new(digest, canonical_proof).digest()
    document_hash = hashlib.new(digest, canonical_document).digest()
    return proof_hash + document_hash


def generate_nonce(length: int = NONCE_BYTES) -> str:
    """A URL-safe random nonce: base64url without padding."""
    return secrets.token_urlsafe(length)


def format_created(moment: datetime) -> str:
    """ISO-8601 UTC timestamp truncated to whole seconds."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def canonicalize(value: dict) -> bytes:
    """Canonicalize a dict using JCS (RFC 8785).

    Returns deterministic bytes suitable for hashing.
    """
    try:
        return canonicaljson.encode_canonical_json(value)
    except Exception as exc:
        raise SerializationError(f"JCS canonicalization failed: {exc}") from exc


@dataclass(frozen=True, slots=True)
class SuiteConfig:
    """Signer parameters fixed once at cold start.

    Attributes:
        algorithm: The signing key's algorithm, as reported by the oracle.
        profile: Canonicalization profile.
        verification_method: Default verification method for proofs.
        signing_timeout: Seconds to wait for the oracle, None waits forever.
    """

    algorithm: KeyAlgorithm
    profile: Profile
    verification_method: str | None = None
    signing_timeout: float | None = 10.0

    @property
    def cryptosuite(self) -> str:
        return suite_name(self.algorithm, self.profile)

    @property
    def digest(self) -> str:
        return self.algorithm.digest


class CryptoSuite:
    """Creates Data Integrity proofs over multibase digests.

    The raw signature comes from an injected ``signer`` callable, usually
    ``oracle.sign``; nothing else leaves the process.

    Example:
        >>> key = Ed25519Key.generate()
        >>> suite = CryptoSuite.from_oracle(key, Profile.JCS)
        >>> proof = suite.sign("z5C5b1uzYJN6pDR3aWgAqUMo", key.verification_method)
    """

    def __init__(
        self,
        config: SuiteConfig,
        signer: Callable[[bytes], bytes],
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._signer = signer
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @classmethod
    def from_oracle(
        cls,
        oracle: SigningOracle,
        profile: Profile,
        verification_method: str | None = None,
        signing_timeout: float | None = 10.0,
    ) -> CryptoSuite:
        """Build a suite for whatever algorithm the oracle's key uses."""
        config = SuiteConfig(
            algorithm=oracle.algorithm,
            profile=profile,
            verification_method=verification_method,
            signing_timeout=signing_timeout,
        )
        logger.info(
            "crypto_suite_initialized",
            cryptosuite=config.cryptosuite,
            key_length=config.algorithm.key_length,
        )
        return cls(config, oracle.sign)

    @property
    def config(self) -> SuiteConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.cryptosuite

    def sign(self, digest: str, verification_method: str | None = None) -> DataIntegrityProof:
        """Sign a multibase digest.

        Args:
            digest: The ``digestMultibase`` value to attest.
            verification_method: Overrides the configured verification method.

        Returns:
            The complete proof, including ``proofValue``.

        Raises:
            SigningOracleError: If the signer fails or times out.
            ValueError: If no verification method is available.
        """
        method = verification_method or self._config.verification_method
        if not method:
            raise ValueError("verification method is required")

        profile = self._config.profile
        created = format_created(self._clock())
        nonce = generate_nonce()

        canonical_document = templates.document(profile, digest)
        canonical_proof = templates.proof(profile, self.name, created, method, nonce)

        signature = self._call_signer(
            combined_hash(self._config.digest, canonical_document, canonical_proof)
        )

        return DataIntegrityProof(
            cryptosuite=self.name,
            created=created,
            nonce=nonce,
            verification_method=method,
            proof_value=b58_encode(signature),
        )

    def _call_signer(self, data: bytes) -> bytes:
        timeout = self._config.signing_timeout
        try:
            if timeout is None:
                return self._signer(data)

            future = self._pool().submit(self._signer, data)
            try:
                return future.result(timeout=timeout)
            except FutureTimeoutError:
                future.cancel()
                raise SigningOracleError(f"no response within {timeout}s") from None

        except SigningOracleError as exc:
            logger.error("signing_oracle_failed", cryptosuite=self.name, error=str(exc))
            raise
        except Exception as exc:
            logger.error("signing_oracle_failed", cryptosuite=self.name, error=str(exc))
            raise SigningOracleError(str(exc)) from exc

    def _pool(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(thread_name_prefix="cel-signer")
            return self._executor

    def close(self) -> None:
        """Release the signer thread pool."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> CryptoSuite:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"CryptoSuite({self.name})"


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """Constant-time comparison to prevent timing attacks."""
    return secrets.compare_digest(a, b)
