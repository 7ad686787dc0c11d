"""Signing oracles and local signing keys.

Security:
- Ed25519 via PyNaCl (libsodium bindings), ECDSA via cryptography
- Debug representations only show public info (DID), not secrets
- ECDSA keys sign the way a KMS asymmetric-sign call does: the message is
  digested with the curve's hash and the DER signature is returned
"""

from typing import Protocol, Self, runtime_checkable

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from nacl.signing import SigningKey, VerifyKey

from cel_did.codec import KeyAlgorithm
from cel_did.did import Did
from cel_did.errors import InvalidKeyFormatError


@runtime_checkable
class SigningOracle(Protocol):
    """External signer: ``sign(bytes) -> bytes`` plus its key algorithm."""

    @property
    def algorithm(self) -> KeyAlgorithm: ...

    def sign(self, message: bytes) -> bytes: ...


class Ed25519Key:
    """A local Ed25519 signing key."""

    __slots__ = ("_signing_key", "_did")

    algorithm = KeyAlgorithm.ED25519

    def __init__(self, signing_key: SigningKey) -> None:
        self._signing_key = signing_key
        self._did = Did.from_public_key(bytes(signing_key.verify_key))

    @classmethod
    def generate(cls) -> Self:
        """Generate a new random key."""
        return cls(SigningKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes) -> Self:
        """Create from a 32-byte seed.

        Raises:
            InvalidKeyFormatError: If seed is not 32 bytes.
        """
        if len(seed) != 32:
            raise InvalidKeyFormatError(f"seed must be 32 bytes, got {len(seed)}")
        return cls(SigningKey(seed))

    @property
    def did(self) -> Did:
        """The did:key of this key."""
        return self._did

    @property
    def verification_method(self) -> str:
        """did:key verification method URL."""
        return self._did.verification_method

    @property
    def verify_key(self) -> VerifyKey:
        return self._signing_key.verify_key

    @property
    def public_key(self) -> bytes:
        """Raw 32-byte public key."""
        return bytes(self._signing_key.verify_key)

    def sign(self, message: bytes) -> bytes:
        """Sign a message. Returns 64-byte signature."""
        signed = self._signing_key.sign(message)
        return bytes(signed.signature)

    def __repr__(self) -> str:
        return f"Ed25519Key(did={self._did})"


class EcdsaKey:
    """A local ECDSA key on P-256 or P-384."""

    __slots__ = ("_private_key", "_algorithm", "_public_key", "_did")

    _CURVES = {
        KeyAlgorithm.P256: (ec.SECP256R1, hashes.SHA256),
        KeyAlgorithm.P384: (ec.SECP384R1, hashes.SHA384),
    }

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        if isinstance(private_key.curve, ec.SECP256R1):
            self._algorithm = KeyAlgorithm.P256
        elif isinstance(private_key.curve, ec.SECP384R1):
            self._algorithm = KeyAlgorithm.P384
        else:
            raise InvalidKeyFormatError(f"unsupported curve {private_key.curve.name}")

        self._private_key = private_key
        self._public_key = private_key.public_key().public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.CompressedPoint,
        )
        self._did = Did.from_public_key(self._public_key)

    @classmethod
    def generate(cls, algorithm: KeyAlgorithm = KeyAlgorithm.P256) -> Self:
        """Generate a new random key on the curve of ``algorithm``."""
        if algorithm not in cls._CURVES:
            raise InvalidKeyFormatError(f"{algorithm.value} is not an ECDSA curve")
        curve, _ = cls._CURVES[algorithm]
        return cls(ec.generate_private_key(curve()))

    @property
    def algorithm(self) -> KeyAlgorithm:
        return self._algorithm

    @property
    def did(self) -> Did:
        return self._did

    @property
    def verification_method(self) -> str:
        return self._did.verification_method

    @property
    def public_key(self) -> bytes:
        """Raw compressed public key (33 or 49 bytes)."""
        return self._public_key

    def public_key_pem(self) -> bytes:
        return self._private_key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def sign(self, message: bytes) -> bytes:
        """Sign ``H(message)``. Returns a DER-encoded signature."""
        _, digest = self._CURVES[self._algorithm]
        return self._private_key.sign(message, ec.ECDSA(digest()))

    def __repr__(self) -> str:
        return f"EcdsaKey(did={self._did})"
