"""Data Integrity proof verification.

The raw key length selects the algorithm (32 -> Ed25519/SHA-256,
33 -> ECDSA P-256/SHA-256, 49 -> ECDSA P-384/SHA-384). A signature that
does not verify returns False; malformed keys or signatures raise.
"""

from typing import cast

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from nacl.exceptions import BadSignatureError

from cel_did import codec, templates
from cel_did.codec import KeyAlgorithm
from cel_did.encoding import BASE58BTC_PREFIX, multibase_decode
from cel_did.errors import (
    InvalidKeyFormatError,
    InvalidSignatureEncodingError,
    SerializationError,
)
from cel_did.signing import DataIntegrityProof, combined_hash, parse_suite_name

ED25519_SIGNATURE_LENGTH = 64

_ECDSA_HASHES = {
    KeyAlgorithm.P256: hashes.SHA256,
    KeyAlgorithm.P384: hashes.SHA384,
}


def verify(
    raw_public_key: bytes,
    signature: bytes,
    canonical_document: bytes,
    canonical_proof: bytes,
) -> bool:
    """Check a signature over canonical document and proof bytes.

    Raises:
        UnsupportedKeyError: If the key length is not 32, 33 or 49.
        InvalidKeyFormatError: If the key is not a valid curve point.
        InvalidSignatureEncodingError: If the signature is malformed.
    """
    point = codec.decode(raw_public_key)
    algorithm = point.algorithm
    message = combined_hash(algorithm.digest, canonical_document, canonical_proof)

    if algorithm is KeyAlgorithm.ED25519:
        return _verify_ed25519(point, signature, message)
    return _verify_ecdsa(point, signature, message)


def _verify_ed25519(point: codec.CurvePoint, signature: bytes, message: bytes) -> bool:
    if len(signature) != ED25519_SIGNATURE_LENGTH:
        raise InvalidSignatureEncodingError(
            f"Ed25519 signature must be {ED25519_SIGNATURE_LENGTH} bytes, got {len(signature)}"
        )
    try:
        codec.to_verifier_key(point).verify(message, signature)
        return True
    except BadSignatureError:
        return False


def _verify_ecdsa(point: codec.CurvePoint, signature: bytes, message: bytes) -> bool:
    public_key = cast(ec.EllipticCurvePublicKey, codec.to_verifier_key(point))

    der = _ecdsa_der(signature, point.algorithm.params.byte_length)
    try:
        public_key.verify(der, message, ec.ECDSA(_ECDSA_HASHES[point.algorithm]()))
        return True
    except InvalidSignature:
        return False


def _ecdsa_der(signature: bytes, width: int) -> bytes:
    """Accept IEEE P1363 ``r||s`` or DER, return DER."""
    if len(signature) == 2 * width:
        r = int.from_bytes(signature[:width], "big")
        s = int.from_bytes(signature[width:], "big")
        return encode_dss_signature(r, s)

    try:
        decode_dss_signature(signature)
    except ValueError as exc:
        raise InvalidSignatureEncodingError(f"not a DER or r||s ECDSA signature: {exc}") from exc
    return signature


def decode_proof_value(proof_value: str) -> bytes:
    """Decode a base58btc multibase ``proofValue``."""
    if not proof_value.startswith(BASE58BTC_PREFIX):
        raise InvalidSignatureEncodingError("proofValue must use base58btc encoding (z prefix)")
    try:
        return multibase_decode(proof_value)
    except SerializationError as exc:
        raise InvalidSignatureEncodingError(str(exc)) from exc


class Verifier:
    """Verifies proofs made with one cryptosuite.

    Example:
        >>> verifier = Verifier.for_cryptosuite("ecdsa-jcs-2019")
        >>> verifier.verify_proof(raw_key, proof, "z5C5b1uzYJN6pDR3aWgAqUMo")
        True
    """

    def __init__(self, cryptosuite: str) -> None:
        self._family, self._profile = parse_suite_name(cryptosuite)
        self._cryptosuite = cryptosuite

    @classmethod
    def for_cryptosuite(cls, cryptosuite: str) -> "Verifier":
        """Raises ValueError for an unsupported cryptosuite."""
        return cls(cryptosuite)

    @property
    def cryptosuite(self) -> str:
        return self._cryptosuite

    @property
    def profile(self) -> templates.Profile:
        return self._profile

    def verify(
        self,
        raw_public_key: bytes,
        signature: bytes,
        digest: str,
        created: str,
        verification_method: str,
        nonce: str,
    ) -> bool:
        """Rebuild the canonical document and proof, then check the signature."""
        algorithm = KeyAlgorithm.from_key_length(len(raw_public_key))
        if algorithm.family != self._family:
            raise InvalidKeyFormatError(
                f"{algorithm.value} key cannot verify a {self._cryptosuite} proof"
            )

        canonical_document = templates.document(self._profile, digest)
        canonical_proof = templates.proof(
            self._profile, self._cryptosuite, created, verification_method, nonce
        )
        return verify(raw_public_key, signature, canonical_document, canonical_proof)

    def verify_proof(self, raw_public_key: bytes, proof: DataIntegrityProof, digest: str) -> bool:
        """Check a complete proof over ``digest``."""
        if proof.cryptosuite != self._cryptosuite:
            return False

        return self.verify(
            raw_public_key,
            decode_proof_value(proof.proof_value),
            digest,
            proof.created,
            proof.verification_method,
            proof.nonce,
        )

    def __repr__(self) -> str:
        return f"Verifier({self._cryptosuite})"


def verify_proof(raw_public_key: bytes, proof: DataIntegrityProof, digest: str) -> bool:
    """Verify ``proof`` with the verifier its own cryptosuite names."""
    return Verifier.for_cryptosuite(proof.cryptosuite).verify_proof(raw_public_key, proof, digest)
