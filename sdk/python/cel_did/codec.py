"""Raw public key codec.

Converts between the three raw key wire formats and curve points:

- Ed25519: 32 bytes, little-endian y with the x parity in bit 255 (RFC 8032)
- P-256: 33 bytes, SEC1 compressed point (0x02/0x03 prefix + x)
- P-384: 49 bytes, SEC1 compressed point (0x02/0x03 prefix + x)

The key length alone selects the algorithm. The algorithm is resolved once
at decode time and carried on the point.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from nacl.signing import VerifyKey

from cel_did.errors import InvalidKeyFormatError, UnsupportedKeyError


@dataclass(frozen=True, slots=True)
class CurveParams:
    """Short Weierstrass (y^2 = x^3 + ax + b) or twisted Edwards parameters."""

    p: int
    a: int
    b: int
    byte_length: int


class KeyAlgorithm(enum.Enum):
    """Signature algorithm bound to a raw key length."""

    ED25519 = "Ed25519"
    P256 = "P-256"
    P384 = "P-384"

    @classmethod
    def from_key_length(cls, length: int) -> KeyAlgorithm:
        try:
            return _BY_LENGTH[length]
        except KeyError:
            raise UnsupportedKeyError(length) from None

    @property
    def key_length(self) -> int:
        """Length of the raw public key."""
        return _KEY_LENGTHS[self]

    @property
    def digest(self) -> str:
        """hashlib name of the digest bound to the curve."""
        return "sha384" if self is KeyAlgorithm.P384 else "sha256"

    @property
    def family(self) -> str:
        """Cryptosuite family prefix."""
        return "eddsa" if self is KeyAlgorithm.ED25519 else "ecdsa"

    @property
    def params(self) -> CurveParams:
        return _CURVES[self]


_P256_P = 2**256 - 2**224 + 2**192 + 2**96 - 1
_P384_P = 2**384 - 2**128 - 2**96 + 2**32 - 1
_ED25519_P = 2**255 - 19

_CURVES = {
    KeyAlgorithm.P256: CurveParams(
        p=_P256_P,
        a=_P256_P - 3,
        b=0x5AC635D8AA3A93E7B3EBBD55769886BC651D06B0CC53B0F63BCE3C3E27D2604B,
        byte_length=32,
    ),
    KeyAlgorithm.P384: CurveParams(
        p=_P384_P,
        a=_P384_P - 3,
        b=int(
            "B3312FA7E23EE7E4988E056BE3F82D19181D9C6EFE8141120314088F5013875A"
            "C656398D8A2ED19D2A85C8EDD3EC2AEF",
            16,
        ),
        byte_length=48,
    ),
    # -x^2 + y^2 = 1 + d x^2 y^2, stored as a = -1, b = d
    KeyAlgorithm.ED25519: CurveParams(
        p=_ED25519_P,
        a=_ED25519_P - 1,
        b=(-121665 * pow(121666, -1, _ED25519_P)) % _ED25519_P,
        byte_length=32,
    ),
}

_KEY_LENGTHS = {
    KeyAlgorithm.ED25519: 32,
    KeyAlgorithm.P256: 33,
    KeyAlgorithm.P384: 49,
}

_BY_LENGTH = {length: algorithm for algorithm, length in _KEY_LENGTHS.items()}

_EC_CURVES = {
    KeyAlgorithm.P256: ec.SECP256R1,
    KeyAlgorithm.P384: ec.SECP384R1,
}

_ED25519_SQRT_M1 = pow(2, (_ED25519_P - 1) // 4, _ED25519_P)


@dataclass(frozen=True, slots=True)
class CurvePoint:
    """An affine point tagged with the algorithm it belongs to."""

    algorithm: KeyAlgorithm
    x: int
    y: int

    def is_on_curve(self) -> bool:
        params = self.algorithm.params
        p = params.p
        if not (0 <= self.x < p and 0 <= self.y < p):
            return False
        x2 = self.x * self.x % p
        y2 = self.y * self.y % p
        if self.algorithm is KeyAlgorithm.ED25519:
            return (y2 - x2 - 1 - params.b * x2 * y2) % p == 0
        return y2 == (x2 * self.x + params.a * self.x + params.b) % p


def decode(raw: bytes) -> CurvePoint:
    """Decode a raw public key into a curve point.

    Raises:
        UnsupportedKeyError: If the length is not 32, 33 or 49 bytes.
        InvalidKeyFormatError: If the bytes do not encode a point on the curve.
    """
    algorithm = KeyAlgorithm.from_key_length(len(raw))
    if algorithm is KeyAlgorithm.ED25519:
        return _decode_ed25519(raw)
    return _decode_compressed(raw, algorithm)


def encode(point: CurvePoint) -> bytes:
    """Encode a curve point into its raw public key bytes."""
    if point.algorithm is KeyAlgorithm.ED25519:
        value = point.y | ((point.x & 1) << 255)
        return value.to_bytes(32, "little")

    prefix = 0x03 if point.y & 1 else 0x02
    width = point.algorithm.params.byte_length
    return bytes([prefix]) + point.x.to_bytes(width, "big")


def _decode_ed25519(raw: bytes) -> CurvePoint:
    params = KeyAlgorithm.ED25519.params
    p, d = params.p, params.b

    value = int.from_bytes(raw, "little")
    x_odd = bool(value >> 255)
    y = value & ((1 << 255) - 1)
    if y >= p:
        raise InvalidKeyFormatError("Ed25519 y-coordinate is out of range")

    # x^2 = (y^2 - 1) / (d y^2 + 1), square root per RFC 8032 5.1.3
    y2 = y * y % p
    x2 = (y2 - 1) * pow(d * y2 + 1, -1, p) % p
    x = pow(x2, (p + 3) // 8, p)
    if (x * x - x2) % p != 0:
        x = x * _ED25519_SQRT_M1 % p
    if (x * x - x2) % p != 0:
        raise InvalidKeyFormatError("point is not on Ed25519")
    if x == 0 and x_odd:
        raise InvalidKeyFormatError("invalid Ed25519 sign bit for x = 0")
    if (x & 1) != x_odd:
        x = p - x

    return CurvePoint(KeyAlgorithm.ED25519, x, y)


def _decode_compressed(raw: bytes, algorithm: KeyAlgorithm) -> CurvePoint:
    params = algorithm.params
    p = params.p

    prefix = raw[0]
    if prefix not in (0x02, 0x03):
        raise InvalidKeyFormatError(f"invalid compression prefix 0x{prefix:02x}")

    x = int.from_bytes(raw[1:], "big")
    if x >= p:
        raise InvalidKeyFormatError(f"{algorithm.value} x-coordinate is out of range")

    # p = 3 (mod 4) for both NIST curves
    rhs = (x * x * x + params.a * x + params.b) % p
    y = pow(rhs, (p + 1) // 4, p)
    if y * y % p != rhs:
        raise InvalidKeyFormatError(f"point is not on {algorithm.value}")
    if (y & 1) != (prefix & 1):
        y = p - y

    return CurvePoint(algorithm, x, y)


def to_verifier_key(point: CurvePoint) -> VerifyKey | ec.EllipticCurvePublicKey:
    """Build a library public key object for signature checks."""
    if point.algorithm is KeyAlgorithm.ED25519:
        return VerifyKey(encode(point))

    try:
        numbers = ec.EllipticCurvePublicNumbers(point.x, point.y, _EC_CURVES[point.algorithm]())
        return numbers.public_key()
    except ValueError as exc:
        raise InvalidKeyFormatError(str(exc)) from exc


def raw_key_from_pem(pem: bytes | str) -> bytes:
    """Export a PEM (SubjectPublicKeyInfo) public key in raw 32/33/49 byte form.

    Raises:
        InvalidKeyFormatError: If the PEM cannot be parsed or holds an
            unsupported key type.
    """
    if isinstance(pem, str):
        pem = pem.encode("ascii")

    try:
        public_key = serialization.load_pem_public_key(pem)
    except ValueError as exc:
        raise InvalidKeyFormatError(f"cannot parse PEM: {exc}") from exc

    if isinstance(public_key, ed25519.Ed25519PublicKey):
        return public_key.public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )

    if isinstance(public_key, ec.EllipticCurvePublicKey) and isinstance(
        public_key.curve, (ec.SECP256R1, ec.SECP384R1)
    ):
        numbers = public_key.public_numbers()
        if isinstance(public_key.curve, ec.SECP256R1):
            algorithm = KeyAlgorithm.P256
        else:
            algorithm = KeyAlgorithm.P384
        return encode(CurvePoint(algorithm, numbers.x, numbers.y))

    raise InvalidKeyFormatError(f"unsupported public key type {type(public_key).__name__}")
