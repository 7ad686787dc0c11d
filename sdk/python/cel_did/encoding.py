"""Multiformats helpers: multibase, multihash and Multikey.

- Multibase prefixes: z (base58btc), u (base64url, no padding)
- Multihash codes: 0x12 (sha2-256), 0x20 (sha2-384)
- Multicodec key prefixes: 0xed01 (ed25519-pub), 0x8024 (p256-pub),
  0x8124 (p384-pub)
"""

import base64
import hashlib
import re

import base58

from cel_did.errors import SerializationError

BASE58BTC_PREFIX = "z"
BASE64URL_PREFIX = "u"

_BASE64URL_ALPHABET = re.compile(r"^[A-Za-z0-9_-]*$")

# varint-encoded multicodec prefixes, keyed by raw public key length
ED25519_MULTICODEC = bytes([0xED, 0x01])
P256_MULTICODEC = bytes([0x80, 0x24])
P384_MULTICODEC = bytes([0x81, 0x24])

KEY_MULTICODECS = {
    32: ED25519_MULTICODEC,
    33: P256_MULTICODEC,
    49: P384_MULTICODEC,
}

# multihash code and digest length per hashlib algorithm name
MULTIHASH_CODES = {
    "sha256": (0x12, 32),
    "sha384": (0x20, 48),
}


def b58_encode(data: bytes) -> str:
    """Encode bytes as a base58btc multibase string."""
    return BASE58BTC_PREFIX + base58.b58encode(data).decode("ascii")


def b64url_encode(data: bytes) -> str:
    """Encode bytes as base64url without padding (no multibase prefix)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def is_multibase(value: str) -> bool:
    """True when ``value`` is a base58btc or base64url-no-pad multibase string."""
    try:
        multibase_decode(value)
    except SerializationError:
        return False
    return True


def multibase_decode(value: str) -> bytes:
    """Decode a base58btc (``z``) or base64url (``u``) multibase string.

    Raises:
        SerializationError: If the prefix is unsupported or the payload
            is not valid for its base.
    """
    if len(value) < 2:
        raise SerializationError("multibase value is empty")

    prefix, payload = value[0], value[1:]

    if prefix == BASE58BTC_PREFIX:
        try:
            return base58.b58decode(payload)
        except ValueError as exc:
            raise SerializationError(f"invalid base58btc encoding: {exc}") from exc

    if prefix == BASE64URL_PREFIX:
        if not _BASE64URL_ALPHABET.match(payload) or len(payload) % 4 == 1:
            raise SerializationError("invalid base64url encoding")
        return base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4))

    raise SerializationError(f"unsupported multibase prefix {prefix!r}")


def multihash(data: bytes, algorithm: str = "sha256") -> bytes:
    """Hash ``data`` and wrap the digest as a multihash."""
    code, length = MULTIHASH_CODES[algorithm]
    digest = hashlib.new(algorithm, data).digest()
    return bytes([code, length]) + digest


def multihash_digest(value: bytes) -> tuple[str, bytes]:
    """Split a multihash into (hashlib algorithm name, digest)."""
    if len(value) < 2:
        raise SerializationError("multihash is too short")

    for algorithm, (code, length) in MULTIHASH_CODES.items():
        if value[0] == code:
            if value[1] != length or len(value) != length + 2:
                raise SerializationError(f"{algorithm} multihash must carry {length} bytes")
            return algorithm, value[2:]

    raise SerializationError(f"unsupported multihash code 0x{value[0]:02x}")


def encode_multikey(raw_public_key: bytes) -> str:
    """Encode a raw 32/33/49 byte public key as a Multikey string."""
    prefix = KEY_MULTICODECS.get(len(raw_public_key))
    if prefix is None:
        raise SerializationError(f"no multicodec for {len(raw_public_key)}-byte key")
    return b58_encode(prefix + raw_public_key)


def decode_multikey(value: str) -> bytes:
    """Decode a Multikey string to the raw public key bytes."""
    if not value.startswith(BASE58BTC_PREFIX):
        raise SerializationError("Multikey must use base58btc encoding (z prefix)")

    decoded = multibase_decode(value)

    for length, prefix in KEY_MULTICODECS.items():
        if decoded[:2] == prefix:
            if len(decoded) != length + 2:
                raise SerializationError(
                    f"expected {length + 2} bytes, got {len(decoded)}"
                )
            return decoded[2:]

    raise SerializationError("unsupported key multicodec")
