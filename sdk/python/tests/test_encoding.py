"""Tests for multibase, multihash and Multikey helpers."""

import hashlib

import pytest

from cel_did.encoding import (
    b58_encode,
    b64url_encode,
    decode_multikey,
    encode_multikey,
    is_multibase,
    multibase_decode,
    multihash,
    multihash_digest,
)
from cel_did.errors import SerializationError


class TestMultibase:
    def test_base58btc(self) -> None:
        encoded = b58_encode(b"hello")

        assert encoded.startswith("z")
        assert multibase_decode(encoded) == b"hello"

    def test_base64url_without_padding(self) -> None:
        """base64url values carry no padding and decode with the u prefix."""
        encoded = b64url_encode(b"\xfb\xff")

        assert "=" not in encoded
        assert multibase_decode("u" + encoded) == b"\xfb\xff"

    @pytest.mark.parametrize(
        "value",
        ["zQmYwAPJzv5CZsnA", "uAQID", "u-_8"],
        ids=["base58btc", "base64url", "base64url-alphabet"],
    )
    def test_is_multibase(self, value: str) -> None:
        assert is_multibase(value)

    @pytest.mark.parametrize(
        "value",
        ["", "z", "f00ff", "z0OIl", "uAQ==", "u+/", "uA"],
        ids=["empty", "prefix-only", "base16", "base58-bad-char", "padded", "std-alphabet", "bad-length"],
    )
    def test_rejects(self, value: str) -> None:
        assert not is_multibase(value)
        with pytest.raises(SerializationError):
            multibase_decode(value)


class TestMultihash:
    @pytest.mark.parametrize(
        ("algorithm", "code", "length"),
        [("sha256", 0x12, 32), ("sha384", 0x20, 48)],
    )
    def test_wraps_digest(self, algorithm: str, code: int, length: int) -> None:
        wrapped = multihash(b"data", algorithm)

        assert wrapped[0] == code
        assert wrapped[1] == length
        assert wrapped[2:] == hashlib.new(algorithm, b"data").digest()
        assert multihash_digest(wrapped) == (algorithm, wrapped[2:])

    def test_unknown_code(self) -> None:
        with pytest.raises(SerializationError, match="unsupported multihash code"):
            multihash_digest(bytes([0x13, 64]) + bytes(64))

    def test_truncated(self) -> None:
        with pytest.raises(SerializationError, match="must carry 32 bytes"):
            multihash_digest(multihash(b"data")[:-1])


class TestMultikey:
    @pytest.mark.parametrize(
        ("length", "prefix"),
        [(32, "z6Mk"), (33, "zDn"), (49, "z82")],
        ids=["ed25519", "p256", "p384"],
    )
    def test_prefixes(self, length: int, prefix: str) -> None:
        """Multikeys start with the well-known prefix of their key type."""
        raw = bytes([2]) + bytes(length - 1)
        encoded = encode_multikey(raw)

        assert encoded.startswith(prefix)
        assert decode_multikey(encoded) == raw

    def test_unsupported_length(self) -> None:
        with pytest.raises(SerializationError, match="no multicodec"):
            encode_multikey(bytes(31))

    def test_requires_base58btc(self) -> None:
        with pytest.raises(SerializationError, match="base58btc"):
            decode_multikey("u7QE")

    def test_unknown_multicodec(self) -> None:
        with pytest.raises(SerializationError, match="unsupported key multicodec"):
            decode_multikey(b58_encode(bytes([0x12, 0x00]) + bytes(32)))
