"""Decentralized Identifier (DID) handling.

Formats:
- did:key:z<base58btc(multicodec_prefix + raw_public_key)>
- did:cel:<multibase(multihash(genesis event))>[?storage=<uri>]

did:key supports Ed25519 (0xed01), P-256 (0x8024) and P-384 (0x8124) keys
and names the witnesses and signers of a did:cel event log.
"""

from dataclasses import dataclass
from urllib.parse import parse_qs

from cel_did.encoding import (
    BASE58BTC_PREFIX,
    KEY_MULTICODECS,
    decode_multikey,
    encode_multikey,
    multibase_decode,
    multihash_digest,
)
from cel_did.errors import InvalidDIDError, SerializationError

KEY_PREFIX = "did:key:"
CEL_PREFIX = "did:cel:"


@dataclass(frozen=True, slots=True)
class Did:
    """A parsed did:key.

    Attributes:
        public_key: The raw 32, 33 or 49 byte public key.
    """

    public_key: bytes

    def __post_init__(self) -> None:
        if len(self.public_key) not in KEY_MULTICODECS:
            raise InvalidDIDError(
                f"public key must be 32, 33 or 49 bytes, got {len(self.public_key)}"
            )

    @classmethod
    def from_public_key(cls, public_key: bytes) -> "Did":
        """Create a DID from a raw public key."""
        return cls(public_key=public_key)

    @classmethod
    def parse(cls, did_string: str) -> "Did":
        """Parse a did:key string or verification method URL.

        A fragment, if present, must repeat the key id.

        Raises:
            InvalidDIDError: If the format is invalid.
        """
        if not did_string.startswith(KEY_PREFIX):
            raise InvalidDIDError("must start with 'did:key:'")

        key_part, _, fragment = did_string[len(KEY_PREFIX) :].partition("#")

        if not key_part.startswith(BASE58BTC_PREFIX):
            raise InvalidDIDError("must use base58btc encoding (z prefix)")

        if fragment and fragment != key_part:
            raise InvalidDIDError("fragment does not match the key")

        try:
            public_key = decode_multikey(key_part)
        except SerializationError as exc:
            raise InvalidDIDError(str(exc)) from exc

        return cls(public_key=public_key)

    @property
    def key_id(self) -> str:
        """The Multikey portion (without did:key: prefix)."""
        return encode_multikey(self.public_key)

    @property
    def verification_method(self) -> str:
        """The canonical verification method URL, ``did:key:z..#z..``."""
        return f"{self}#{self.key_id}"

    def __str__(self) -> str:
        return f"{KEY_PREFIX}{self.key_id}"

    def __repr__(self) -> str:
        return f"Did({self})"


@dataclass(frozen=True, slots=True)
class CelDid:
    """A parsed did:cel identifier.

    Attributes:
        method_specific_id: Multibase multihash of the genesis event.
        storage: Optional storage hint the event log can be fetched from.
    """

    method_specific_id: str
    storage: str | None = None

    @classmethod
    def parse(cls, did_string: str) -> "CelDid":
        """Parse ``did:cel:<id>[?storage=<uri>]``.

        Raises:
            InvalidDIDError: If the format is invalid.
        """
        if not did_string.startswith(CEL_PREFIX):
            raise InvalidDIDError("must start with 'did:cel:'")

        method_specific_id, _, query = did_string[len(CEL_PREFIX) :].partition("?")

        if not method_specific_id:
            raise InvalidDIDError("missing method-specific id")

        storage = None
        if query:
            params = parse_qs(query, keep_blank_values=True)
            values = params.get("storage")
            if not values or len(values) != 1 or not values[0]:
                raise InvalidDIDError("query must carry exactly one non-empty 'storage' value")
            storage = values[0]

        _decode_genesis_hash(method_specific_id)
        return cls(method_specific_id=method_specific_id, storage=storage)

    @classmethod
    def from_genesis_hash(cls, event_hash: str, storage: str | None = None) -> "CelDid":
        return cls(method_specific_id=event_hash, storage=storage)

    @property
    def genesis_hash(self) -> tuple[str, bytes]:
        """The committed genesis hash as (hashlib algorithm, digest)."""
        return _decode_genesis_hash(self.method_specific_id)

    @property
    def did(self) -> str:
        """The DID without query parameters."""
        return f"{CEL_PREFIX}{self.method_specific_id}"

    @property
    def log_url(self) -> str | None:
        """Where the event log lives: the storage hint followed by the id."""
        if self.storage is None:
            return None
        return self.storage + self.method_specific_id

    def __str__(self) -> str:
        return self.did

    def __repr__(self) -> str:
        return f"CelDid({self.did}, storage={self.storage!r})"


def _decode_genesis_hash(method_specific_id: str) -> tuple[str, bytes]:
    try:
        return multihash_digest(multibase_decode(method_specific_id))
    except SerializationError as exc:
        raise InvalidDIDError(f"method-specific id is not a multihash: {exc}") from exc
