"""Canonical document and proof templates.

The signed material only ever contains a handful of statically known
fields, so both canonicalization profiles reduce to fixed templates:

- JCS: RFC 8785 JSON with the keys already in lexicographic order
- RDFC: the canonical N-Quads of a single blank node, ``_:c14n0``

Field values are opaque strings. They are inserted verbatim and are never
re-parsed or reformatted.
"""

import enum


class Profile(enum.Enum):
    """Canonicalization profile."""

    JCS = "jcs"
    RDFC = "rdfc"

    @classmethod
    def from_name(cls, name: str) -> "Profile":
        """Look up a profile by its name, case-insensitively (``JCS``/``RDFC``)."""
        try:
            return cls(name.lower())
        except ValueError:
            raise ValueError(f"Unsupported C14N [{name}]") from None


PROOF_TYPE = "DataIntegrityProof"
PROOF_PURPOSE = "assertionMethod"

_JCS_DOCUMENT = '{{"digestMultibase":"{digest}"}}'

_JCS_PROOF = (
    '{{"created":"{created}",'
    '"cryptosuite":"{cryptosuite}",'
    '"nonce":"{nonce}",'
    '"proofPurpose":"' + PROOF_PURPOSE + '",'
    '"type":"' + PROOF_TYPE + '",'
    '"verificationMethod":"{method}"}}'
)

_RDFC_DOCUMENT = (
    '_:c14n0 <https://w3id.org/security#digestMultibase> "{digest}"'
    "^^<https://w3id.org/security#multibase> .\n"
)

# statements sorted the way RDF canonicalization orders them
_RDFC_PROOF = (
    '_:c14n0 <http://purl.org/dc/terms/created> "{created}"'
    "^^<http://www.w3.org/2001/XMLSchema#dateTime> .\n"
    "_:c14n0 <http://www.w3.org/1999/02/22-rdf-syntax-ns#type> "
    "<https://w3id.org/security#" + PROOF_TYPE + "> .\n"
    '_:c14n0 <https://w3id.org/security#cryptosuite> "{cryptosuite}"'
    "^^<https://w3id.org/security#cryptosuiteString> .\n"
    '_:c14n0 <https://w3id.org/security#nonce> "{nonce}" .\n'
    "_:c14n0 <https://w3id.org/security#proofPurpose> "
    "<https://w3id.org/security#" + PROOF_PURPOSE + "> .\n"
    "_:c14n0 <https://w3id.org/security#verificationMethod> <{method}> .\n"
)

_DOCUMENTS = {
    Profile.JCS: _JCS_DOCUMENT,
    Profile.RDFC: _RDFC_DOCUMENT,
}

_PROOFS = {
    Profile.JCS: _JCS_PROOF,
    Profile.RDFC: _RDFC_PROOF,
}


def document(profile: Profile, digest: str) -> bytes:
    """Canonical document carrying a single ``digestMultibase`` value.

    Returns UTF-8 bytes suitable for hashing.
    """
    return _DOCUMENTS[profile].format(digest=digest).encode("utf-8")


def proof(
    profile: Profile,
    cryptosuite: str,
    created: str,
    verification_method: str,
    nonce: str,
) -> bytes:
    """Canonical proof options (everything except ``proofValue``).

    Args:
        profile: Canonicalization profile.
        cryptosuite: Cryptosuite identifier, e.g. ``ecdsa-jcs-2019``.
        created: ISO-8601 UTC timestamp, second precision.
        verification_method: Verification method URL.
        nonce: Random nonce, base64url without padding.
    """
    return (
        _PROOFS[profile]
        .format(
            created=created,
            cryptosuite=cryptosuite,
            nonce=nonce,
            method=verification_method,
        )
        .encode("utf-8")
    )
