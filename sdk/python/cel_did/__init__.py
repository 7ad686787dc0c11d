"""did:cel - Python SDK.

Data Integrity proofs over multibase digests (Ed25519, P-256, P-384) and
verification of hash-chained DID event logs.

Example:
    >>> from cel_did import CryptoSuite, Ed25519Key, Profile, verify_proof
    >>> key = Ed25519Key.generate()
    >>> suite = CryptoSuite.from_oracle(key, Profile.JCS, key.verification_method)
    >>> proof = suite.sign("z5C5b1uzYJN6pDR3aWgAqUMo")
    >>> verify_proof(key.public_key, proof, "z5C5b1uzYJN6pDR3aWgAqUMo")
    True
"""

from cel_did.codec import CurvePoint, KeyAlgorithm, raw_key_from_pem
from cel_did.config import Settings, get_settings
from cel_did.did import CelDid, Did
from cel_did.document import DidDocument, Service, VerificationMethod
from cel_did.errors import (
    CelError,
    ChainBrokenError,
    InceptionMismatchError,
    InvalidDIDError,
    InvalidKeyFormatError,
    InvalidSignatureEncodingError,
    LivenessGapExceededError,
    LogFetchError,
    MalformedEventError,
    ResolutionError,
    SerializationError,
    SigningOracleError,
    UnapprovedStorageOriginError,
    UnauthorizedEventError,
    UnsupportedKeyError,
    WitnessQuorumNotMetError,
)
from cel_did.events import (
    AddKey,
    AddService,
    EventLogBuilder,
    RemoveService,
    RevokeKey,
    RotateKey,
    Signer,
    hash_event,
    parse_log,
)
from cel_did.keys import EcdsaKey, Ed25519Key, SigningOracle
from cel_did.log_verifier import EventLogVerifier, ThresholdWitnessPolicy, WitnessPolicy
from cel_did.logging import configure_logging
from cel_did.resolver import HttpLogFetcher, Resolver, VerifiedLogCache
from cel_did.service import WitnessService
from cel_did.signing import CryptoSuite, DataIntegrityProof, SuiteConfig
from cel_did.templates import Profile
from cel_did.verifier import Verifier, verify, verify_proof

__version__ = "0.1.0"

__all__ = [
    # Keys
    "CurvePoint",
    "EcdsaKey",
    "Ed25519Key",
    "KeyAlgorithm",
    "SigningOracle",
    "raw_key_from_pem",
    # Identifiers
    "CelDid",
    "Did",
    # Document
    "DidDocument",
    "Service",
    "VerificationMethod",
    # Proofs
    "CryptoSuite",
    "DataIntegrityProof",
    "Profile",
    "SuiteConfig",
    "Verifier",
    "verify",
    "verify_proof",
    # Event log
    "AddKey",
    "AddService",
    "EventLogBuilder",
    "EventLogVerifier",
    "RemoveService",
    "RevokeKey",
    "RotateKey",
    "Signer",
    "ThresholdWitnessPolicy",
    "WitnessPolicy",
    "hash_event",
    "parse_log",
    # Resolution
    "HttpLogFetcher",
    "Resolver",
    "VerifiedLogCache",
    # Service
    "WitnessService",
    # Configuration
    "Settings",
    "configure_logging",
    "get_settings",
    # Errors
    "CelError",
    "ChainBrokenError",
    "InceptionMismatchError",
    "InvalidDIDError",
    "InvalidKeyFormatError",
    "InvalidSignatureEncodingError",
    "LivenessGapExceededError",
    "LogFetchError",
    "MalformedEventError",
    "ResolutionError",
    "SerializationError",
    "SigningOracleError",
    "UnapprovedStorageOriginError",
    "UnauthorizedEventError",
    "UnsupportedKeyError",
    "WitnessQuorumNotMetError",
]
