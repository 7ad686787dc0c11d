"""Error types for cel-did.

Malformed input raises; a signature that simply does not verify is a
boolean ``False`` and never an exception.
"""


class CelError(Exception):
    """Base exception for cel-did operations."""


class InvalidDIDError(CelError):
    """DID format is invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid DID format: {message}")


class InvalidKeyFormatError(CelError):
    """Raw public key is malformed or not a point on its curve."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid key format: {message}")


class UnsupportedKeyError(InvalidKeyFormatError):
    """Raw public key length is not 32, 33 or 49 bytes."""

    def __init__(self, length: int) -> None:
        self.length = length
        super().__init__(f"unsupported key length {length}, expected 32, 33 or 49 bytes")


class InvalidSignatureEncodingError(CelError):
    """Signature bytes or proof value cannot be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid signature encoding: {message}")


class SigningOracleError(CelError):
    """The external signer failed or timed out."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Signing failed: {message}")


class SerializationError(CelError):
    """Serialization or canonicalization failed."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Serialization error: {message}")


class LogFetchError(CelError):
    """An event log could not be retrieved."""

    def __init__(self, uri: str, message: str) -> None:
        self.uri = uri
        super().__init__(f"Cannot fetch {uri}: {message}")


class ResolutionError(CelError):
    """Event log verification rejected the log.

    Attributes:
        index: Position of the offending event in the log.
        rule: Name of the violated rule.
    """

    rule = "ResolutionFailed"

    def __init__(self, index: int, message: str) -> None:
        self.index = index
        self.detail = message
        super().__init__(f"{self.rule} at event {index}: {message}")


class MalformedEventError(ResolutionError):
    rule = "MalformedEvent"


class InceptionMismatchError(ResolutionError):
    rule = "InceptionMismatch"


class ChainBrokenError(ResolutionError):
    rule = "ChainBroken"


class UnauthorizedEventError(ResolutionError):
    rule = "UnauthorizedEvent"


class WitnessQuorumNotMetError(ResolutionError):
    rule = "WitnessQuorumNotMet"


class LivenessGapExceededError(ResolutionError):
    rule = "LivenessGapExceeded"


class UnapprovedStorageOriginError(ResolutionError):
    rule = "UnapprovedStorageOrigin"
