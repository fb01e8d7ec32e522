"""Exception taxonomy for the range-proof client."""


class SecureRangeError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(SecureRangeError):
    """Missing or malformed client configuration (raised before any network I/O)."""


class FramingError(SecureRangeError):
    """Declared frame length is 0 or exceeds the maximum; the stream is corrupted."""


class ProtocolError(SecureRangeError):
    """Base class for wire-level contract violations."""


class ProtocolSequenceError(ProtocolError):
    """Unexpected message type or mismatched request id."""


class WireFormatError(ProtocolError):
    """A frame payload could not be decoded as the expected message."""


class PeerDisconnectedError(ProtocolError):
    """The peer closed the stream while a message was still expected."""


class PeerTimeoutError(ProtocolError):
    """No frame arrived within the requested timeout."""


class AuthenticationError(SecureRangeError):
    """Server signature invalid or server rejected our credentials."""


class CryptoInvariantError(SecureRangeError):
    """Zero scalar or failed algebraic consistency during proof construction."""


class ProofLivenessError(SecureRangeError):
    """Proof construction exhausted its attempt cap."""


class RangeProofConstructionError(SecureRangeError, ValueError):
    """Invalid proof inputs: x outside [min, max], min > max, or bad bitlen."""


class FourSquaresExhaustion(SecureRangeError):
    """No four-square representation found. Indicates a bug."""


class RoundRejectedError(SecureRangeError):
    """A range-proof round was rejected and the session aborts on failure."""

    def __init__(self, request_id: int, message: str):
        super().__init__(f"range proof {request_id} rejected: {message}")
        self.request_id = request_id
        self.message = message
