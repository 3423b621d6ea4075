"""
CryptoPiano Error Taxonomy.

Every failure the message pipeline can report is one of the exceptions
below. Encode-path failures (a payload that does not fit, a malformed
envelope handed to a strict constructor) are raised. Decode-path failures
are returned as typed outcomes and only turned into exceptions on request,
through ``DecodedMessage.raise_for_status()``.

Hierarchy:
    PipelineError
    ├── CapacityExceeded        (1001)
    ├── MalformedCarrier        (1002)
    ├── FormatMismatch          (2001)
    ├── AuthenticationFailure   (2002)
    ├── SignatureInvalid        (3001)
    └── MissingKeyMaterial      (3002)
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """
    Base exception for message pipeline errors.

    Attributes:
        message: Human readable description
        code: Numeric error code, stable across releases
        details: Extra context (sizes, offsets); never contains key material
    """

    default_code: int = 1000

    def __init__(self, message: str, code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        base = f"{type(self).__name__}: {self.message}"
        if self.code:
            base += f" (Code: {self.code})"
        return base


class CapacityExceeded(PipelineError):
    """Payload does not fit in the carrier. Raised before any sample is touched."""

    default_code = 1001


class MalformedCarrier(PipelineError):
    """Carrier is too short, has no header, or declares more bits than it holds."""

    default_code = 1002


class FormatMismatch(PipelineError):
    """
    Serialized structure failed a length or constant check.

    Decoders treat this as "not this format" and fall back to the next
    candidate, so it is only raised by the strict ``from_bytes`` parsers.
    """

    default_code = 2001


class AuthenticationFailure(PipelineError):
    """Wrong password or corrupted ciphertext. The two causes are indistinguishable."""

    default_code = 2002


class SignatureInvalid(PipelineError):
    """Signature did not verify against the selected public key."""

    default_code = 3001


class MissingKeyMaterial(PipelineError):
    """A signing key pair or a contact public key was required but not found."""

    default_code = 3002


__all__ = [
    "PipelineError",
    "CapacityExceeded",
    "MalformedCarrier",
    "FormatMismatch",
    "AuthenticationFailure",
    "SignatureInvalid",
    "MissingKeyMaterial",
]
