"""
Signed Message Envelope.

Binds a message to a detached signature. The message travels unmodified
next to the signature; the signature never replaces or wraps it.

Wire format (little-endian):

    [u32 message length][message][u32 signature length][signature]

Both lengths are read from their own fields and checked against the
remaining buffer. Nothing is inferred from the total buffer size.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Optional, Union

from ..errors import FormatMismatch, SignatureInvalid
from .signatures import DEFAULT_LEVEL, SecurityLevel, sign_message, verify_signature

logger = logging.getLogger(__name__)


_U32 = struct.Struct("<I")


@dataclass(frozen=True)
class SignedMessage:
    """
    A message and its detached signature.

    Attributes:
        message: The signed bytes, exactly as composed
        signature: Detached signature over ``message``
    """

    message: bytes
    signature: bytes

    @property
    def text(self) -> Optional[str]:
        """The message decoded as UTF-8, or None if it is not text."""
        try:
            return self.message.decode("utf-8")
        except UnicodeDecodeError:
            return None

    def verify(self, public_key: bytes, level: Optional[Union[int, SecurityLevel]] = None) -> bool:
        """Check the signature against ``public_key``. Never raises."""
        return verify_signature(self.message, self.signature, public_key, level)

    def require_valid(self, public_key: bytes, level: Optional[Union[int, SecurityLevel]] = None) -> None:
        """
        Strict variant of ``verify``.

        Raises:
            SignatureInvalid: If the signature does not verify
        """
        if not self.verify(public_key, level):
            raise SignatureInvalid("Signature does not match the selected public key")

    def to_bytes(self) -> bytes:
        return b"".join([
            _U32.pack(len(self.message)),
            self.message,
            _U32.pack(len(self.signature)),
            self.signature,
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "SignedMessage":
        """
        Parse the signed-message wire format.

        Raises:
            FormatMismatch: If a length field runs past the buffer or the
                signature is empty
        """
        data = bytes(data)
        offset = 0

        if len(data) < _U32.size:
            raise FormatMismatch("Buffer too short for a message length", details={"length": len(data)})
        (message_length,) = _U32.unpack_from(data, offset)
        offset += _U32.size
        if message_length > len(data) - offset:
            raise FormatMismatch(
                "Message length runs past the end of the buffer",
                details={"message_length": message_length, "remaining": len(data) - offset},
            )
        message = data[offset:offset + message_length]
        offset += message_length

        if len(data) - offset < _U32.size:
            raise FormatMismatch("Buffer too short for a signature length", details={"offset": offset})
        (signature_length,) = _U32.unpack_from(data, offset)
        offset += _U32.size
        if signature_length == 0:
            raise FormatMismatch("Signature is empty")
        if signature_length > len(data) - offset:
            raise FormatMismatch(
                "Signature length runs past the end of the buffer",
                details={"signature_length": signature_length, "remaining": len(data) - offset},
            )
        signature = data[offset:offset + signature_length]

        return cls(message=message, signature=signature)


def create_signed_message(
    message: Union[str, bytes],
    private_key: bytes,
    level: Union[int, SecurityLevel] = DEFAULT_LEVEL,
) -> SignedMessage:
    """
    Sign ``message`` and pair it with its signature.

    Args:
        message: Text (UTF-8 encoded) or bytes
        private_key: Signing key
        level: Security level of ``private_key``

    Returns:
        The signed message
    """
    message_bytes = message.encode("utf-8") if isinstance(message, str) else bytes(message)
    signature = sign_message(message_bytes, private_key, level)
    logger.debug(f"Signed {len(message_bytes)}-byte message")
    return SignedMessage(message=message_bytes, signature=signature)


def verify_signed_message(
    signed: SignedMessage,
    public_key: bytes,
    level: Optional[Union[int, SecurityLevel]] = None,
) -> bool:
    return signed.verify(public_key, level)


def serialize_signed_message(signed: SignedMessage) -> bytes:
    return signed.to_bytes()


def deserialize_signed_message(data: bytes) -> Optional[SignedMessage]:
    """Parse a signed message; None when ``data`` is not one. Never raises for malformed input."""
    try:
        return SignedMessage.from_bytes(data)
    except FormatMismatch as e:
        logger.debug(f"Not a signed message: {e.message}")
        return None
