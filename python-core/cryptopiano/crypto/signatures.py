#!/usr/bin/env python3
"""
CryptoPiano Signature Module

This module wraps the lattice-based signature scheme used to prove who
composed a hidden message. The scheme is ML-DSA (the standardized form of
CRYSTALS-Dilithium) provided by the ``pqcrypto`` package, parameterized by
a security level:

    level 2 -> ML-DSA-44
    level 3 -> ML-DSA-65 (default)
    level 5 -> ML-DSA-87

================================================================================
PRIMITIVE CONTRACT
================================================================================

    sign(message, private_key, level) -> signature
    verify(message, signature, public_key, level) -> bool

Verification is failure-safe. Malformed keys, a key that belongs to a
different security level, an empty signature or any exception raised by
the underlying library all count as "not verified". ``verify_signature``
never raises.

================================================================================
KEY PAIR SERIALIZATION
================================================================================

    [u32 public key length][public key][u32 private key length][private key]

Little-endian lengths. The security level is not stored; it is recovered
from the key sizes. Serialized key pairs belong in the holder's local key
store only. Public keys travel between users as base64 text
(``encode_key`` / ``decode_key``).

Author: CryptoPiano Development Team
Version: 1.0.0
"""

import base64
import binascii
import logging
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Union

from pqcrypto.sign import ml_dsa_44, ml_dsa_65, ml_dsa_87

from ..errors import FormatMismatch

logger = logging.getLogger(__name__)


_U32 = struct.Struct("<I")

# FIPS 204 sizes, used when the binding does not publish them
_DEFAULT_SIZES = {
    2: (1312, 2560),
    3: (1952, 4032),
    5: (2592, 4896),
}


class SecurityLevel(IntEnum):
    """
    ML-DSA security levels.

    The integer values match the NIST security categories used to select
    the parameter set.
    """

    LEVEL_2 = 2
    LEVEL_3 = 3
    LEVEL_5 = 5

    @property
    def scheme(self):
        """The ``pqcrypto`` module implementing this level."""
        return _SCHEMES[self]

    @property
    def algorithm(self) -> str:
        return {2: "ML-DSA-44", 3: "ML-DSA-65", 5: "ML-DSA-87"}[int(self)]

    @property
    def public_key_size(self) -> int:
        return getattr(self.scheme, "PUBLIC_KEY_SIZE", _DEFAULT_SIZES[int(self)][0])

    @property
    def private_key_size(self) -> int:
        return getattr(self.scheme, "SECRET_KEY_SIZE", _DEFAULT_SIZES[int(self)][1])

    @classmethod
    def coerce(cls, value: Union[int, "SecurityLevel"]) -> "SecurityLevel":
        """
        Convert an int to a level.

        Raises:
            ValueError: If ``value`` is not 2, 3 or 5
        """
        try:
            return cls(int(value))
        except ValueError:
            raise ValueError(f"Security level must be 2, 3 or 5, got {value!r}") from None

    @classmethod
    def from_public_key(cls, public_key: bytes) -> Optional["SecurityLevel"]:
        """Infer the level from a public key's size; None if no level matches."""
        for level in cls:
            if len(public_key) == level.public_key_size:
                return level
        return None

    @classmethod
    def from_private_key(cls, private_key: bytes) -> Optional["SecurityLevel"]:
        """Infer the level from a private key's size; None if no level matches."""
        for level in cls:
            if len(private_key) == level.private_key_size:
                return level
        return None


_SCHEMES = {
    SecurityLevel.LEVEL_2: ml_dsa_44,
    SecurityLevel.LEVEL_3: ml_dsa_65,
    SecurityLevel.LEVEL_5: ml_dsa_87,
}

DEFAULT_LEVEL = SecurityLevel.LEVEL_3


@dataclass(frozen=True)
class KeyPair:
    """
    An ML-DSA key pair.

    The private key is excluded from ``repr`` so it cannot leak into logs
    or tracebacks.

    Attributes:
        public_key: Verification key, shared with contacts
        private_key: Signing key, kept in the local key store only
        level: Security level both keys belong to
    """

    public_key: bytes
    private_key: bytes = field(repr=False)
    level: SecurityLevel = DEFAULT_LEVEL

    @property
    def public_key_b64(self) -> str:
        return encode_key(self.public_key)


def generate_keypair(level: Union[int, SecurityLevel] = DEFAULT_LEVEL) -> KeyPair:
    """
    Generate a new key pair.

    Args:
        level: Security level 2, 3 or 5

    Returns:
        Fresh key pair

    Example:
        >>> pair = generate_keypair(3)
        >>> pair.level.algorithm
        'ML-DSA-65'
    """
    level = SecurityLevel.coerce(level)
    keygen = getattr(level.scheme, "keygen", None) or level.scheme.generate_keypair
    public_key, private_key = keygen()
    logger.info(f"Generated {level.algorithm} key pair")
    return KeyPair(public_key=bytes(public_key), private_key=bytes(private_key), level=level)


def sign_message(message: bytes, private_key: bytes, level: Union[int, SecurityLevel] = DEFAULT_LEVEL) -> bytes:
    """
    Produce a detached signature over ``message``.

    Args:
        message: Bytes to sign
        private_key: Signing key
        level: Security level the key belongs to

    Returns:
        The signature bytes

    Raises:
        FormatMismatch: If the private key size does not match ``level``
    """
    level = SecurityLevel.coerce(level)
    if len(private_key) != level.private_key_size:
        raise FormatMismatch(
            f"Private key does not belong to {level.algorithm}",
            details={"length": len(private_key), "expected": level.private_key_size},
        )
    return bytes(level.scheme.sign(bytes(private_key), bytes(message)))


def verify_signature(
    message: bytes,
    signature: bytes,
    public_key: bytes,
    level: Optional[Union[int, SecurityLevel]] = None,
) -> bool:
    """
    Check a detached signature. Never raises.

    Args:
        message: Signed bytes
        signature: Detached signature
        public_key: Signer's verification key
        level: Expected security level; inferred from the key size if None

    Returns:
        True only when the signature is valid for ``message`` under
        ``public_key`` at ``level``
    """
    try:
        if level is None:
            level = SecurityLevel.from_public_key(public_key)
            if level is None:
                logger.debug("Public key size matches no security level")
                return False
        else:
            level = SecurityLevel.coerce(level)

        if len(public_key) != level.public_key_size or not signature:
            return False

        # pqcrypto 1.x returns None on success, older releases return a bool
        result = level.scheme.verify(bytes(public_key), bytes(message), bytes(signature))
        return result is not False
    except Exception as e:
        # pqcrypto 1.x reports a bad signature by raising InvalidSignatureError
        logger.debug(f"Signature verification failed: {type(e).__name__}")
        return False


def serialize_keypair(keypair: KeyPair) -> bytes:
    """Serialize a key pair as two length-prefixed fields."""
    return b"".join([
        _U32.pack(len(keypair.public_key)),
        keypair.public_key,
        _U32.pack(len(keypair.private_key)),
        keypair.private_key,
    ])


def deserialize_keypair(data: bytes) -> Optional[KeyPair]:
    """
    Parse a serialized key pair.

    Returns:
        The key pair, or None when a length field runs past the buffer or
        the key sizes do not belong to one security level
    """
    data = bytes(data)
    offset = 0
    fields = []
    for _ in range(2):
        if len(data) - offset < _U32.size:
            return None
        (length,) = _U32.unpack_from(data, offset)
        offset += _U32.size
        if length > len(data) - offset:
            return None
        fields.append(data[offset:offset + length])
        offset += length

    public_key, private_key = fields
    level = SecurityLevel.from_public_key(public_key)
    if level is None or len(private_key) != level.private_key_size:
        logger.debug("Serialized key sizes match no security level")
        return None
    return KeyPair(public_key=public_key, private_key=private_key, level=level)


def encode_key(key: bytes) -> str:
    """Base64-encode a key for display or exchange."""
    return base64.b64encode(key).decode("ascii")


def decode_key(text: str) -> Optional[bytes]:
    """Decode a base64 key; None if ``text`` is not valid base64."""
    try:
        return base64.b64decode(text.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None
