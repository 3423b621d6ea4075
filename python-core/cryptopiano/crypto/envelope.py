"""
Password Envelope.

Encrypts a payload under a password and serializes the result so it can be
hidden in a carrier.

Encryption:
    1. draw a fresh 16-byte salt
    2. key = XOF(utf8(password) || salt, 16)
    3. prepend the integrity marker ``b"CRYPTOPIANO_V1"`` to the data
    4. AEAD-encrypt marker || data under a fresh 16-byte nonce

Decryption reverses the steps and returns None when either the AEAD tag or
the marker check fails. Both failures mean "wrong password or corrupted
data"; callers cannot tell them apart.

Wire format (little-endian):

    [u32 salt length = 16][salt 16][nonce 16][tag 16][u32 ciphertext length][ciphertext]

Example Usage:
    >>> envelope = encrypt_with_password("secret", b"hi")
    >>> blob = serialize_encrypted_data(envelope)
    >>> parsed = deserialize_encrypted_data(blob)
    >>> decrypt_with_password("secret", parsed.encrypted_data, parsed.salt)
    b'hi'
    >>> decrypt_with_password("wrong", parsed.encrypted_data, parsed.salt) is None
    True
"""

import logging
import struct
from dataclasses import dataclass
from typing import Optional, Union

from ..errors import AuthenticationFailure, FormatMismatch
from .engine import NONCE_LENGTH, TAG_LENGTH, CryptoEngine, get_engine
from .kdf import SALT_LENGTH, derive_key
from .memory import SecureBuffer, secure_compare

logger = logging.getLogger(__name__)


INTEGRITY_MARKER = b"CRYPTOPIANO_V1"

_U32 = struct.Struct("<I")

# salt length field + salt + nonce + tag + ciphertext length field
ENVELOPE_OVERHEAD = _U32.size + SALT_LENGTH + NONCE_LENGTH + TAG_LENGTH + _U32.size


@dataclass(frozen=True)
class EncryptedData:
    """
    AEAD output.

    Attributes:
        ciphertext: Encrypted marker and payload, tag excluded
        nonce: 16-byte nonce used for this message
        tag: 16-byte authentication tag
    """

    ciphertext: bytes
    nonce: bytes
    tag: bytes

    def __post_init__(self):
        if len(self.nonce) != NONCE_LENGTH:
            raise FormatMismatch(f"Nonce must be {NONCE_LENGTH} bytes", details={"length": len(self.nonce)})
        if len(self.tag) != TAG_LENGTH:
            raise FormatMismatch(f"Tag must be {TAG_LENGTH} bytes", details={"length": len(self.tag)})


@dataclass(frozen=True)
class PasswordEncryptedData:
    """
    A complete password envelope: the AEAD output plus the KDF salt.

    Attributes:
        encrypted_data: Ciphertext, nonce and tag
        salt: 16-byte salt the key was derived with
    """

    encrypted_data: EncryptedData
    salt: bytes

    def __post_init__(self):
        if len(self.salt) != SALT_LENGTH:
            raise FormatMismatch(f"Salt must be {SALT_LENGTH} bytes", details={"length": len(self.salt)})

    def to_bytes(self) -> bytes:
        """Serialize to the envelope wire format."""
        ciphertext = self.encrypted_data.ciphertext
        return b"".join([
            _U32.pack(SALT_LENGTH),
            self.salt,
            self.encrypted_data.nonce,
            self.encrypted_data.tag,
            _U32.pack(len(ciphertext)),
            ciphertext,
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "PasswordEncryptedData":
        """
        Parse the envelope wire format.

        Every field is bounds-checked against the remaining buffer before it
        is read. Bytes after the ciphertext are ignored.

        Args:
            data: Serialized envelope

        Returns:
            Parsed envelope

        Raises:
            FormatMismatch: If the salt length field is not 16 or any field
                runs past the end of ``data``
        """
        data = bytes(data)
        if len(data) < ENVELOPE_OVERHEAD:
            raise FormatMismatch(
                "Buffer too short for a password envelope",
                details={"length": len(data), "minimum": ENVELOPE_OVERHEAD},
            )

        (salt_length,) = _U32.unpack_from(data, 0)
        if salt_length != SALT_LENGTH:
            raise FormatMismatch(
                f"Salt length field must be {SALT_LENGTH}",
                details={"salt_length": salt_length},
            )

        offset = _U32.size
        salt = data[offset:offset + SALT_LENGTH]
        offset += SALT_LENGTH
        nonce = data[offset:offset + NONCE_LENGTH]
        offset += NONCE_LENGTH
        tag = data[offset:offset + TAG_LENGTH]
        offset += TAG_LENGTH
        (ciphertext_length,) = _U32.unpack_from(data, offset)
        offset += _U32.size

        if ciphertext_length > len(data) - offset:
            raise FormatMismatch(
                "Ciphertext length runs past the end of the buffer",
                details={"ciphertext_length": ciphertext_length, "remaining": len(data) - offset},
            )

        ciphertext = data[offset:offset + ciphertext_length]
        return cls(encrypted_data=EncryptedData(ciphertext=ciphertext, nonce=nonce, tag=tag), salt=salt)


def encrypt_with_password(
    password: str,
    data: Union[bytes, bytearray],
    associated_data: Union[str, bytes] = b"",
    engine: Optional[CryptoEngine] = None,
) -> PasswordEncryptedData:
    """
    Encrypt ``data`` under ``password``.

    A new salt and a new nonce are drawn on every call, so encrypting the
    same input twice never yields the same envelope.

    Args:
        password: Password text
        data: Payload bytes
        associated_data: Authenticated context; must be supplied again
            unchanged for decryption
        engine: Crypto engine; the shared engine by default

    Returns:
        The complete envelope
    """
    engine = engine or get_engine()
    salt = engine.generate_salt(SALT_LENGTH)
    nonce = engine.generate_nonce()

    with SecureBuffer.wrap(derive_key(password, salt, engine=engine)) as key:
        sealed = engine.aead_encrypt(key.bytes(), nonce, associated_data, INTEGRITY_MARKER + bytes(data))

    ciphertext, tag = engine.split_tag(sealed)
    logger.debug(f"Encrypted {len(data)} bytes into a {len(ciphertext)}-byte ciphertext")
    return PasswordEncryptedData(
        encrypted_data=EncryptedData(ciphertext=ciphertext, nonce=nonce, tag=tag),
        salt=salt,
    )


def decrypt_with_password(
    password: str,
    encrypted_data: EncryptedData,
    salt: bytes,
    associated_data: Union[str, bytes] = b"",
    engine: Optional[CryptoEngine] = None,
) -> Optional[bytes]:
    """
    Decrypt an envelope produced by ``encrypt_with_password``.

    Args:
        password: Password text
        encrypted_data: Ciphertext, nonce and tag
        salt: Salt stored in the envelope
        associated_data: Same associated data as used for encryption
        engine: Crypto engine; the shared engine by default

    Returns:
        The payload, or None for a wrong password, tampered ciphertext or a
        missing integrity marker
    """
    engine = engine or get_engine()

    with SecureBuffer.wrap(derive_key(password, salt, engine=engine)) as key:
        decrypted = engine.aead_decrypt(
            key.bytes(),
            encrypted_data.nonce,
            associated_data,
            encrypted_data.ciphertext + encrypted_data.tag,
        )

    if decrypted is None or len(decrypted) < len(INTEGRITY_MARKER):
        logger.debug("Envelope authentication failed")
        return None

    if not secure_compare(decrypted[:len(INTEGRITY_MARKER)], INTEGRITY_MARKER):
        logger.debug("Integrity marker mismatch")
        return None

    return decrypted[len(INTEGRITY_MARKER):]


def open_envelope(
    password: str,
    envelope: PasswordEncryptedData,
    associated_data: Union[str, bytes] = b"",
    engine: Optional[CryptoEngine] = None,
) -> bytes:
    """
    Strict variant of ``decrypt_with_password``.

    Raises:
        AuthenticationFailure: Wrong password or corrupted data
    """
    plaintext = decrypt_with_password(password, envelope.encrypted_data, envelope.salt, associated_data, engine)
    if plaintext is None:
        raise AuthenticationFailure("Wrong password or corrupted data")
    return plaintext


def serialize_encrypted_data(envelope: PasswordEncryptedData) -> bytes:
    """Serialize ``envelope`` to its wire format."""
    return envelope.to_bytes()


def deserialize_encrypted_data(data: bytes) -> Optional[PasswordEncryptedData]:
    """
    Parse a serialized envelope.

    Returns:
        The envelope, or None when ``data`` is not a password envelope.
        Never raises for malformed input.
    """
    try:
        return PasswordEncryptedData.from_bytes(data)
    except FormatMismatch as e:
        logger.debug(f"Not a password envelope: {e.message}")
        return None
