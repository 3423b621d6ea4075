"""
Password Key Derivation.

Derives the 16-byte AEAD key of the password envelope:

    key = Ascon-XOF128(utf8(password) || salt, 16)

The derivation is deterministic: the same password and salt always give
the same key. Protection against precomputation comes from the salt,
which ``encrypt_with_password`` draws fresh for every message. The XOF is a
single pass with no work factor.

Example Usage:
    >>> from cryptopiano.crypto.kdf import derive_key
    >>> key = derive_key("secret", salt)
    >>> len(key)
    16
"""

from typing import Optional, Union

from .engine import KEY_LENGTH, CryptoEngine, get_engine

SALT_LENGTH = 16


def derive_key(
    password: Union[str, bytes],
    salt: bytes,
    length: int = KEY_LENGTH,
    engine: Optional[CryptoEngine] = None,
) -> bytearray:
    """
    Derive a symmetric key from ``password`` and ``salt``.

    Args:
        password: Password text (UTF-8 encoded) or raw bytes
        salt: Per-message random salt
        length: Key length in bytes
        engine: Engine providing the XOF; the shared engine by default

    Returns:
        The key as a ``bytearray`` so the caller can wipe it
    """
    engine = engine or get_engine()
    password_bytes = password.encode("utf-8") if isinstance(password, str) else bytes(password)
    return bytearray(engine.xof(password_bytes + bytes(salt), length))
