"""
Secure Memory Helpers.

Password-derived keys must not outlive the encrypt or decrypt call that
needed them. This module keeps such material in a mutable buffer that is
overwritten when the owning ``with`` block exits.

Python cannot guarantee that no other copy exists (immutable ``bytes``
handed to a cipher may be copied by the interpreter), so wiping is best
effort: it removes the copy this code owns.

Example:
    >>> with SecureBuffer.wrap(derive_key(password, salt)) as key:
    ...     engine.aead_encrypt(key.bytes(), nonce, b"", plaintext)
    ... # key bytes are zeroed here
"""

import hmac
import os
from typing import Union


def secure_wipe(data: bytearray, size: int = -1) -> None:
    """
    Overwrite ``data`` in place.

    Three passes: random bytes, 0xFF, then zeros, so the final state is a
    clean zero buffer.

    Args:
        data: Mutable buffer to wipe. Immutable ``bytes`` cannot be wiped
            and are ignored.
        size: Number of leading bytes to wipe; the whole buffer by default
    """
    if not isinstance(data, bytearray):
        return

    length = len(data) if size < 0 else min(size, len(data))
    if length == 0:
        return

    data[:length] = os.urandom(length)
    data[:length] = b"\xff" * length
    data[:length] = bytes(length)


def secure_compare(a: bytes, b: bytes) -> bool:
    """Compare two byte strings in constant time."""
    return hmac.compare_digest(bytes(a), bytes(b))


class SecureBuffer:
    """
    Context manager owning sensitive bytes that are wiped on exit.

    Attributes:
        size: Buffer length in bytes
    """

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError("Size must be positive")
        self._buffer = bytearray(size)
        self._wiped = False

    @classmethod
    def wrap(cls, data: Union[bytes, bytearray]) -> "SecureBuffer":
        """Copy ``data`` into a new buffer; a ``bytearray`` argument is wiped after copying."""
        buffer = cls(len(data))
        buffer._buffer[:] = data
        if isinstance(data, bytearray):
            secure_wipe(data)
        return buffer

    def __enter__(self) -> "SecureBuffer":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.wipe()
        return False

    def __del__(self):
        if hasattr(self, "_wiped"):
            self.wipe()

    def __len__(self) -> int:
        return len(self._buffer)

    def bytes(self) -> bytes:
        """
        Copy the contents out as ``bytes``.

        The copy is not protected; use it only to hand the key to an API
        that requires ``bytes``.
        """
        if self._wiped:
            raise ValueError("Buffer has already been wiped")
        return bytes(self._buffer)

    def wipe(self) -> None:
        """Wipe the buffer. Safe to call more than once."""
        if not self._wiped:
            secure_wipe(self._buffer)
            self._wiped = True

    @property
    def wiped(self) -> bool:
        return self._wiped

    @property
    def size(self) -> int:
        return len(self._buffer)
