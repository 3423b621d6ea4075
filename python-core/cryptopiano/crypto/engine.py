"""
CryptoPiano Cryptographic Engine.

This module provides the symmetric primitives the password envelope is
built on. They are treated as opaque collaborators with a fixed contract:

    aead_encrypt(key[16], nonce[16], associated_data, plaintext) -> ciphertext || tag[16]
    aead_decrypt(key[16], nonce[16], associated_data, ciphertext || tag) -> plaintext | None
    xof(data, length) -> bytes[length]

The AEAD is Ascon-AEAD128 and the extendable-output function is
Ascon-XOF128, as standardized in NIST SP 800-232. Both are sponge modes
run over the Ascon permutation of the ``ascon`` package, with the state
words loaded little-endian. Tags are compared with ``cryptography``'s
constant-time helper. Randomness comes from ``os.urandom``.

Nonce freshness is the caller's obligation: ``generate_nonce`` returns a new
random value on every call, but nothing here can detect reuse of a nonce
under the same key.

Example Usage:
    >>> engine = CryptoEngine()
    >>> key = engine.random_bytes(KEY_LENGTH)
    >>> nonce = engine.generate_nonce()
    >>> sealed = engine.aead_encrypt(key, nonce, b"", b"Secret message")
    >>> engine.aead_decrypt(key, nonce, b"", sealed)
    b'Secret message'
"""

import logging
import os
from typing import List, Optional, Union

from ascon._ascon import ascon_permutation
from cryptography.hazmat.primitives import constant_time

logger = logging.getLogger(__name__)


KEY_LENGTH = 16
NONCE_LENGTH = 16
TAG_LENGTH = 16

AEAD_ALGORITHM = "ascon-aead128"
XOF_ALGORITHM = "ascon-xof128"

# Initial state words: version, rounds, tag length and rate packed per SP 800-232
AEAD_IV = 0x00001000808C0001
XOF_IV = 0x0000080000CC0003

AEAD_RATE = 16
XOF_RATE = 8
ROUNDS_A = 12
ROUNDS_B = 8
DOMAIN_SEPARATOR = 1 << 63


def as_bytes(value: Union[str, bytes, bytearray, memoryview, None]) -> bytes:
    """Normalize associated data and similar inputs; text is UTF-8 encoded."""
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _word(data: bytes, offset: int = 0) -> int:
    return int.from_bytes(data[offset:offset + 8], "little")


def _words_to_bytes(*words: int) -> bytes:
    return b"".join(word.to_bytes(8, "little") for word in words)


def _pad(data: bytes, rate: int) -> bytes:
    """Append 0x01 and zeros up to the next multiple of ``rate``."""
    return data + b"\x01" + bytes(rate - 1 - len(data) % rate)


def _absorb_block(state: List[int], block: bytes) -> None:
    state[0] ^= _word(block)
    state[1] ^= _word(block, 8)


def _aead_start(key: bytes, nonce: bytes, associated_data: bytes) -> List[int]:
    """Initialize the AEAD state and absorb the associated data."""
    k0, k1 = _word(key), _word(key, 8)
    state = [AEAD_IV, k0, k1, _word(nonce), _word(nonce, 8)]
    ascon_permutation(state, ROUNDS_A)
    state[3] ^= k0
    state[4] ^= k1

    if associated_data:
        padded = _pad(associated_data, AEAD_RATE)
        for offset in range(0, len(padded), AEAD_RATE):
            _absorb_block(state, padded[offset:offset + AEAD_RATE])
            ascon_permutation(state, ROUNDS_B)

    state[4] ^= DOMAIN_SEPARATOR
    return state


def _aead_finish(state: List[int], key: bytes) -> bytes:
    """Run the finalization and return the 16-byte tag."""
    k0, k1 = _word(key), _word(key, 8)
    state[2] ^= k0
    state[3] ^= k1
    ascon_permutation(state, ROUNDS_A)
    return _words_to_bytes(state[3] ^ k0, state[4] ^ k1)


class CryptoEngine:
    """
    Symmetric cryptographic engine.

    The engine is stateless apart from its configuration and may be shared
    between pipelines and threads.

    Attributes:
        key_length: AEAD key size in bytes (16)
        nonce_length: AEAD nonce size in bytes (16)
        tag_length: AEAD tag size in bytes (16)
    """

    key_length = KEY_LENGTH
    nonce_length = NONCE_LENGTH
    tag_length = TAG_LENGTH

    def __init__(self):
        logger.debug(f"Crypto engine initialized with {AEAD_ALGORITHM} and {XOF_ALGORITHM}")

    def random_bytes(self, length: int) -> bytes:
        """Return ``length`` bytes from the operating system CSPRNG."""
        return os.urandom(length)

    def generate_nonce(self) -> bytes:
        """Return a fresh 16-byte AEAD nonce."""
        return os.urandom(NONCE_LENGTH)

    def generate_salt(self, length: int = 16) -> bytes:
        """Return a fresh random salt."""
        return os.urandom(length)

    def xof(self, data: bytes, length: int) -> bytes:
        """
        Hash ``data`` to exactly ``length`` bytes with Ascon-XOF128.

        Args:
            data: Input bytes
            length: Output length in bytes

        Returns:
            Digest of ``length`` bytes
        """
        state = [XOF_IV, 0, 0, 0, 0]
        ascon_permutation(state, ROUNDS_A)

        padded = _pad(bytes(data), XOF_RATE)
        for offset in range(0, len(padded), XOF_RATE):
            state[0] ^= _word(padded, offset)
            ascon_permutation(state, ROUNDS_A)

        output = bytearray()
        while len(output) < length:
            output += state[0].to_bytes(8, "little")
            ascon_permutation(state, ROUNDS_A)
        return bytes(output[:length])

    def aead_encrypt(
        self,
        key: bytes,
        nonce: bytes,
        associated_data: Union[str, bytes, None],
        plaintext: bytes,
    ) -> bytes:
        """
        Authenticated-encrypt ``plaintext`` with Ascon-AEAD128.

        Args:
            key: 16-byte key
            nonce: 16-byte nonce, never reused under the same key
            associated_data: Authenticated but unencrypted data
            plaintext: Data to encrypt

        Returns:
            Ciphertext followed by the 16-byte tag

        Raises:
            ValueError: If the key or nonce has the wrong size
        """
        self._check_sizes(key, nonce)
        key, plaintext = bytes(key), bytes(plaintext)
        state = _aead_start(key, bytes(nonce), as_bytes(associated_data))

        padded = _pad(plaintext, AEAD_RATE)
        last = len(padded) - AEAD_RATE
        ciphertext = bytearray()
        for offset in range(0, last, AEAD_RATE):
            _absorb_block(state, padded[offset:offset + AEAD_RATE])
            ciphertext += _words_to_bytes(state[0], state[1])
            ascon_permutation(state, ROUNDS_B)

        _absorb_block(state, padded[last:])
        ciphertext += _words_to_bytes(state[0], state[1])[:len(plaintext) - last]

        return bytes(ciphertext) + _aead_finish(state, key)

    def aead_decrypt(
        self,
        key: bytes,
        nonce: bytes,
        associated_data: Union[str, bytes, None],
        sealed: bytes,
    ) -> Optional[bytes]:
        """
        Decrypt and authenticate ``ciphertext || tag``.

        Returns:
            The plaintext, or None when authentication fails, the input is
            shorter than a tag, or the key or nonce has the wrong size
        """
        if len(key) != KEY_LENGTH or len(nonce) != NONCE_LENGTH or len(sealed) < TAG_LENGTH:
            return None

        key = bytes(key)
        ciphertext, tag = self.split_tag(bytes(sealed))
        state = _aead_start(key, bytes(nonce), as_bytes(associated_data))

        last = len(ciphertext) - len(ciphertext) % AEAD_RATE
        plaintext = bytearray()
        for offset in range(0, last, AEAD_RATE):
            c0 = _word(ciphertext, offset)
            c1 = _word(ciphertext, offset + 8)
            plaintext += _words_to_bytes(state[0] ^ c0, state[1] ^ c1)
            state[0], state[1] = c0, c1
            ascon_permutation(state, ROUNDS_B)

        # XORing the padded plaintext tail leaves the ciphertext bytes in the rate
        keystream = _words_to_bytes(state[0], state[1])
        tail = bytes(c ^ k for c, k in zip(ciphertext[last:], keystream))
        _absorb_block(state, _pad(tail, AEAD_RATE))
        plaintext += tail

        if not constant_time.bytes_eq(_aead_finish(state, key), tag):
            return None
        return bytes(plaintext)

    @staticmethod
    def split_tag(sealed: bytes):
        """Split ``ciphertext || tag`` into ``(ciphertext, tag)``."""
        return sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

    @staticmethod
    def _check_sizes(key: bytes, nonce: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise ValueError(f"AEAD key must be {KEY_LENGTH} bytes, got {len(key)}")
        if len(nonce) != NONCE_LENGTH:
            raise ValueError(f"AEAD nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")


_engine: Optional[CryptoEngine] = None


def get_engine() -> CryptoEngine:
    """Return the shared default engine."""
    global _engine
    if _engine is None:
        _engine = CryptoEngine()
    return _engine
