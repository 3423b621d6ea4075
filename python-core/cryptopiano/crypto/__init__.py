"""
CryptoPiano Cryptographic Layer.

This package provides the two envelopes wrapped around a hidden message
and the primitives they are built on.

Modules:
    engine: AEAD (Ascon-AEAD128) and XOF (Ascon-XOF128) primitives
    kdf: Password key derivation
    memory: Wipe-on-exit buffers for derived keys
    envelope: Password envelope with integrity marker and wire format
    signatures: ML-DSA key pairs, signing and verification
    signed: Signed message envelope and wire format

Usage:
    >>> from cryptopiano.crypto import encrypt_with_password, serialize_encrypted_data
    >>> blob = serialize_encrypted_data(encrypt_with_password("secret", b"hi"))
"""

from .engine import CryptoEngine, get_engine, KEY_LENGTH, NONCE_LENGTH, TAG_LENGTH
from .kdf import derive_key, SALT_LENGTH
from .memory import SecureBuffer, secure_compare, secure_wipe
from .envelope import (
    INTEGRITY_MARKER,
    EncryptedData,
    PasswordEncryptedData,
    encrypt_with_password,
    decrypt_with_password,
    open_envelope,
    serialize_encrypted_data,
    deserialize_encrypted_data,
)
from .signatures import (
    DEFAULT_LEVEL,
    KeyPair,
    SecurityLevel,
    generate_keypair,
    sign_message,
    verify_signature,
    serialize_keypair,
    deserialize_keypair,
    encode_key,
    decode_key,
)
from .signed import (
    SignedMessage,
    create_signed_message,
    verify_signed_message,
    serialize_signed_message,
    deserialize_signed_message,
)

__all__ = [
    # Primitives
    "CryptoEngine",
    "get_engine",
    "KEY_LENGTH",
    "NONCE_LENGTH",
    "TAG_LENGTH",
    "derive_key",
    "SALT_LENGTH",
    "SecureBuffer",
    "secure_compare",
    "secure_wipe",
    # Password envelope
    "INTEGRITY_MARKER",
    "EncryptedData",
    "PasswordEncryptedData",
    "encrypt_with_password",
    "decrypt_with_password",
    "open_envelope",
    "serialize_encrypted_data",
    "deserialize_encrypted_data",
    # Signatures
    "DEFAULT_LEVEL",
    "KeyPair",
    "SecurityLevel",
    "generate_keypair",
    "sign_message",
    "verify_signature",
    "serialize_keypair",
    "deserialize_keypair",
    "encode_key",
    "decode_key",
    # Signed envelope
    "SignedMessage",
    "create_signed_message",
    "verify_signed_message",
    "serialize_signed_message",
    "deserialize_signed_message",
]
