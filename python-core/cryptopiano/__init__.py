# CryptoPiano
# Password protected, signed messages hidden in audio
#
# This package provides the main interfaces for:
# - LSB steganography in 16-bit PCM WAV carriers (stego)
# - Password and signature envelopes (crypto)
# - The compose / extract pipeline and its stores (pipeline)
#
# Version: 1.0.0

from .errors import (
    PipelineError,
    CapacityExceeded,
    MalformedCarrier,
    FormatMismatch,
    AuthenticationFailure,
    SignatureInvalid,
    MissingKeyMaterial,
)
from .config import PipelineConfig
from .stego import AudioCarrier, BitChannel, StegoCodec, embed_message, extract_message
from .crypto import (
    SecurityLevel,
    KeyPair,
    generate_keypair,
    encrypt_with_password,
    decrypt_with_password,
    serialize_encrypted_data,
    deserialize_encrypted_data,
    create_signed_message,
    serialize_signed_message,
    deserialize_signed_message,
)
from .pipeline import (
    MessagePipeline,
    ComposeResult,
    ExtractedPayload,
    DecodedMessage,
    PayloadKind,
    MessageStatus,
    Contact,
    InMemoryContactStore,
    JsonContactStore,
    InMemoryKeyStore,
    JsonKeyStore,
)

__version__ = "1.0.0"

__all__ = [
    # Errors
    'PipelineError',
    'CapacityExceeded',
    'MalformedCarrier',
    'FormatMismatch',
    'AuthenticationFailure',
    'SignatureInvalid',
    'MissingKeyMaterial',
    # Configuration
    'PipelineConfig',
    # Steganography
    'AudioCarrier',
    'BitChannel',
    'StegoCodec',
    'embed_message',
    'extract_message',
    # Envelopes
    'SecurityLevel',
    'KeyPair',
    'generate_keypair',
    'encrypt_with_password',
    'decrypt_with_password',
    'serialize_encrypted_data',
    'deserialize_encrypted_data',
    'create_signed_message',
    'serialize_signed_message',
    'deserialize_signed_message',
    # Pipeline
    'MessagePipeline',
    'ComposeResult',
    'ExtractedPayload',
    'DecodedMessage',
    'PayloadKind',
    'MessageStatus',
    'Contact',
    'InMemoryContactStore',
    'JsonContactStore',
    'InMemoryKeyStore',
    'JsonKeyStore',
]
