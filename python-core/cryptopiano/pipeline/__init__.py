# CryptoPiano Pipeline Module
# End-to-end compose and extract flows
#
# This package provides:
# - The message pipeline (orchestrator)
# - Injected contact and key stores (stores)

from .orchestrator import (
    MessagePipeline,
    ComposeResult,
    ExtractedPayload,
    DecodedMessage,
    PayloadKind,
    MessageStatus,
)
from .stores import (
    Contact,
    ContactStore,
    InMemoryContactStore,
    JsonContactStore,
    KeyStore,
    InMemoryKeyStore,
    JsonKeyStore,
)

__all__ = [
    # Orchestrator
    'MessagePipeline',
    'ComposeResult',
    'ExtractedPayload',
    'DecodedMessage',
    'PayloadKind',
    'MessageStatus',
    # Stores
    'Contact',
    'ContactStore',
    'InMemoryContactStore',
    'JsonContactStore',
    'KeyStore',
    'InMemoryKeyStore',
    'JsonKeyStore',
]
