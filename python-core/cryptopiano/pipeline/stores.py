#!/usr/bin/env python3
"""
CryptoPiano Identity Stores

This module provides the two stores the message pipeline receives as
injected capabilities:

- ContactStore: other people's public keys, looked up by contact id when a
  signed message is verified. The pipeline only reads from it.
- KeyStore: the user's own ML-DSA key pair, read when a message is signed.
  The private key is never logged and never enters an envelope.

Each store has an in-memory implementation (tests, embedding in other
applications) and a JSON file implementation (command line use).

Author: CryptoPiano Development Team
Version: 1.0.0
"""

import json
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..crypto.signatures import (
    KeyPair,
    SecurityLevel,
    decode_key,
    deserialize_keypair,
    encode_key,
    serialize_keypair,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Contacts
# ============================================================================

@dataclass(frozen=True)
class Contact:
    """A known correspondent and the public key used to verify their messages."""
    id: str
    display_name: str
    public_key: bytes

    @property
    def level(self) -> Optional[SecurityLevel]:
        return SecurityLevel.from_public_key(self.public_key)

    def to_dict(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'public_key': encode_key(self.public_key),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> 'Contact':
        public_key = decode_key(data['public_key'])
        if public_key is None:
            raise ValueError(f"Contact {data.get('id')!r} has an invalid public key")
        return cls(id=data['id'], display_name=data['display_name'], public_key=public_key)


def _validated_public_key(public_key: Union[str, bytes]) -> bytes:
    """Accept raw bytes or base64 text; reject keys of no known size."""
    if isinstance(public_key, str):
        decoded = decode_key(public_key)
        if decoded is None:
            raise ValueError("Public key is not valid base64")
        public_key = decoded
    public_key = bytes(public_key)
    if SecurityLevel.from_public_key(public_key) is None:
        raise ValueError(f"Public key of {len(public_key)} bytes matches no ML-DSA security level")
    return public_key


class ContactStore(ABC):
    """Abstract interface for contact storage backends."""

    @abstractmethod
    def get(self, contact_id: str) -> Optional[Contact]:
        """Return the contact with ``contact_id``, or None."""
        pass

    @abstractmethod
    def list(self) -> List[Contact]:
        """Return all contacts in insertion order."""
        pass

    @abstractmethod
    def add(self, display_name: str, public_key: Union[str, bytes]) -> Contact:
        """Store a new contact and return it."""
        pass

    @abstractmethod
    def remove(self, contact_id: str) -> bool:
        """Delete a contact; False if it did not exist."""
        pass


class InMemoryContactStore(ContactStore):
    """Contact store held in a dict."""

    def __init__(self, contacts: Optional[List[Contact]] = None):
        self._contacts: Dict[str, Contact] = {c.id: c for c in contacts or []}
        # Reentrant so subclasses can persist while holding it
        self._lock = threading.RLock()

    def get(self, contact_id: str) -> Optional[Contact]:
        with self._lock:
            return self._contacts.get(contact_id)

    def list(self) -> List[Contact]:
        with self._lock:
            return list(self._contacts.values())

    def add(self, display_name: str, public_key: Union[str, bytes]) -> Contact:
        display_name = display_name.strip()
        if not display_name:
            raise ValueError("Display name must not be empty")
        contact = Contact(id=uuid.uuid4().hex, display_name=display_name,
                          public_key=_validated_public_key(public_key))
        with self._lock:
            self._contacts[contact.id] = contact
        logger.info(f"Added contact {contact.id} ({contact.display_name})")
        return contact

    def remove(self, contact_id: str) -> bool:
        with self._lock:
            return self._contacts.pop(contact_id, None) is not None


class JsonContactStore(InMemoryContactStore):
    """
    Contact store persisted as a JSON list.

    The file is read once at construction and rewritten after every change.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        contacts: List[Contact] = []
        if self._path.exists():
            with self._path.open('r', encoding='utf-8') as f:
                try:
                    raw = json.load(f)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Contacts file {self._path} is not valid JSON: {e}") from e
            if not isinstance(raw, list):
                raise ValueError(f"Contacts file {self._path} must hold a JSON list")
            try:
                contacts = [Contact.from_dict(entry) for entry in raw]
            except (KeyError, TypeError, AttributeError) as e:
                raise ValueError(f"Contacts file {self._path} holds a malformed entry: {e!r}") from e
        super().__init__(contacts)

    @property
    def path(self) -> Path:
        return self._path

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open('w', encoding='utf-8') as f:
            json.dump([c.to_dict() for c in self.list()], f, indent=2)

    def add(self, display_name: str, public_key: Union[str, bytes]) -> Contact:
        with self._lock:
            contact = super().add(display_name, public_key)
            self._flush()
        return contact

    def remove(self, contact_id: str) -> bool:
        with self._lock:
            removed = super().remove(contact_id)
            if removed:
                self._flush()
        if removed:
            logger.info(f"Removed contact {contact_id}")
        return removed


# ============================================================================
# Local key pair
# ============================================================================

class KeyStore(ABC):
    """Abstract interface for the holder's own key pair."""

    @abstractmethod
    def load(self) -> Optional[KeyPair]:
        """Return the stored key pair, or None if there is none."""
        pass

    @abstractmethod
    def save(self, keypair: KeyPair) -> None:
        """Replace the stored key pair."""
        pass

    @abstractmethod
    def clear(self) -> bool:
        """Delete the stored key pair; False if there was none."""
        pass


class InMemoryKeyStore(KeyStore):
    """Key store that keeps the key pair in memory only."""

    def __init__(self, keypair: Optional[KeyPair] = None):
        self._keypair = keypair

    def load(self) -> Optional[KeyPair]:
        return self._keypair

    def save(self, keypair: KeyPair) -> None:
        self._keypair = keypair

    def clear(self) -> bool:
        had_key = self._keypair is not None
        self._keypair = None
        return had_key


class JsonKeyStore(KeyStore):
    """
    Key store backed by a JSON file.

    The key pair is stored in its length-prefixed serialized form, base64
    encoded. The file is created with owner-only permissions where the
    platform supports them.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[KeyPair]:
        with self._lock:
            if not self._path.exists():
                return None
            with self._path.open('r', encoding='utf-8') as f:
                try:
                    data = json.load(f)
                except json.JSONDecodeError as e:
                    raise ValueError(f"Key file {self._path} is not valid JSON: {e}") from e

        encoded = data.get('keypair') if isinstance(data, dict) else None
        if not isinstance(encoded, str):
            raise ValueError(f"Key file {self._path} does not hold a valid key pair")
        raw = decode_key(encoded)
        keypair = deserialize_keypair(raw) if raw is not None else None
        if keypair is None:
            raise ValueError(f"Key file {self._path} does not hold a valid key pair")
        return keypair

    def save(self, keypair: KeyPair) -> None:
        payload = {
            'level': int(keypair.level),
            'public_key': encode_key(keypair.public_key),
            'keypair': encode_key(serialize_keypair(keypair)),
        }
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self._path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2)
        logger.info(f"Saved {keypair.level.algorithm} key pair to {self._path}")

    def clear(self) -> bool:
        with self._lock:
            if not self._path.exists():
                return False
            self._path.unlink()
        logger.info(f"Deleted key pair at {self._path}")
        return True
