#!/usr/bin/env python3
"""
CryptoPiano Message Pipeline

This module composes the codec and the two envelopes into the end-to-end
flows of the application.

================================================================================
COMPOSE
================================================================================

    text -> [sign: SignedMessage] -> password envelope -> LSB embed -> carrier

Signing happens when a local key pair exists and signing is enabled (or
explicitly requested). Without a password the text is embedded as is; this
is the legacy, unprotected mode.

================================================================================
EXTRACT
================================================================================

    carrier -> LSB extract (bytes) -> password envelope?  --no-->  UTF-8 text?
                                         | yes
                                    ask for password
                                         |
                                    decrypt -> signed message?  --no-->  unsigned text
                                                   | yes
                                              verify against the chosen contact

Each "?" is a tagged parse returning None for "not this format"; candidates
are tried in a fixed order so carriers written without encryption or
without a signature still decode. Extraction is split into
``open_carrier`` and ``unlock`` so a front end can ask for the password in
between; ``extract`` runs both with a password callback.

No decode-path failure raises. Results carry a ``MessageStatus``;
``DecodedMessage.raise_for_status`` converts failures to exceptions on
request.

Author: CryptoPiano Development Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from ..config import PipelineConfig
from ..crypto.engine import CryptoEngine, get_engine
from ..crypto.envelope import (
    PasswordEncryptedData,
    decrypt_with_password,
    deserialize_encrypted_data,
    encrypt_with_password,
    serialize_encrypted_data,
)
from ..crypto.signed import create_signed_message, deserialize_signed_message, serialize_signed_message
from ..errors import AuthenticationFailure, MalformedCarrier, MissingKeyMaterial, SignatureInvalid
from ..stego.carrier import AudioCarrier
from ..stego.codec import StegoCodec
from .stores import Contact, ContactStore, InMemoryContactStore, InMemoryKeyStore, KeyStore

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

class PayloadKind(Enum):
    """What the raw bytes recovered from a carrier turned out to be."""
    NO_MESSAGE = "no_message"
    PLAIN_TEXT = "plain_text"
    ENCRYPTED = "encrypted"


class MessageStatus(Enum):
    """
    Final outcome of an extraction.

    Attributes:
        NO_MESSAGE: Nothing hidden, or the carrier is malformed
        PLAIN_TEXT: Unencrypted legacy message
        WRONG_PASSWORD: Wrong password or corrupted envelope
        UNSIGNED: Decrypted message without a signature
        SIGNED_VERIFIED: Signature valid for the selected public key
        SIGNED_UNVERIFIED: Signed, but no key was selected or it did not verify
    """
    NO_MESSAGE = "no_message"
    PLAIN_TEXT = "plain_text"
    WRONG_PASSWORD = "wrong_password"
    UNSIGNED = "unsigned"
    SIGNED_VERIFIED = "signed_verified"
    SIGNED_UNVERIFIED = "signed_unverified"


@dataclass(frozen=True)
class ExtractedPayload:
    """
    First extraction step result.

    Attributes:
        kind: Detected payload kind
        raw: Bytes recovered from the carrier
        text: Message text for ``PLAIN_TEXT``
        envelope: Parsed password envelope for ``ENCRYPTED``
    """
    kind: PayloadKind
    raw: Optional[bytes] = None
    text: Optional[str] = None
    envelope: Optional[PasswordEncryptedData] = None

    @property
    def needs_password(self) -> bool:
        return self.kind is PayloadKind.ENCRYPTED


@dataclass(frozen=True)
class DecodedMessage:
    """
    Final extraction result.

    Attributes:
        status: Outcome of the extraction
        payload: Message bytes (signature removed), when recovered
        text: ``payload`` decoded as UTF-8, or None if it is not text
        signature: Detached signature, for signed messages
        contact: Contact whose key was used for verification, if any
    """
    status: MessageStatus
    payload: Optional[bytes] = None
    text: Optional[str] = None
    signature: Optional[bytes] = None
    contact: Optional[Contact] = None

    @property
    def signed(self) -> bool:
        return self.signature is not None

    @property
    def verified(self) -> bool:
        return self.status is MessageStatus.SIGNED_VERIFIED

    @property
    def ok(self) -> bool:
        """True when a message was recovered, verified or not."""
        return self.status not in (MessageStatus.NO_MESSAGE, MessageStatus.WRONG_PASSWORD)

    def raise_for_status(self, require_signature: bool = False) -> None:
        """
        Raise the matching pipeline error for failed outcomes.

        Args:
            require_signature: Also fail on messages that are unsigned or
                whose signature did not verify

        Raises:
            MalformedCarrier: No message was found
            AuthenticationFailure: Wrong password or corrupted data
            SignatureInvalid: Signature required but missing or invalid
        """
        if self.status is MessageStatus.NO_MESSAGE:
            raise MalformedCarrier("No hidden message found in the carrier")
        if self.status is MessageStatus.WRONG_PASSWORD:
            raise AuthenticationFailure("Wrong password or corrupted data")
        if require_signature and not self.verified:
            if self.signed:
                raise SignatureInvalid("Signature does not match the selected public key")
            raise SignatureInvalid("Message is not signed")


@dataclass(frozen=True)
class ComposeResult:
    """
    Result of composing a message into a carrier.

    Attributes:
        carrier: New carrier holding the message
        payload_size: Bytes embedded (after signing and encryption)
        encrypted: Whether a password envelope was used
        signed: Whether the message was signed
        capacity_bits: Sample capacity of the carrier
    """
    carrier: AudioCarrier
    payload_size: int
    encrypted: bool
    signed: bool
    capacity_bits: int


PasswordProvider = Callable[[], Optional[str]]


# =============================================================================
# PIPELINE
# =============================================================================

class MessagePipeline:
    """
    Compose and extract hidden messages.

    The pipeline owns no global state: stores, configuration, codec and
    crypto engine are injected, and in-memory defaults are used for any
    that are omitted.

    Example:
        >>> pipeline = MessagePipeline(key_store=InMemoryKeyStore(generate_keypair()))
        >>> result = pipeline.compose(AudioCarrier.tone(), "Hello", password="secret")
        >>> pipeline.extract(result.carrier, lambda: "secret").text
        'Hello'
    """

    def __init__(
        self,
        contact_store: Optional[ContactStore] = None,
        key_store: Optional[KeyStore] = None,
        config: Optional[PipelineConfig] = None,
        codec: Optional[StegoCodec] = None,
        engine: Optional[CryptoEngine] = None,
    ):
        self._contacts = contact_store if contact_store is not None else InMemoryContactStore()
        self._keys = key_store if key_store is not None else InMemoryKeyStore()
        self._config = config or PipelineConfig()
        self._codec = codec or StegoCodec()
        self._engine = engine or get_engine()

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def contacts(self) -> ContactStore:
        return self._contacts

    @property
    def keys(self) -> KeyStore:
        return self._keys

    def capacity(self, carrier: AudioCarrier) -> int:
        """Largest payload in bytes the carrier can hold."""
        return self._codec.capacity_bytes(carrier)

    # -------------------------------------------------------------------------
    # Compose
    # -------------------------------------------------------------------------

    def compose(
        self,
        carrier: AudioCarrier,
        message: Union[str, bytes],
        password: Optional[str],
        sign: Optional[bool] = None,
    ) -> ComposeResult:
        """
        Hide ``message`` in ``carrier``.

        Args:
            carrier: Source carrier; never modified
            message: Text (UTF-8 encoded) or bytes
            password: Password for the envelope; None embeds the message
                unencrypted
            sign: True to require a signature, False to skip it, None to
                follow ``config.sign_messages`` when a key pair exists

        Returns:
            The new carrier and what was embedded

        Raises:
            MissingKeyMaterial: Signing requested without a stored key pair
            ValueError: Signing requested without a password
            CapacityExceeded: The final payload does not fit
        """
        message_bytes = message.encode("utf-8") if isinstance(message, str) else bytes(message)

        if password is None:
            if sign:
                raise ValueError("Signed messages must be password protected")
            stego = self._codec.embed(carrier, message_bytes)
            return ComposeResult(stego, len(message_bytes), encrypted=False, signed=False,
                                 capacity_bits=carrier.capacity_bits)

        keypair = self._keys.load()
        if sign and keypair is None:
            raise MissingKeyMaterial("Signing requested but no local key pair is stored")
        do_sign = keypair is not None and (sign if sign is not None else self._config.sign_messages)

        inner = message_bytes
        if do_sign:
            inner = serialize_signed_message(create_signed_message(message_bytes, keypair.private_key, keypair.level))

        envelope = encrypt_with_password(password, inner, self._config.associated_data, engine=self._engine)
        payload = serialize_encrypted_data(envelope)
        stego = self._codec.embed(carrier, payload)

        logger.info(f"Composed {'signed' if do_sign else 'unsigned'} message: {len(payload)} bytes embedded")
        return ComposeResult(stego, len(payload), encrypted=True, signed=do_sign,
                             capacity_bits=carrier.capacity_bits)

    def compose_plain(self, carrier: AudioCarrier, message: Union[str, bytes]) -> ComposeResult:
        """Embed ``message`` without encryption or signature."""
        return self.compose(carrier, message, password=None, sign=False)

    # -------------------------------------------------------------------------
    # Extract
    # -------------------------------------------------------------------------

    def open_carrier(self, carrier: AudioCarrier) -> ExtractedPayload:
        """
        Recover the hidden bytes and classify them.

        Returns:
            ``ENCRYPTED`` with the parsed envelope, ``PLAIN_TEXT`` with the
            text, or ``NO_MESSAGE``
        """
        raw = self._codec.extract(carrier, as_bytes=True)
        if not raw:
            return ExtractedPayload(PayloadKind.NO_MESSAGE)

        envelope = deserialize_encrypted_data(raw)
        if envelope is not None:
            return ExtractedPayload(PayloadKind.ENCRYPTED, raw=raw, envelope=envelope)

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Hidden bytes are neither an envelope nor text")
            return ExtractedPayload(PayloadKind.NO_MESSAGE, raw=raw)

        if not text.strip():
            return ExtractedPayload(PayloadKind.NO_MESSAGE, raw=raw)
        return ExtractedPayload(PayloadKind.PLAIN_TEXT, raw=raw, text=text)

    def unlock(
        self,
        extracted: ExtractedPayload,
        password: Optional[str],
        contact_id: Optional[str] = None,
        public_key: Optional[bytes] = None,
    ) -> DecodedMessage:
        """
        Decrypt and verify an extracted payload.

        Args:
            extracted: Result of ``open_carrier``
            password: Envelope password; ignored for unencrypted payloads
            contact_id: Contact whose public key verifies a signature
            public_key: Explicit verification key; takes precedence over
                ``contact_id``

        Returns:
            The decoded message

        Raises:
            MissingKeyMaterial: ``contact_id`` is not in the contact store
        """
        if extracted.kind is PayloadKind.NO_MESSAGE:
            return DecodedMessage(MessageStatus.NO_MESSAGE)
        if extracted.kind is PayloadKind.PLAIN_TEXT:
            return DecodedMessage(MessageStatus.PLAIN_TEXT, payload=extracted.raw, text=extracted.text)

        contact = None
        if public_key is None and contact_id is not None:
            contact = self._contacts.get(contact_id)
            if contact is None:
                raise MissingKeyMaterial(f"Unknown contact {contact_id!r}", details={"contact_id": contact_id})
            public_key = contact.public_key

        if password is None:
            return DecodedMessage(MessageStatus.WRONG_PASSWORD)

        envelope = extracted.envelope
        decrypted = decrypt_with_password(password, envelope.encrypted_data, envelope.salt,
                                          self._config.associated_data, engine=self._engine)
        if decrypted is None:
            logger.info("Envelope could not be opened: wrong password or corrupted data")
            return DecodedMessage(MessageStatus.WRONG_PASSWORD)

        signed = deserialize_signed_message(decrypted)
        if signed is None:
            return DecodedMessage(MessageStatus.UNSIGNED, payload=decrypted, text=_decode_text(decrypted))

        verified = public_key is not None and signed.verify(public_key)
        if public_key is not None and not verified:
            logger.warning("Signature did not verify against the selected public key")

        return DecodedMessage(
            MessageStatus.SIGNED_VERIFIED if verified else MessageStatus.SIGNED_UNVERIFIED,
            payload=signed.message,
            text=signed.text,
            signature=signed.signature,
            contact=contact,
        )

    def extract(
        self,
        carrier: AudioCarrier,
        password_provider: Optional[PasswordProvider] = None,
        contact_id: Optional[str] = None,
        public_key: Optional[bytes] = None,
    ) -> DecodedMessage:
        """
        Run ``open_carrier`` and ``unlock``.

        ``password_provider`` is called only when an encrypted envelope is
        found; a missing provider, or one returning None, yields
        ``WRONG_PASSWORD``.
        """
        extracted = self.open_carrier(carrier)
        password = None
        if extracted.needs_password and password_provider is not None:
            password = password_provider()
        return self.unlock(extracted, password, contact_id=contact_id, public_key=public_key)


def _decode_text(data: bytes) -> Optional[str]:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None
