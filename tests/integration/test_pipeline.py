"""
Integration Tests for the CryptoPiano Message Pipeline

This module exercises the complete compose and extract flows across the
codec, both envelopes and the stores, including every fallback path.
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'python-core'))

from cryptopiano.config import PipelineConfig
from cryptopiano.crypto import (
    create_signed_message,
    encrypt_with_password,
    serialize_encrypted_data,
    serialize_signed_message,
)
from cryptopiano.errors import (
    AuthenticationFailure,
    CapacityExceeded,
    MalformedCarrier,
    MissingKeyMaterial,
    SignatureInvalid,
)
from cryptopiano.pipeline import (
    InMemoryContactStore,
    InMemoryKeyStore,
    JsonContactStore,
    JsonKeyStore,
    MessagePipeline,
    MessageStatus,
    PayloadKind,
)
from cryptopiano.stego import AudioCarrier, StegoCodec


@pytest.fixture
def sender(key_store, config):
    """Pipeline of a user who owns a key pair."""
    return MessagePipeline(InMemoryContactStore(), key_store, config)


@pytest.fixture
def recipient(keypair, config):
    """Pipeline of a user who knows the sender as a contact."""
    contacts = InMemoryContactStore()
    contacts.add("Alice", keypair.public_key)
    return MessagePipeline(contacts, InMemoryKeyStore(), config)


def _alice_id(pipeline):
    return pipeline.contacts.list()[0].id


class TestCompose:
    """Test cases for MessagePipeline.compose."""

    def test_signed_by_default(self, sender, carrier):
        result = sender.compose(carrier, "Hello", password="secret")

        assert result.encrypted
        assert result.signed
        assert result.capacity_bits == 44100
        assert result.carrier != carrier

    def test_unsigned_without_keypair(self, config, carrier):
        pipeline = MessagePipeline(config=config)
        result = pipeline.compose(carrier, "Hello", password="secret")

        assert result.encrypted
        assert not result.signed

    def test_sign_false_skips_signature(self, sender, carrier):
        assert not sender.compose(carrier, "Hello", password="secret", sign=False).signed

    def test_config_disables_signing(self, key_store, carrier, tmp_path):
        config = PipelineConfig(sign_messages=False, data_dir=tmp_path)
        pipeline = MessagePipeline(key_store=key_store, config=config)

        assert not pipeline.compose(carrier, "Hello", password="secret").signed
        assert pipeline.compose(carrier, "Hello", password="secret", sign=True).signed

    def test_explicit_sign_without_keypair(self, config, carrier):
        pipeline = MessagePipeline(config=config)
        with pytest.raises(MissingKeyMaterial) as exc_info:
            pipeline.compose(carrier, "Hello", password="secret", sign=True)
        assert exc_info.value.code == 3002

    def test_sign_requires_password(self, sender, carrier):
        with pytest.raises(ValueError):
            sender.compose(carrier, "Hello", password=None, sign=True)

    def test_payload_size(self, config, carrier):
        """Test the embedded size is the envelope size."""
        pipeline = MessagePipeline(config=config)
        result = pipeline.compose(carrier, b"12345", password="pw")

        assert result.payload_size == 56 + 14 + 5

    def test_plain_compose(self, sender, carrier):
        result = sender.compose_plain(carrier, "Hello")

        assert not result.encrypted
        assert not result.signed
        assert StegoCodec().extract(result.carrier) == "Hello"

    def test_capacity_exceeded_leaves_carrier(self, sender, small_carrier):
        original = small_carrier.data
        with pytest.raises(CapacityExceeded):
            sender.compose(small_carrier, "Hello", password="secret")
        assert small_carrier.data == original


class TestExtract:
    """Test cases for MessagePipeline extraction paths."""

    def test_signed_verified(self, sender, recipient, carrier):
        stego = sender.compose(carrier, "Hello, Bob", password="secret").carrier
        decoded = recipient.extract(stego, lambda: "secret", contact_id=_alice_id(recipient))

        assert decoded.status is MessageStatus.SIGNED_VERIFIED
        assert decoded.text == "Hello, Bob"
        assert decoded.signed and decoded.verified
        assert decoded.contact.display_name == "Alice"
        decoded.raise_for_status(require_signature=True)

    def test_signed_without_contact(self, sender, recipient, carrier):
        stego = sender.compose(carrier, "Hello", password="secret").carrier
        decoded = recipient.extract(stego, lambda: "secret")

        assert decoded.status is MessageStatus.SIGNED_UNVERIFIED
        assert decoded.text == "Hello"
        assert decoded.signed and not decoded.verified
        assert decoded.ok

    def test_signed_by_someone_else(self, other_keypair, recipient, carrier, config):
        impostor = MessagePipeline(key_store=InMemoryKeyStore(other_keypair), config=config)
        stego = impostor.compose(carrier, "Trust me", password="secret").carrier
        decoded = recipient.extract(stego, lambda: "secret", contact_id=_alice_id(recipient))

        assert decoded.status is MessageStatus.SIGNED_UNVERIFIED
        assert decoded.text == "Trust me"
        with pytest.raises(SignatureInvalid):
            decoded.raise_for_status(require_signature=True)
        decoded.raise_for_status()

    def test_explicit_public_key(self, sender, keypair, carrier, config):
        stego = sender.compose(carrier, "Hello", password="secret").carrier
        decoded = MessagePipeline(config=config).extract(stego, lambda: "secret", public_key=keypair.public_key)

        assert decoded.status is MessageStatus.SIGNED_VERIFIED
        assert decoded.contact is None

    def test_unsigned(self, sender, recipient, carrier):
        stego = sender.compose(carrier, "Hello", password="secret", sign=False).carrier
        decoded = recipient.extract(stego, lambda: "secret", contact_id=_alice_id(recipient))

        assert decoded.status is MessageStatus.UNSIGNED
        assert decoded.text == "Hello"
        assert not decoded.signed
        with pytest.raises(SignatureInvalid):
            decoded.raise_for_status(require_signature=True)

    def test_wrong_password(self, sender, recipient, carrier):
        stego = sender.compose(carrier, "Hello", password="secret").carrier
        decoded = recipient.extract(stego, lambda: "wrong")

        assert decoded.status is MessageStatus.WRONG_PASSWORD
        assert decoded.text is None
        assert not decoded.ok
        with pytest.raises(AuthenticationFailure):
            decoded.raise_for_status()

    def test_no_password_provider(self, sender, recipient, carrier):
        stego = sender.compose(carrier, "Hello", password="secret").carrier
        assert recipient.extract(stego).status is MessageStatus.WRONG_PASSWORD

    def test_plain_text_fallback(self, sender, recipient, carrier):
        """Test legacy unencrypted carriers still decode without a password prompt."""
        stego = sender.compose_plain(carrier, "Legacy message").carrier
        prompts = []
        decoded = recipient.extract(stego, lambda: prompts.append(1) or "unused")

        assert decoded.status is MessageStatus.PLAIN_TEXT
        assert decoded.text == "Legacy message"
        assert prompts == []

    def test_clean_carrier(self, recipient, carrier):
        decoded = recipient.extract(carrier, lambda: "secret")

        assert decoded.status is MessageStatus.NO_MESSAGE
        with pytest.raises(MalformedCarrier):
            decoded.raise_for_status()

    def test_whitespace_only_text(self, recipient, carrier):
        stego = StegoCodec().embed(carrier, "   \n ")
        assert recipient.open_carrier(stego).kind is PayloadKind.NO_MESSAGE

    def test_binary_garbage(self, recipient, carrier):
        stego = StegoCodec().embed(carrier, b"\xff\xfe\x00\x01")
        assert recipient.extract(stego, lambda: "secret").status is MessageStatus.NO_MESSAGE

    def test_truncated_file(self, sender, recipient, carrier):
        """Test a carrier cut short after embedding holds no message."""
        stego = sender.compose(carrier, "Hello", password="secret").carrier
        truncated = AudioCarrier(stego.data[:200])

        assert recipient.extract(truncated, lambda: "secret").status is MessageStatus.NO_MESSAGE

    def test_binary_payload(self, sender, recipient, carrier):
        payload = bytes(range(256))
        stego = sender.compose(carrier, payload, password="secret").carrier
        decoded = recipient.extract(stego, lambda: "secret", contact_id=_alice_id(recipient))

        assert decoded.status is MessageStatus.SIGNED_VERIFIED
        assert decoded.payload == payload
        assert decoded.text is None

    def test_unknown_contact(self, sender, recipient, carrier):
        stego = sender.compose(carrier, "Hello", password="secret").carrier
        with pytest.raises(MissingKeyMaterial):
            recipient.extract(stego, lambda: "secret", contact_id="nobody")

    def test_two_step_extraction(self, sender, recipient, carrier):
        stego = sender.compose(carrier, "Hello", password="secret").carrier
        extracted = recipient.open_carrier(stego)

        assert extracted.kind is PayloadKind.ENCRYPTED
        assert extracted.needs_password
        assert recipient.unlock(extracted, "secret").text == "Hello"
        assert recipient.unlock(extracted, None).status is MessageStatus.WRONG_PASSWORD

    def test_associated_data_must_match(self, key_store, carrier, tmp_path):
        writer = MessagePipeline(key_store=key_store, config=PipelineConfig(associated_data="room-1", data_dir=tmp_path))
        reader = MessagePipeline(config=PipelineConfig(associated_data="room-2", data_dir=tmp_path))
        stego = writer.compose(carrier, "Hello", password="secret").carrier

        assert reader.extract(stego, lambda: "secret").status is MessageStatus.WRONG_PASSWORD

    def test_envelope_built_by_hand(self, keypair, recipient, carrier):
        """Test the layers compose exactly in the documented order."""
        signed = serialize_signed_message(create_signed_message("manual", keypair.private_key, keypair.level))
        stego = StegoCodec().embed(carrier, serialize_encrypted_data(encrypt_with_password("pw", signed)))
        decoded = recipient.extract(stego, lambda: "pw", contact_id=_alice_id(recipient))

        assert decoded.status is MessageStatus.SIGNED_VERIFIED
        assert decoded.text == "manual"


class TestFileBackedRoundTrip:
    """End-to-end test through files and file-backed stores."""

    def test_files(self, tmp_path, keypair, carrier):
        config = PipelineConfig(data_dir=tmp_path)
        alice_keys = JsonKeyStore(tmp_path / "alice.json")
        alice_keys.save(keypair)
        bob_contacts = JsonContactStore(config.contacts_path)
        alice = bob_contacts.add("Alice", keypair.public_key_b64)

        stego = MessagePipeline(key_store=alice_keys, config=config).compose(carrier, "See you", "pw").carrier
        path = stego.save(tmp_path / "message.wav")

        bob = MessagePipeline(JsonContactStore(config.contacts_path), config=config)
        decoded = bob.extract(AudioCarrier.load(path, strict=True), lambda: "pw", contact_id=alice.id)

        assert decoded.status is MessageStatus.SIGNED_VERIFIED
        assert decoded.text == "See you"

    @pytest.mark.asyncio
    async def test_async_files(self, tmp_path, sender, recipient, carrier):
        stego = sender.compose(carrier, "async", password="pw").carrier
        path = await stego.asave(tmp_path / "async.wav")

        decoded = recipient.extract(await AudioCarrier.aload(path), lambda: "pw")
        assert decoded.text == "async"
