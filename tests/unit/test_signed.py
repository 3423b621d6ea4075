"""
Unit Tests for the CryptoPiano Signed Message Envelope

This module contains unit tests for signed message creation,
verification and wire format parsing.
"""

import pytest
import struct
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'python-core'))

from cryptopiano.errors import FormatMismatch, SignatureInvalid
from cryptopiano.crypto.signed import (
    SignedMessage,
    create_signed_message,
    deserialize_signed_message,
    serialize_signed_message,
    verify_signed_message,
)


class TestSignedMessage:
    """Test cases for SignedMessage."""

    @pytest.fixture(scope="class")
    def signed(self, keypair):
        return create_signed_message("Hello, Bob", keypair.private_key, keypair.level)

    def test_message_kept_verbatim(self, signed):
        assert signed.message == b"Hello, Bob"
        assert signed.text == "Hello, Bob"

    def test_verify(self, signed, keypair, other_keypair):
        assert verify_signed_message(signed, keypair.public_key)
        assert not verify_signed_message(signed, other_keypair.public_key)

    def test_require_valid(self, signed, keypair, other_keypair):
        signed.require_valid(keypair.public_key)
        with pytest.raises(SignatureInvalid) as exc_info:
            signed.require_valid(other_keypair.public_key)
        assert exc_info.value.code == 3001

    def test_swapped_message_fails(self, signed, keypair):
        forged = SignedMessage(message=b"Hello, Eve", signature=signed.signature)
        assert not forged.verify(keypair.public_key)

    def test_binary_text_is_none(self):
        assert SignedMessage(message=b"\xff", signature=b"s").text is None


class TestSignedSerialization:
    """Test cases for the signed message wire format."""

    @pytest.fixture(scope="class")
    def signed(self, keypair):
        return create_signed_message(b"payload", keypair.private_key, keypair.level)

    def test_wire_layout(self, signed):
        blob = serialize_signed_message(signed)

        assert struct.unpack_from("<I", blob, 0)[0] == 7
        assert blob[4:11] == b"payload"
        assert struct.unpack_from("<I", blob, 11)[0] == len(signed.signature)
        assert blob[15:] == signed.signature

    def test_round_trip(self, signed, keypair):
        parsed = deserialize_signed_message(serialize_signed_message(signed))

        assert parsed == signed
        assert parsed.verify(keypair.public_key)

    def test_empty_message(self, keypair):
        signed = create_signed_message(b"", keypair.private_key, keypair.level)
        parsed = deserialize_signed_message(serialize_signed_message(signed))

        assert parsed.message == b""
        assert parsed.verify(keypair.public_key)

    def test_trailing_bytes_ignored(self, signed):
        assert deserialize_signed_message(serialize_signed_message(signed) + b"xx") == signed

    def test_truncated(self, signed):
        blob = serialize_signed_message(signed)
        for cut in (0, 3, 4, 10, 14, len(blob) - 1):
            assert deserialize_signed_message(blob[:cut]) is None

    def test_empty_signature_is_not_signed(self):
        blob = struct.pack("<I", 2) + b"hi" + struct.pack("<I", 0)
        assert deserialize_signed_message(blob) is None

    def test_message_length_past_end(self):
        assert deserialize_signed_message(struct.pack("<I", 1000) + b"short") is None

    def test_plain_text_is_not_signed(self):
        """Test ordinary text does not parse as a signed message."""
        assert deserialize_signed_message(b"Hello, this is not signed") is None

    def test_strict_parser_raises(self):
        with pytest.raises(FormatMismatch):
            SignedMessage.from_bytes(b"\x01\x00")
