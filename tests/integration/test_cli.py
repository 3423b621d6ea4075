"""
Integration Tests for the CryptoPiano CLI

This module drives the command line interface end to end: carrier
creation, key and contact management, embedding and extraction.
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'python-core'))

from cryptopiano.cli import CryptoPianoCLI, EXIT_ERROR, EXIT_NO_MESSAGE, EXIT_OK
from cryptopiano.config import PipelineConfig
from cryptopiano.stego import AudioCarrier


@pytest.fixture
def alice(tmp_path):
    return CryptoPianoCLI(config=PipelineConfig(data_dir=tmp_path / "alice"))


@pytest.fixture
def bob(tmp_path):
    return CryptoPianoCLI(config=PipelineConfig(data_dir=tmp_path / "bob"))


@pytest.fixture
def carrier_file(tmp_path):
    return str(AudioCarrier.tone(seconds=1.0).save(tmp_path / "carrier.wav"))


class TestCarrierCommands:
    """Test cases for carrier subcommands."""

    def test_create(self, alice, tmp_path, capsys):
        output = tmp_path / "tone.wav"
        code = alice.run(['carrier', 'create', '--output', str(output), '--seconds', '0.5', '--rate', '8000'])

        assert code == EXIT_OK
        assert AudioCarrier.load(output, strict=True).capacity_bits == 4000
        assert "4000 usable samples" in capsys.readouterr().out

    def test_info(self, alice, carrier_file, capsys):
        assert alice.run(['carrier', 'info', '--carrier', carrier_file]) == EXIT_OK

        out = capsys.readouterr().out
        assert "44100 Hz" in out
        assert "44100 bits" in out
        assert "5508 payload bytes" in out

    def test_info_ignores_identity_files(self, alice, carrier_file, capsys):
        """Test carrier inspection does not read the contact or key files."""
        alice.config.data_dir.mkdir(parents=True, exist_ok=True)
        alice.config.contacts_path.write_text("{not json")
        alice.config.keypair_path.write_text("[]")

        assert alice.run(['carrier', 'info', '--carrier', carrier_file]) == EXIT_OK
        assert "5508 payload bytes" in capsys.readouterr().out

    def test_missing_file(self, alice, tmp_path, capsys):
        assert alice.run(['carrier', 'info', '--carrier', str(tmp_path / "nope.wav")]) == EXIT_ERROR
        assert "Error:" in capsys.readouterr().err


class TestKeyAndContactCommands:
    """Test cases for key and contact subcommands."""

    def test_key_lifecycle(self, alice, tmp_path, capsys):
        assert alice.run(['key', 'show']) == EXIT_ERROR

        assert alice.run(['key', 'generate', '--level', '2']) == EXIT_OK
        assert "ML-DSA-44" in capsys.readouterr().out

        assert alice.run(['key', 'generate']) == EXIT_ERROR
        assert alice.run(['key', 'show']) == EXIT_OK
        assert "1312 bytes" in capsys.readouterr().out

        export = tmp_path / "alice.pub"
        assert alice.run(['key', 'export', '--output', str(export)]) == EXIT_OK
        assert export.read_text().strip() == alice.key_store.load().public_key_b64

    def test_contacts(self, alice, bob, capsys):
        alice.run(['key', 'generate'])
        public_key = alice.key_store.load().public_key_b64
        capsys.readouterr()

        assert bob.run(['contact', 'list']) == EXIT_OK
        assert "No contacts." in capsys.readouterr().out

        assert bob.run(['contact', 'add', 'Alice', public_key]) == EXIT_OK
        contact_id = bob.contact_store.list()[0].id
        assert contact_id in capsys.readouterr().out

        assert bob.run(['contact', 'list']) == EXIT_OK
        assert "Alice" in capsys.readouterr().out

        assert bob.run(['contact', 'remove', contact_id]) == EXIT_OK
        assert bob.run(['contact', 'remove', contact_id]) == EXIT_ERROR

    def test_contact_bad_key(self, bob, capsys):
        assert bob.run(['contact', 'add', 'Mallory', 'AAAA']) == EXIT_ERROR
        assert "Error:" in capsys.readouterr().err


class TestMessageCommands:
    """Test cases for embed and extract."""

    def test_signed_round_trip(self, alice, bob, carrier_file, tmp_path, capsys):
        alice.run(['key', 'generate'])
        bob.run(['contact', 'add', 'Alice', alice.key_store.load().public_key_b64])
        contact_id = bob.contact_store.list()[0].id
        stego = str(tmp_path / "stego.wav")
        capsys.readouterr()

        assert alice.run(['embed', '--carrier', carrier_file, '--output', stego,
                          '--message', 'Hello, Bob', '--password', 'secret']) == EXIT_OK
        assert "signed" in capsys.readouterr().out

        assert bob.run(['extract', '--carrier', stego, '--password', 'secret', '--contact', contact_id]) == EXIT_OK
        captured = capsys.readouterr()
        assert captured.out.strip() == "Hello, Bob"
        assert "Signature verified (Alice)" in captured.err

    def test_wrong_password(self, alice, carrier_file, tmp_path, capsys):
        stego = str(tmp_path / "stego.wav")
        alice.run(['embed', '--carrier', carrier_file, '--output', stego, '--message', 'x', '--password', 'a'])

        assert alice.run(['extract', '--carrier', stego, '--password', 'b']) == EXIT_NO_MESSAGE
        assert "Wrong password" in capsys.readouterr().err

    def test_no_message(self, alice, carrier_file, capsys):
        assert alice.run(['extract', '--carrier', carrier_file, '--password', 'a']) == EXIT_NO_MESSAGE
        assert "No hidden message" in capsys.readouterr().err

    def test_unencrypted(self, alice, carrier_file, tmp_path, capsys):
        stego = str(tmp_path / "stego.wav")
        assert alice.run(['embed', '--carrier', carrier_file, '--output', stego,
                          '--message', 'open', '--no-password']) == EXIT_OK

        assert alice.run(['extract', '--carrier', stego]) == EXIT_OK
        captured = capsys.readouterr()
        assert captured.out.strip().endswith("open")
        assert "Unencrypted message" in captured.err

    def test_file_payload(self, alice, carrier_file, tmp_path):
        source = tmp_path / "secret.bin"
        source.write_bytes(b"\x00\x01binary\xff")
        stego = str(tmp_path / "stego.wav")
        recovered = tmp_path / "recovered.bin"

        assert alice.run(['embed', '--carrier', carrier_file, '--output', stego,
                          '--input', str(source), '--password', 'pw', '--no-sign']) == EXIT_OK
        assert alice.run(['extract', '--carrier', stego, '--password', 'pw',
                          '--output', str(recovered)]) == EXIT_OK
        assert recovered.read_bytes() == b"\x00\x01binary\xff"

    def test_prompted_password(self, alice, carrier_file, tmp_path, monkeypatch, capsys):
        stego = str(tmp_path / "stego.wav")
        monkeypatch.setattr("getpass.getpass", lambda prompt="": "typed")

        assert alice.run(['embed', '--carrier', carrier_file, '--output', stego, '--message', 'hi']) == EXIT_OK
        assert alice.run(['extract', '--carrier', stego]) == EXIT_OK
        assert capsys.readouterr().out.strip().endswith("hi")

    def test_message_too_large(self, alice, tmp_path, capsys):
        tiny = str(AudioCarrier.silence(seconds=0.001, sample_rate=44100).save(tmp_path / "tiny.wav"))

        assert alice.run(['embed', '--carrier', tiny, '--output', str(tmp_path / "out.wav"),
                          '--message', 'too long', '--password', 'pw']) == EXIT_ERROR
        assert "CapacityExceeded" in capsys.readouterr().err


def test_no_command_prints_help(alice, capsys):
    assert alice.run([]) == EXIT_OK
    assert "usage:" in capsys.readouterr().out
