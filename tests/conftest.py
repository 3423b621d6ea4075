# CryptoPiano Test Configuration
# This file contains test settings and fixtures

import pytest
import sys
import os

# Add python-core to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'python-core'))

# Test fixtures and configuration
pytest_plugins = ['pytest_asyncio']


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return os.path.dirname(os.path.dirname(__file__))


@pytest.fixture
def carrier():
    """One second of 440 Hz tone at 44.1 kHz (44100 usable samples)."""
    from cryptopiano.stego import AudioCarrier
    return AudioCarrier.tone(seconds=1.0, sample_rate=44100)


@pytest.fixture
def small_carrier():
    """Carrier with exactly 128 samples of silence."""
    from cryptopiano.stego import AudioCarrier
    return AudioCarrier.silence(seconds=128 / 8000, sample_rate=8000)


@pytest.fixture(scope="session")
def keypair():
    """Level 3 key pair shared by the session; key generation is slow."""
    from cryptopiano.crypto import generate_keypair
    return generate_keypair(3)


@pytest.fixture(scope="session")
def other_keypair():
    """Second level 3 key pair, for wrong-key checks."""
    from cryptopiano.crypto import generate_keypair
    return generate_keypair(3)


@pytest.fixture
def config(tmp_path):
    """Configuration pointing at a temporary data directory."""
    from cryptopiano.config import PipelineConfig
    return PipelineConfig(data_dir=tmp_path / "data")


@pytest.fixture
def contact_store():
    from cryptopiano.pipeline import InMemoryContactStore
    return InMemoryContactStore()


@pytest.fixture
def key_store(keypair):
    from cryptopiano.pipeline import InMemoryKeyStore
    return InMemoryKeyStore(keypair)
