"""
CryptoPiano Steganography Module - Hidden Data in Audio.

This module hides byte payloads in the least significant bits of 16-bit
PCM WAV carriers.

Modules:
    carrier: WAV carrier model, canonical header, file I/O
    channel: One bit per sample LSB access
    codec: Length-prefixed payload framing

Usage:
    >>> from cryptopiano.stego import AudioCarrier, StegoCodec
    >>> codec = StegoCodec()
    >>> stego = codec.embed(AudioCarrier.tone(seconds=1.0), b"Hello")
    >>> codec.extract(stego, as_bytes=True)
    b'Hello'
"""

from .carrier import (
    AudioCarrier,
    WavHeader,
    build_wav_header,
    parse_wav_header,
    HEADER_SIZE,
    DEFAULT_SAMPLE_RATE,
)
from .channel import BitChannel
from .codec import StegoCodec, embed_message, extract_message, required_bits, LENGTH_BITS, MAX_PAYLOAD_BYTES

__all__ = [
    "AudioCarrier",
    "WavHeader",
    "build_wav_header",
    "parse_wav_header",
    "HEADER_SIZE",
    "DEFAULT_SAMPLE_RATE",
    "BitChannel",
    "StegoCodec",
    "embed_message",
    "extract_message",
    "required_bits",
    "LENGTH_BITS",
    "MAX_PAYLOAD_BYTES",
]
