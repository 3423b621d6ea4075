"""
Audio Carrier Module.

This module models the carrier file that hosts a hidden payload: a
single-channel, 16-bit PCM WAV file with the canonical 44-byte header
followed by signed little-endian samples.

Carriers are immutable. Every operation that changes samples (see
``cryptopiano.stego.codec``) returns a new ``AudioCarrier`` so the caller's
original file contents are never modified behind its back.

Header layout (all integers little-endian):

    offset  size  field
    0       4     "RIFF"
    4       4     36 + data size
    8       4     "WAVE"
    12      4     "fmt "
    16      4     16 (format chunk size)
    20      2     1 (PCM)
    22      2     channels
    24      4     sample rate
    28      4     byte rate
    32      2     block align
    34      2     bits per sample
    36      4     "data"
    40      4     data size

Example:
    >>> carrier = AudioCarrier.tone(seconds=1.0, sample_rate=44100)
    >>> carrier.capacity_bits
    44100
    >>> carrier.save("carrier.wav")
"""

import asyncio
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..errors import MalformedCarrier


logger = logging.getLogger(__name__)


HEADER_SIZE = 44
SAMPLE_WIDTH = 2
DEFAULT_SAMPLE_RATE = 44100

_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    """
    Parsed fields of a canonical 44-byte WAV header.

    Attributes:
        riff_size: Value of the RIFF chunk size field
        format_chunk_size: Size of the "fmt " sub-chunk (16 for PCM)
        audio_format: 1 for uncompressed PCM
        channels: Number of interleaved channels
        sample_rate: Samples per second
        byte_rate: Bytes per second
        block_align: Bytes per frame
        bits_per_sample: Sample width in bits
        data_size: Declared size of the data sub-chunk
    """

    riff_size: int
    format_chunk_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    @property
    def is_canonical(self) -> bool:
        """True for mono 16-bit PCM with a 16-byte format chunk."""
        return (
            self.format_chunk_size == 16
            and self.audio_format == 1
            and self.channels == 1
            and self.bits_per_sample == 16
        )

    @property
    def duration(self) -> float:
        """Duration in seconds implied by the header."""
        if not self.byte_rate:
            return 0.0
        return self.data_size / self.byte_rate


def build_wav_header(
    num_samples: int,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """
    Build the canonical 44-byte PCM WAV header.

    Args:
        num_samples: Number of samples in the data chunk (all channels)
        sample_rate: Samples per second
        channels: Number of channels
        bits_per_sample: Sample width in bits

    Returns:
        Exactly 44 header bytes
    """
    bytes_per_sample = bits_per_sample // 8
    data_size = num_samples * bytes_per_sample
    return _HEADER_STRUCT.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        1,
        channels,
        sample_rate,
        sample_rate * channels * bytes_per_sample,
        channels * bytes_per_sample,
        bits_per_sample,
        b"data",
        data_size,
    )


def parse_wav_header(data: bytes) -> Optional[WavHeader]:
    """
    Parse the first 44 bytes of ``data`` as a canonical WAV header.

    Returns None when the buffer is too short or the chunk tags are not
    "RIFF", "WAVE", "fmt " and "data" at their canonical offsets.
    """
    if len(data) < HEADER_SIZE:
        return None

    (riff, riff_size, wave, fmt, fmt_size, audio_format, channels, sample_rate,
     byte_rate, block_align, bits_per_sample, data_tag, data_size) = _HEADER_STRUCT.unpack_from(data, 0)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        return None

    return WavHeader(
        riff_size=riff_size,
        format_chunk_size=fmt_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )


class AudioCarrier:
    """
    Immutable WAV carrier.

    The carrier wraps the raw file bytes. Capacity is one bit per 16-bit
    sample after the header: ``(len(data) - 44) // 2``. A trailing odd byte
    is not a sample and carries nothing.

    Attributes:
        data: Raw file bytes (header included)
        header: Parsed header, or None when the first 44 bytes are not a
            canonical WAV header
        capacity_bits: Number of samples available for LSB embedding
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview]):
        self._data = bytes(data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, AudioCarrier):
            return NotImplemented
        return self._data == other._data

    def __hash__(self) -> int:
        return hash(self._data)

    def __repr__(self) -> str:
        return f"AudioCarrier(bytes={len(self._data)}, capacity_bits={self.capacity_bits})"

    @property
    def data(self) -> bytes:
        """Raw file bytes."""
        return self._data

    @property
    def header(self) -> Optional[WavHeader]:
        return parse_wav_header(self._data)

    @property
    def capacity_bits(self) -> int:
        if len(self._data) <= HEADER_SIZE:
            return 0
        return (len(self._data) - HEADER_SIZE) // SAMPLE_WIDTH

    def samples(self) -> np.ndarray:
        """
        Return a read-only int16 view of the samples after the header.

        The view shares memory with the carrier; it cannot be written to.
        """
        if self.capacity_bits == 0:
            return np.empty(0, dtype="<i2")
        return np.frombuffer(self._data, dtype="<i2", count=self.capacity_bits, offset=HEADER_SIZE)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_pcm(cls, pcm: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> "AudioCarrier":
        """Wrap mono int16 samples in a canonical header."""
        pcm = np.asarray(pcm, dtype="<i2").ravel()
        header = build_wav_header(len(pcm), sample_rate=sample_rate)
        return cls(header + pcm.tobytes())

    @classmethod
    def from_samples(cls, samples: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE) -> "AudioCarrier":
        """
        Build a carrier from floating point samples in [-1.0, 1.0].

        Values are clipped to the range, then negative samples are scaled by
        0x8000 and the others by 0x7FFF, truncating toward zero. This
        matches how recorded audio is converted to 16-bit PCM.

        Args:
            samples: Mono float samples
            sample_rate: Samples per second

        Returns:
            New carrier with a canonical 44-byte header
        """
        clipped = np.clip(np.asarray(samples, dtype=np.float64).ravel(), -1.0, 1.0)
        scaled = np.where(clipped < 0, clipped * 0x8000, clipped * 0x7FFF)
        return cls.from_pcm(np.trunc(scaled).astype("<i2"), sample_rate=sample_rate)

    @classmethod
    def tone(
        cls,
        seconds: float = 1.0,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        frequency: float = 440.0,
        amplitude: float = 0.5,
    ) -> "AudioCarrier":
        """Generate a sine tone carrier."""
        count = int(round(seconds * sample_rate))
        t = np.arange(count, dtype=np.float64) / sample_rate
        return cls.from_samples(amplitude * np.sin(2 * np.pi * frequency * t), sample_rate=sample_rate)

    @classmethod
    def silence(cls, seconds: float = 1.0, sample_rate: int = DEFAULT_SAMPLE_RATE) -> "AudioCarrier":
        """Generate an all-zero carrier."""
        count = int(round(seconds * sample_rate))
        return cls.from_pcm(np.zeros(count, dtype="<i2"), sample_rate=sample_rate)

    # ------------------------------------------------------------------
    # File I/O
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Union[str, Path], strict: bool = False) -> "AudioCarrier":
        """
        Read a carrier from disk.

        Args:
            path: WAV file path
            strict: Reject files whose header is missing or not mono
                16-bit PCM instead of only logging a warning

        Returns:
            Loaded carrier

        Raises:
            MalformedCarrier: In strict mode, when the header is unusable
            OSError: If the file cannot be read
        """
        path = Path(path)
        carrier = cls(path.read_bytes())
        header = carrier.header

        if header is None or not header.is_canonical:
            if strict:
                raise MalformedCarrier(
                    f"{path.name} is not a mono 16-bit PCM WAV file",
                    details={"path": str(path), "size": len(carrier)},
                )
            logger.warning(f"{path.name} does not carry a canonical mono 16-bit PCM header")

        logger.debug(f"Loaded carrier {path.name}: {len(carrier)} bytes, {carrier.capacity_bits} usable samples")
        return carrier

    def save(self, path: Union[str, Path]) -> Path:
        """Write the carrier bytes to ``path`` and return the path."""
        path = Path(path)
        path.write_bytes(self._data)
        logger.debug(f"Wrote carrier {path.name}: {len(self._data)} bytes")
        return path

    @classmethod
    async def aload(cls, path: Union[str, Path], strict: bool = False) -> "AudioCarrier":
        """Asynchronous ``load``; the blocking read runs in a worker thread."""
        return await asyncio.to_thread(cls.load, path, strict)

    async def asave(self, path: Union[str, Path]) -> Path:
        """Asynchronous ``save``; the blocking write runs in a worker thread."""
        return await asyncio.to_thread(self.save, path)
