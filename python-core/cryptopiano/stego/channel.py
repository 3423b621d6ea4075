"""
LSB bit channel over 16-bit PCM samples.

The channel is the physical layer of the steganographic codec: sample ``i``
carries exactly one bit in its least significant position. The upper 15
bits of every sample are left untouched.

Indices are not bounds-checked here. ``StegoCodec`` validates capacity
before it reads or writes anything.
"""

from typing import Union

import numpy as np

from .carrier import HEADER_SIZE, SAMPLE_WIDTH, AudioCarrier


_CLEAR_LSB = np.int16(-2)


class BitChannel:
    """
    Read and write sample LSBs of a mutable WAV buffer.

    The channel keeps an int16 numpy view on the buffer, so writes go
    straight into the underlying bytes.

    Example:
        >>> channel = BitChannel.from_carrier(carrier)
        >>> channel.write_bit(0, 1)
        >>> channel.read_bit(0)
        1
        >>> stego = channel.to_carrier()
    """

    def __init__(self, buffer: Union[bytearray, bytes]):
        self._buffer = buffer
        count = max(0, (len(buffer) - HEADER_SIZE) // SAMPLE_WIDTH)
        if count:
            self._samples = np.frombuffer(buffer, dtype="<i2", count=count, offset=HEADER_SIZE)
        else:
            self._samples = np.empty(0, dtype="<i2")

    @classmethod
    def from_carrier(cls, carrier: AudioCarrier, writable: bool = True) -> "BitChannel":
        """
        Open a channel on ``carrier``.

        With ``writable`` the channel works on a private copy of the bytes;
        otherwise it reads the carrier in place and any write raises.
        """
        return cls(bytearray(carrier.data) if writable else carrier.data)

    def to_carrier(self) -> AudioCarrier:
        return AudioCarrier(self._buffer)

    def __len__(self) -> int:
        return len(self._samples)

    def read_bit(self, sample_index: int) -> int:
        return int(self._samples[sample_index]) & 1

    def write_bit(self, sample_index: int, bit: Union[int, bool]) -> None:
        sample = int(self._samples[sample_index])
        self._samples[sample_index] = (sample & ~1) | (int(bit) & 1)

    def read_bits(self, start: int, count: int) -> np.ndarray:
        """Return ``count`` LSBs starting at ``start`` as a uint8 array of 0/1."""
        return (self._samples[start:start + count] & 1).astype(np.uint8)

    def write_bits(self, start: int, bits: np.ndarray) -> None:
        """Overwrite the LSBs of ``len(bits)`` consecutive samples starting at ``start``."""
        bits = np.asarray(bits).astype(np.int16) & 1
        end = start + len(bits)
        self._samples[start:end] = (self._samples[start:end] & _CLEAR_LSB) | bits
