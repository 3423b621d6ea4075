"""
LSB Steganographic Codec.

Frames a byte payload inside an audio carrier:

    [32-bit payload length][payload bits]

Both fields are written one bit per sample, least significant bit first,
starting at the first sample after the 44-byte header. Payload bytes follow
the length field back to back with no padding.

Extraction is bounded: a declared length of zero or above
``MAX_PAYLOAD_BYTES`` means "no message", so an unrelated or corrupted file
never triggers a large read.

Example:
    >>> codec = StegoCodec()
    >>> stego = codec.embed(carrier, b"Hello")
    >>> codec.extract(stego, as_bytes=True)
    b'Hello'
"""

import logging
from typing import Optional, Union

import numpy as np

from ..errors import CapacityExceeded
from .carrier import AudioCarrier
from .channel import BitChannel


logger = logging.getLogger(__name__)


LENGTH_BITS = 32
MAX_PAYLOAD_BYTES = 1_000_000


def required_bits(payload_size: int) -> int:
    """Number of samples needed to carry a payload of ``payload_size`` bytes."""
    return LENGTH_BITS + payload_size * 8


def _length_bits(length: int) -> np.ndarray:
    return np.array([(length >> i) & 1 for i in range(LENGTH_BITS)], dtype=np.uint8)


class StegoCodec:
    """
    Length-prefixed LSB codec for 16-bit PCM carriers.

    The codec is stateless; one instance can be shared freely.
    """

    def capacity_bytes(self, carrier: AudioCarrier) -> int:
        """
        Largest payload, in bytes, that ``carrier`` can hold.

        Args:
            carrier: Candidate carrier

        Returns:
            Payload capacity after the 32-bit length field, capped at
            ``MAX_PAYLOAD_BYTES``
        """
        available = carrier.capacity_bits - LENGTH_BITS
        if available < 8:
            return 0
        return min(available // 8, MAX_PAYLOAD_BYTES)

    def embed(self, carrier: AudioCarrier, payload: Union[bytes, bytearray, str]) -> AudioCarrier:
        """
        Hide ``payload`` in ``carrier``.

        Args:
            carrier: Source carrier; never modified
            payload: Bytes to hide; text is encoded as UTF-8

        Returns:
            A new carrier holding the payload. An empty payload returns
            ``carrier`` itself, since an empty message is indistinguishable
            from no message.

        Raises:
            CapacityExceeded: If the framed payload needs more samples than
                the carrier has, or exceeds ``MAX_PAYLOAD_BYTES``. Nothing
                is written in that case.
        """
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        payload = bytes(payload)

        if not payload:
            return carrier

        needed = required_bits(len(payload))
        if len(payload) > MAX_PAYLOAD_BYTES or needed > carrier.capacity_bits:
            raise CapacityExceeded(
                f"Payload of {len(payload)} bytes needs {needed} samples, carrier has {carrier.capacity_bits}",
                details={
                    "payload_size": len(payload),
                    "required_bits": needed,
                    "capacity_bits": carrier.capacity_bits,
                },
            )

        channel = BitChannel.from_carrier(carrier)
        channel.write_bits(0, _length_bits(len(payload)))
        channel.write_bits(LENGTH_BITS, np.unpackbits(np.frombuffer(payload, dtype=np.uint8), bitorder="little"))

        logger.info(f"Embedded {len(payload)} bytes using {needed} of {carrier.capacity_bits} samples")
        return channel.to_carrier()

    def read_declared_length(self, carrier: AudioCarrier) -> Optional[int]:
        """Return the 32-bit length field, or None if the carrier is too short to hold it."""
        if carrier.capacity_bits < LENGTH_BITS:
            return None
        channel = BitChannel.from_carrier(carrier, writable=False)
        packed = np.packbits(channel.read_bits(0, LENGTH_BITS), bitorder="little")
        return int.from_bytes(packed.tobytes(), "little")

    def extract(self, carrier: AudioCarrier, as_bytes: bool = False) -> Optional[Union[bytes, str]]:
        """
        Recover the payload hidden in ``carrier``.

        Args:
            carrier: Carrier to read
            as_bytes: Return raw bytes instead of decoded text. Required
                whenever the payload may be a binary envelope.

        Returns:
            The payload, or None when there is no valid message: declared
            length of zero or above ``MAX_PAYLOAD_BYTES``, a carrier shorter
            than the declared length, or (text mode) bytes that are not
            valid UTF-8.
        """
        declared = self.read_declared_length(carrier)
        if declared is None:
            logger.debug("Carrier too short for a length field")
            return None

        if declared == 0 or declared > MAX_PAYLOAD_BYTES:
            logger.debug(f"Declared length {declared} outside (0, {MAX_PAYLOAD_BYTES}]; no message")
            return None

        if required_bits(declared) > carrier.capacity_bits:
            logger.debug(f"Declared length {declared} exceeds carrier capacity {carrier.capacity_bits}")
            return None

        channel = BitChannel.from_carrier(carrier, writable=False)
        bits = channel.read_bits(LENGTH_BITS, declared * 8)
        payload = np.packbits(bits, bitorder="little").tobytes()
        logger.info(f"Extracted {len(payload)} bytes from carrier")

        if as_bytes:
            return payload

        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("Extracted payload is not valid UTF-8 text")
            return None


_default_codec = StegoCodec()


def embed_message(carrier: AudioCarrier, message: Union[bytes, bytearray, str]) -> AudioCarrier:
    """Module-level shortcut for ``StegoCodec().embed``."""
    return _default_codec.embed(carrier, message)


def extract_message(carrier: AudioCarrier, as_bytes: bool = False) -> Optional[Union[bytes, str]]:
    """Module-level shortcut for ``StegoCodec().extract``."""
    return _default_codec.extract(carrier, as_bytes=as_bytes)
