"""
Bit-level decoding of the verifiable random value supplied for a spin.

The value arrives as a 0x-prefixed hexadecimal string and is the only source
of entropy for the whole spin, cascades included. Consumers read fixed-width
unsigned integers from it at increasing bit offsets; offsets past the natural
width of the value read as zero bits.
"""

import re

from cryptoreels_be.exceptions import InvalidRandomInputException

RANDOM_HEX_PATTERN = re.compile(r'0x[0-9a-fA-F]+')


def parse_random_value(random_hex):
    """
    Converts a 0x-prefixed hex string into an arbitrary-precision integer.

    Raises:
        InvalidRandomInputException: if the value is not a string, lacks the
            0x prefix, or contains non-hex characters.
    """
    if not isinstance(random_hex, str) or not RANDOM_HEX_PATTERN.fullmatch(random_hex):
        raise InvalidRandomInputException(
            "Random value must be a 0x-prefixed hexadecimal string.",
            details={'random_value': random_hex if isinstance(random_hex, str) else repr(random_hex)}
        )
    return int(random_hex, 16)


def _mask_bits(value, start_bit, bit_count):
    if not isinstance(start_bit, int) or start_bit < 0:
        raise ValueError(f"start_bit must be a non-negative integer, got {start_bit!r}")
    if not isinstance(bit_count, int) or bit_count <= 0:
        raise ValueError(f"bit_count must be a positive integer, got {bit_count!r}")
    return (value >> start_bit) & ((1 << bit_count) - 1)


def extract_bits(random_hex, start_bit, bit_count):
    """
    Extracts `bit_count` bits starting at `start_bit` (bit 0 is the least
    significant bit) and returns them as an unsigned integer in
    [0, 2**bit_count - 1].

    >>> extract_bits('0xFF', 0, 3)
    7
    >>> extract_bits('0xFF', 6, 2)
    3
    """
    return _mask_bits(parse_random_value(random_hex), start_bit, bit_count)


class BitReader:
    """Sequential reader over a parsed random value with a running offset."""

    def __init__(self, random_hex, offset=0):
        self.random_hex = random_hex
        self.value = parse_random_value(random_hex)
        self.offset = offset

    def peek(self, start_bit, bit_count):
        return _mask_bits(self.value, start_bit, bit_count)

    def take(self, bit_count):
        extracted = _mask_bits(self.value, self.offset, bit_count)
        self.offset += bit_count
        return extracted

    def __repr__(self):
        return f"<BitReader offset={self.offset} bits={self.value.bit_length()}>"
