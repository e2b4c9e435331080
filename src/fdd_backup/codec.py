"""Checksum and little-endian helpers shared by the wire decoder and the TAP encoder.

All multi-byte numbers on the drive link and in TAP records are little endian.
"""


def xor_checksum(data: bytes) -> int:
    chk = 0
    for b in data:
        chk ^= b
    return chk


def to_le_bytes(value: int, width: int = 2) -> bytes:
    return value.to_bytes(width, byteorder="little", signed=False)


def from_le_bytes(data: bytes, offset: int = 0, width: int = 2) -> int:
    """
    Decode an unsigned integer of `width` bytes starting at `offset`.

    The caller must make sure `data` holds at least `offset + width` bytes;
    nothing is checked here.
    """
    return int.from_bytes(data[offset:offset + width], byteorder="little", signed=False)
