"""TAP container records.

A TAP file is a sequence of blocks, each prefixed with its u16 size. A file
saved from the drive becomes two blocks:

  header block: [0x0013][0x00 flag][type][name x10][specific x6][checksum]
  data block:   [len+2][0xFF flag][payload][checksum]

Each checksum is the XOR of the block contents after the size field, flag
byte included.
"""
from fdd_backup.codec import to_le_bytes, xor_checksum
from fdd_backup.core import CompletedFile, FrameHeader, ProgramHeader

NAME_LENGTH = 10
NAME_PLACEHOLDER = b"?" * NAME_LENGTH
HEADER_BLOCK_SIZE = 0x13
HEADER_FLAG = 0x00
DATA_FLAG = 0xFF


def encode_name(name: str) -> bytes:
    try:
        raw = name.encode("latin-1")
    except UnicodeEncodeError:
        raw = NAME_PLACEHOLDER
    return raw[:NAME_LENGTH].ljust(NAME_LENGTH, b" ")


def header_block(header: FrameHeader, name: str) -> bytes:
    if not isinstance(header, ProgramHeader):
        raise NotImplementedError(f"{header.file_type.label} headers cannot be encoded yet")
    body = bytes([HEADER_FLAG, int(header.file_type)]) + encode_name(name) + header.specific_header_bytes()
    return to_le_bytes(HEADER_BLOCK_SIZE) + body + bytes([xor_checksum(body)])


def data_block(payload: bytes) -> bytes:
    body = bytes([DATA_FLAG]) + payload
    return to_le_bytes(len(payload) + 2) + body + bytes([xor_checksum(body)])


def encode_tap(header: FrameHeader, name: str, payload: bytes) -> bytes:
    return header_block(header, name) + data_block(payload)


def file_to_tap(file: CompletedFile, name: str) -> bytes:
    return encode_tap(file.header, name, file.payload)
