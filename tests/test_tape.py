import pytest

from fdd_backup.codec import from_le_bytes, to_le_bytes, xor_checksum
from fdd_backup.core import CompletedFile, FileCompleted, NumericArrayHeader, ProgramHeader
from fdd_backup.protocol import StreamDecoder
from fdd_backup.tape import encode_name, encode_tap, file_to_tap


def test_xor_checksum():
    assert xor_checksum(b"") == 0
    assert xor_checksum(b"\x5a") == 0x5A
    assert xor_checksum(b"\x01\x02\x04\x08") == 0x0F
    assert xor_checksum(b"\xff\xff") == 0


def test_little_endian():
    assert to_le_bytes(0x0115) == b"\x15\x01"
    assert to_le_bytes(0x12345678, 4) == b"\x78\x56\x34\x12"
    assert from_le_bytes(b"\x00\x00\x01\x00\x15\x01\xf2\x00", 4) == 0x0115
    assert from_le_bytes(b"\x78\x56\x34\x12", width=4) == 0x12345678


def test_name_is_padded_and_truncated():
    assert encode_name("File") == b"File      "
    assert encode_name("Red Alert Extended") == b"Red Alert "
    assert encode_name("Café") == b"Caf\xe9      "


def test_unencodable_name_uses_placeholder():
    assert encode_name("日本") == b"??????????"


def test_program_tap_layout():
    header = ProgramHeader(auto_start_line=10, data_length=4, program_length=3)
    payload = b"\x01\x02\x03\x04"

    tap = encode_tap(header, "Hello", payload)

    assert len(tap) == 21 + 8
    assert tap[0:2] == b"\x13\x00"
    assert tap[2] == 0x00
    assert tap[3] == 0x00
    assert tap[4:14] == b"Hello     "
    assert tap[14:16] == to_le_bytes(4)
    assert tap[16:18] == to_le_bytes(10)
    assert tap[18:20] == to_le_bytes(3)
    assert tap[20] == xor_checksum(tap[2:20])

    data = tap[21:]
    assert data[0:2] == to_le_bytes(len(payload) + 2)
    assert data[2] == 0xFF
    assert data[3:7] == payload
    assert data[7] == xor_checksum(data[2:7])
    assert len(data) == 8


def test_block_checksums_xor_to_zero():
    header = ProgramHeader(auto_start_line=1, data_length=0x0115, program_length=0x00F2)
    payload = bytes((i * 13) & 0xFF for i in range(0x0115))

    tap = encode_tap(header, "redalert", payload)

    assert xor_checksum(tap[2:21]) == 0
    assert from_le_bytes(tap, 21) == 0x0115 + 2
    assert xor_checksum(tap[23:]) == 0


def test_decoded_file_to_tap():
    raw = b"\x00\x00\x00\x00\x03\x00\x02\x00" + b"\xaa\xbb\xcc"
    (event,) = [e for e in StreamDecoder().receive(raw) if isinstance(e, FileCompleted)]

    tap = file_to_tap(event.file, "number")

    assert tap == encode_tap(event.file.header, "number", b"\xaa\xbb\xcc")
    assert tap[-5:-1] == b"\xff\xaa\xbb\xcc"


def test_unimplemented_header_cannot_be_encoded():
    file = CompletedFile(header=NumericArrayHeader(data_length=2), payload=b"\x00\x00", raw_frame=b"")

    with pytest.raises(NotImplementedError):
        file_to_tap(file, "array")


def test_only_program_headers_have_tap_fields():
    assert not hasattr(NumericArrayHeader(data_length=2), "specific_header_bytes")

    with pytest.raises(NotImplementedError, match="Numeric Array"):
        encode_tap(NumericArrayHeader(data_length=2), "array", b"\x00\x00")
