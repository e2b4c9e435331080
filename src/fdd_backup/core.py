from enum import IntEnum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from fdd_backup.codec import to_le_bytes


class FddBackupError(Exception):
    """Base FDD Backup Exception"""


class FileType(IntEnum):
    PROGRAM = 0
    NUMERIC_ARRAY = 1
    ALPHANUMERIC_ARRAY = 2
    BYTES = 3

    @property
    def header_size(self) -> int:
        return HEADER_SIZES[self]

    @property
    def label(self) -> str:
        return LABELS[self]


HEADER_SIZES = {
    FileType.PROGRAM: 8,
    FileType.NUMERIC_ARRAY: 8,
    FileType.ALPHANUMERIC_ARRAY: 8,
    FileType.BYTES: 6,
}

LABELS = {
    FileType.PROGRAM: "Program",
    FileType.NUMERIC_ARRAY: "Numeric Array",
    FileType.ALPHANUMERIC_ARRAY: "Alphanumeric Array",
    FileType.BYTES: "Bytes",
}


class FrameHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_type: FileType
    data_length: int = Field(..., ge=0, le=0xFFFF)

    @property
    def header_size(self) -> int:
        return self.file_type.header_size

    @property
    def expected_total_frame_size(self) -> int:
        return self.header_size + self.data_length


class ProgramHeader(FrameHeader):
    """
    Header of a BASIC program as sent by the drive:

    +----+----+----+----+----+----+----+----+
    | 00 | 00 |  start  |  data   | program |
    |    |    |  line   | length  | length  |
    +----+----+----+----+----+----+----+----+

    A start line of 0 means no auto start. The program length is at most the
    data length; the rest of the data block holds the variables.
    """

    file_type: Literal[FileType.PROGRAM] = FileType.PROGRAM
    auto_start_line: int = Field(0, ge=0, le=0xFFFF)
    program_length: int = Field(..., ge=0, le=0xFFFF)

    def specific_header_bytes(self) -> bytes:
        return (
            to_le_bytes(self.data_length)
            + to_le_bytes(self.auto_start_line)
            + to_le_bytes(self.program_length)
        )


# Headers below are recognised on the wire but not parsed.
class NumericArrayHeader(FrameHeader):
    file_type: Literal[FileType.NUMERIC_ARRAY] = FileType.NUMERIC_ARRAY


class AlphanumericArrayHeader(FrameHeader):
    file_type: Literal[FileType.ALPHANUMERIC_ARRAY] = FileType.ALPHANUMERIC_ARRAY


class BytesHeader(FrameHeader):
    file_type: Literal[FileType.BYTES] = FileType.BYTES


Header = Union[ProgramHeader, NumericArrayHeader, AlphanumericArrayHeader, BytesHeader]


class CompletedFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    header: Header
    payload: bytes
    raw_frame: bytes


class Idle(BaseModel):
    model_config = ConfigDict(frozen=True)


class AwaitingPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    header: Header


DecoderState = Union[Idle, AwaitingPayload]


class Progress(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: Optional[int] = None
    total: Optional[int] = None
    description: str

    @classmethod
    def indeterminate(cls) -> "Progress":
        return cls(description="Waiting for file header…")

    @property
    def is_indeterminate(self) -> bool:
        return self.total is None


class Diagnostic(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ProgressUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    progress: Progress


class FileCompleted(BaseModel):
    model_config = ConfigDict(frozen=True)

    file: CompletedFile


DecoderEvent = Union[Diagnostic, ProgressUpdate, FileCompleted]
