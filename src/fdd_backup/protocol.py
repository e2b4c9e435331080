import logging
from typing import Callable, List, Optional

from fdd_backup.codec import from_le_bytes, xor_checksum
from fdd_backup.config import DecoderSettings
from fdd_backup.core import (
    AwaitingPayload,
    CompletedFile,
    DecoderEvent,
    DecoderState,
    Diagnostic,
    FileCompleted,
    FileType,
    FrameHeader,
    Idle,
    ProgramHeader,
    Progress,
    ProgressUpdate,
)

log = logging.getLogger(__name__)

MARKER = 0x00

NOT_MARKER = "Initial byte is not 0, skipping."
INVALID_FILE_TYPE = "Invalid file type, skipping first two bytes."
UNSUPPORTED_FILE_TYPE = "Unsupported file type {label}, skipping first two bytes."
MALFORMED_HEADER = "Malformed program header, skipping first two bytes."
CHECKSUM_MISMATCH = "Checksum mismatch (expected 0x{expected:02X}, got 0x{got:02X}), discarding frame."

Listener = Callable[[DecoderEvent], None]


def derive_progress(state: DecoderState, buffered_count: int) -> Progress:
    """Progress snapshot for `state` given how many bytes are buffered."""
    if isinstance(state, AwaitingPayload):
        header = state.header
        received = max(0, min(buffered_count - header.header_size, header.data_length))
        return Progress(
            current=received,
            total=header.data_length,
            description=f"Receiving {header.file_type.label}",
        )
    return Progress.indeterminate()


class StreamDecoder:
    """
    Incremental decoder for the drive's file frames.

    Bytes are fed with receive() in chunks of any size; every call runs the
    decoder until it needs more input and returns the events it produced, in
    order. Malformed input never raises: it is skipped and reported as a
    Diagnostic event.

    One decoder serves one ordered stream. Calls must not overlap.
    """

    def __init__(self, settings: Optional[DecoderSettings] = None, listener: Optional[Listener] = None) -> None:
        self._settings = settings if settings is not None else DecoderSettings()
        self._listener = listener
        self._buf = bytearray()
        self._state: DecoderState = Idle()
        self._events: List[DecoderEvent] = []

    # ---------------- observers ----------------

    @property
    def settings(self) -> DecoderSettings:
        return self._settings

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def buffered_count(self) -> int:
        return len(self._buf)

    @property
    def buffer(self) -> bytes:
        return bytes(self._buf)

    # ---------------- public API ----------------

    def receive(self, data: bytes) -> List[DecoderEvent]:
        """Append `data` and decode as far as the buffered bytes allow."""
        if data:
            self._buf.extend(data)
        while self._step():
            pass
        return self._drain()

    def reset(self) -> List[DecoderEvent]:
        """
        Drop every buffered byte and go back to waiting for a header.

        Used when the link is lost or re-established so bytes from two
        sessions are never joined into one frame.
        """
        if self._buf or not isinstance(self._state, Idle):
            log.debug("Reset with %d bytes buffered", len(self._buf))
        self._buf.clear()
        self._set_state(Idle())
        return self._drain()

    # ---------------- decode steps ----------------

    def _step(self) -> bool:
        """Run one decode step. Returns False when more bytes are needed."""
        if isinstance(self._state, AwaitingPayload):
            return self._process_content(self._state.header)
        return self._process_initial_data()

    def _process_initial_data(self) -> bool:
        if not self._buf:
            return False

        if self._buf[0] != MARKER:
            self._skip(1, NOT_MARKER)
            return True

        if len(self._buf) < 2:
            return False

        try:
            file_type = FileType(self._buf[1])
        except ValueError:
            self._skip(2, INVALID_FILE_TYPE)
            return True

        if file_type != FileType.PROGRAM:
            self._skip(2, UNSUPPORTED_FILE_TYPE.format(label=file_type.label))
            return True

        return self._process_program()

    def _process_program(self) -> bool:
        if len(self._buf) < FileType.PROGRAM.header_size:
            return False

        header = ProgramHeader(
            auto_start_line=from_le_bytes(self._buf, 2),
            data_length=from_le_bytes(self._buf, 4),
            program_length=from_le_bytes(self._buf, 6),
        )
        if self._settings.validate_program_length and header.program_length > header.data_length:
            self._skip(2, MALFORMED_HEADER)
            return True

        log.debug(
            "Program header: start line %d, data length %d, program length %d",
            header.auto_start_line,
            header.data_length,
            header.program_length,
        )
        self._set_state(AwaitingPayload(header=header))
        return True

    def _process_content(self, header: FrameHeader) -> bool:
        self._emit(ProgressUpdate(progress=derive_progress(self._state, len(self._buf))))

        frame_size = header.expected_total_frame_size
        consumed = frame_size + 1 if self._settings.strict_checksum else frame_size
        if len(self._buf) < consumed:
            return False

        payload = bytes(self._buf[header.header_size:frame_size])
        raw_frame = bytes(self._buf[:frame_size])

        if self._settings.strict_checksum:
            expected = xor_checksum(payload)
            got = self._buf[frame_size]
            if expected != got:
                self._skip(consumed, CHECKSUM_MISMATCH.format(expected=expected, got=got))
                self._set_state(Idle())
                return True

        log.info("Received %s, %d bytes", header.file_type.label, header.data_length)
        self._emit(FileCompleted(file=CompletedFile(header=header, payload=payload, raw_frame=raw_frame)))
        del self._buf[:consumed]
        self._set_state(Idle())
        return True

    # ---------------- helpers ----------------

    def _set_state(self, state: DecoderState) -> None:
        self._state = state
        self._emit(ProgressUpdate(progress=derive_progress(state, len(self._buf))))

    def _skip(self, count: int, message: str) -> None:
        log.debug("%s (%d bytes buffered)", message, len(self._buf))
        self._emit(Diagnostic(message=message))
        del self._buf[:count]

    def _emit(self, event: DecoderEvent) -> None:
        self._events.append(event)

    def _drain(self) -> List[DecoderEvent]:
        # Listener runs only after buffer and state are settled.
        events, self._events = self._events, []
        if self._listener is not None:
            for event in events:
                self._listener(event)
        return events
