import asyncio
import logging
from typing import Callable, List, Optional

import serial_asyncio

from fdd_backup.config import SerialSettings
from fdd_backup.core import DecoderEvent, FddBackupError, FileCompleted
from fdd_backup.protocol import StreamDecoder

log = logging.getLogger(__name__)


class LinkError(FddBackupError):
    """Serial link to the drive failed"""


class SerialSession:

    def __init__(self, settings: Optional[SerialSettings] = None, decoder: Optional[StreamDecoder] = None) -> None:
        self._settings = settings if settings is not None else SerialSettings()
        self.decoder = decoder if decoder is not None else StreamDecoder()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    @property
    def connected(self) -> bool:
        return self._reader is not None

    async def connect(self) -> None:
        if self._settings.port is None:
            raise LinkError("No serial port configured")
        log.info("Opening %s at %d baud", self._settings.port, self._settings.baudrate)
        try:
            reader, writer = await serial_asyncio.open_serial_connection(
                url=self._settings.port,
                baudrate=self._settings.baudrate,
                bytesize=self._settings.bytesize,
                parity=self._settings.parity,
                stopbits=self._settings.stopbits,
                rtscts=self._settings.rtscts,
                dsrdtr=self._settings.dsrdtr,
            )
        except serial_asyncio.serial.SerialException as e:
            raise LinkError(f"Unable to open {self._settings.port}: {e}") from e
        self.attach(reader, writer)

    def attach(self, reader: asyncio.StreamReader, writer: Optional[asyncio.StreamWriter] = None) -> None:
        # A new connection never continues a frame from the previous one.
        self.decoder.reset()
        self._reader = reader
        self._writer = writer

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except Exception as e:
                log.debug("Error while closing serial port: %s", e)
        self._reader = None
        self._writer = None
        self.decoder.reset()

    def _ensure_connected(self) -> asyncio.StreamReader:
        if self._reader is None:
            raise RuntimeError("Not connected. Call await connect() first.")
        return self._reader

    def feed(self, data: bytes) -> List[DecoderEvent]:
        return self.decoder.receive(data)

    async def run(self, on_event: Optional[Callable[[DecoderEvent], None]] = None) -> int:
        """
        Read from the link until it closes, forwarding decoder events.

        Returns the number of files received. The decoder is reset when the
        link goes away, whether it closed cleanly or failed.
        """
        reader = self._ensure_connected()
        completed = 0
        try:
            while True:
                try:
                    chunk = await reader.read(self._settings.read_size)
                except serial_asyncio.serial.SerialException as e:
                    raise LinkError(f"Serial link failed: {e}") from e
                if not chunk:
                    log.info("Serial link closed")
                    break
                for event in self.feed(chunk):
                    if isinstance(event, FileCompleted):
                        completed += 1
                    if on_event is not None:
                        on_event(event)
        finally:
            await self.close()
        return completed
