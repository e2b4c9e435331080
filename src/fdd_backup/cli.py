import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

import click

from fdd_backup.archive import ArchiveError, FileArchive
from fdd_backup.config import DecoderSettings, SerialSettings
from fdd_backup.core import DecoderEvent, Diagnostic, FileCompleted, ProgressUpdate
from fdd_backup.driver import LinkError, SerialSession
from fdd_backup.protocol import StreamDecoder

log = logging.getLogger(__name__)


def _decoder_settings(strict_checksum: bool, validate_program_length: bool) -> DecoderSettings:
    settings = DecoderSettings()
    if strict_checksum:
        settings = settings.model_copy(update={"strict_checksum": True})
    if validate_program_length:
        settings = settings.model_copy(update={"validate_program_length": True})
    return settings


def _collect_into(archive: FileArchive) -> Callable[[DecoderEvent], None]:
    def on_event(event: DecoderEvent) -> None:
        if isinstance(event, Diagnostic):
            log.warning("%s", event.message)
        elif isinstance(event, ProgressUpdate):
            progress = event.progress
            if not progress.is_indeterminate:
                log.debug("%s: %d/%d bytes", progress.description, progress.current, progress.total)
        elif isinstance(event, FileCompleted):
            entry = archive.add(event.file)
            header = event.file.header
            click.echo(f"{entry.name}: {header.file_type.label}, {header.data_length} bytes")
    return on_event


def _save(archive: FileArchive, output: Path) -> None:
    if not len(archive):
        raise click.ClickException("No files received")
    output.mkdir(parents=True, exist_ok=True)
    try:
        archive.save(output)
    except ArchiveError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Saved {len(archive)} file(s) to {output}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


@main.command("decode")
@click.argument("capture", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output", type=click.Path(file_okay=False, path_type=Path))
@click.option("--chunk-size", type=click.IntRange(min=1), default=4096, show_default=True,
              help="Bytes handed to the decoder per call")
@click.option("--strict-checksum", is_flag=True, help="Expect and verify a payload checksum byte after each frame")
@click.option("--validate-program-length", is_flag=True, help="Reject program headers with a program length above the data length")
def decode_cmd(capture: Path, output: Path, chunk_size: int, strict_checksum: bool, validate_program_length: bool):
    """Decode a raw capture of the drive link into TAP images."""
    archive = FileArchive()
    decoder = StreamDecoder(
        settings=_decoder_settings(strict_checksum, validate_program_length),
        listener=_collect_into(archive),
    )
    data = capture.read_bytes()
    for start in range(0, len(data), chunk_size):
        decoder.receive(data[start:start + chunk_size])
    if decoder.buffered_count:
        log.warning("%d trailing bytes did not form a complete file", decoder.buffered_count)
    _save(archive, output)


@main.command("capture")
@click.argument("output", type=click.Path(file_okay=False, path_type=Path))
@click.option("--port", default=None, help="Serial device (defaults to FDD_SERIAL_PORT)")
@click.option("--baudrate", type=int, default=None, help="Line speed (defaults to FDD_SERIAL_BAUDRATE or 19200)")
@click.option("--strict-checksum", is_flag=True, help="Expect and verify a payload checksum byte after each frame")
@click.option("--validate-program-length", is_flag=True, help="Reject program headers with a program length above the data length")
def capture_cmd(output: Path, port: Optional[str], baudrate: Optional[int], strict_checksum: bool,
                validate_program_length: bool):
    """Receive files from the drive until the link closes or Ctrl-C."""
    serial_settings = SerialSettings()
    updates = {k: v for k, v in (("port", port), ("baudrate", baudrate)) if v is not None}
    if updates:
        serial_settings = serial_settings.model_copy(update=updates)

    archive = FileArchive()
    decoder = StreamDecoder(settings=_decoder_settings(strict_checksum, validate_program_length))
    session = SerialSession(settings=serial_settings, decoder=decoder)

    async def _run() -> int:
        await session.connect()
        return await session.run(_collect_into(archive))

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("Interrupted, saving received files")
    except LinkError as e:
        log.error("%s", e)
        if not len(archive):
            raise click.ClickException(str(e)) from e
    _save(archive, output)


if __name__ == "__main__":
    main()
