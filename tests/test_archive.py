import pytest

from fdd_backup.archive import (
    ArchiveLayoutError,
    FileArchive,
    RepeatedNamesError,
    make_file_name,
)
from fdd_backup.core import CompletedFile, ProgramHeader
from fdd_backup.tape import file_to_tap


def make_file(payload: bytes = b"\x10\x20\x30") -> CompletedFile:
    header = ProgramHeader(auto_start_line=0, data_length=len(payload), program_length=len(payload))
    raw = b"\x00\x00\x00\x00" + len(payload).to_bytes(2, "little") * 2 + payload
    return CompletedFile(header=header, payload=payload, raw_frame=raw)


def test_make_file_name():
    assert make_file_name([]) == "File"
    assert make_file_name(["File"]) == "File 2"
    assert make_file_name(["File", "File 2", "File 3"]) == "File 4"
    assert make_file_name(["File 2"]) == "File"


def test_add_assigns_unique_names():
    archive = FileArchive()

    first = archive.add(make_file())
    second = archive.add(make_file())
    named = archive.add(make_file(), name="redalert")

    assert [first.name, second.name, named.name] == ["File", "File 2", "redalert"]
    assert len(archive) == 3


def test_save_writes_tap_and_raw(tmp_path):
    archive = FileArchive()
    file = make_file()
    archive.add(file, name="number")

    written = archive.save(tmp_path)

    assert (tmp_path / "Originals" / "number.data").read_bytes() == file.raw_frame
    assert (tmp_path / "Tapes" / "number.tap").read_bytes() == file_to_tap(file, "number")
    assert len(written) == 2


def test_save_reuses_existing_directories(tmp_path):
    (tmp_path / "Tapes").mkdir()
    (tmp_path / "Originals").mkdir()
    archive = FileArchive()
    archive.add(make_file())

    archive.save(tmp_path)

    assert (tmp_path / "Tapes" / "File.tap").exists()


def test_save_rejects_repeated_names(tmp_path):
    archive = FileArchive()
    archive.add(make_file(), name="same")
    archive.add(make_file(), name="same")

    with pytest.raises(RepeatedNamesError):
        archive.save(tmp_path)
    assert not (tmp_path / "Tapes").exists()


def test_save_rejects_file_in_place_of_directory(tmp_path):
    (tmp_path / "Tapes").write_bytes(b"")
    archive = FileArchive()
    archive.add(make_file())

    with pytest.raises(ArchiveLayoutError):
        archive.save(tmp_path)
