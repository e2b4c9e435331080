import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel

from fdd_backup.core import CompletedFile, FddBackupError
from fdd_backup.tape import NAME_LENGTH, file_to_tap

log = logging.getLogger(__name__)

TAPES_DIR = "Tapes"
ORIGINALS_DIR = "Originals"


class ArchiveError(FddBackupError):
    """Received files could not be saved"""


class RepeatedNamesError(ArchiveError):
    """Two received files share a name"""


class ArchiveLayoutError(ArchiveError):
    """An output path that must be a directory is something else"""


def make_file_name(existing: Iterable[str]) -> str:
    taken = set(existing)
    number = 1
    while True:
        name = "File" if number == 1 else f"File {number}"
        if name not in taken:
            return name[:NAME_LENGTH]
        number += 1


class ArchivedFile(BaseModel):
    name: str
    file: CompletedFile


class FileArchive:
    """Received files waiting to be written out as TAP images and raw frames."""

    def __init__(self) -> None:
        self.files: List[ArchivedFile] = []

    def __len__(self) -> int:
        return len(self.files)

    def add(self, file: CompletedFile, name: Optional[str] = None) -> ArchivedFile:
        if name is None:
            name = make_file_name(f.name for f in self.files)
        entry = ArchivedFile(name=name, file=file)
        self.files.append(entry)
        return entry

    def save(self, base_dir: Path) -> List[Path]:
        names = [f.name for f in self.files]
        if len(set(names)) != len(names):
            raise RepeatedNamesError("File names must be unique")

        base_dir = Path(base_dir)
        tapes = _ensure_dir(base_dir / TAPES_DIR)
        originals = _ensure_dir(base_dir / ORIGINALS_DIR)

        written: List[Path] = []
        for entry in self.files:
            raw_path = originals / f"{entry.name}.data"
            raw_path.write_bytes(entry.file.raw_frame)
            tap_path = tapes / f"{entry.name}.tap"
            tap_path.write_bytes(file_to_tap(entry.file, entry.name))
            log.info("Saved %s to %s", entry.name, tap_path)
            written.extend([raw_path, tap_path])
        return written


def _ensure_dir(path: Path) -> Path:
    if path.exists():
        if not path.is_dir():
            raise ArchiveLayoutError(f"{path} exists and is not a directory")
    else:
        path.mkdir()
    return path
