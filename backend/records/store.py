from __future__ import annotations

import re
from pathlib import Path


class RecordError(Exception):
    pass


class InvalidRecordKeyError(RecordError):
    pass


class RecordNotFoundError(RecordError):
    def __init__(self, file_name: str) -> None:
        super().__init__(f"File {file_name} not found in the specified directory")
        self.file_name = file_name


class RecordReadError(RecordError):
    pass


class PatientRecordStore:
    _KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")
    suffix = ".txt"

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def file_name_for(self, key: str) -> str:
        cleaned = (key or "").strip()
        if not self._KEY_RE.fullmatch(cleaned) or ".." in cleaned:
            raise InvalidRecordKeyError("Search term may only contain letters, digits, '.', '_' and '-'.")
        return f"{cleaned}{self.suffix}"

    def lookup(self, key: str) -> str:
        file_name = self.file_name_for(key)
        path = self._root / file_name
        if not path.is_file():
            raise RecordNotFoundError(file_name)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RecordReadError(f"Failed to read file {file_name}") from exc
