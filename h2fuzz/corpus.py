from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from . import common


@dataclass(frozen=True)
class Entry:
    path: str
    content: bytes


def load(root: Path) -> list[str]:
    """
    Return the relative paths of all regular files below root.

    The result is sorted, so repeated calls on an unchanged directory yield the same list.
    """
    try:
        # Subdirectory errors are ignored by rglob, only the root is checked
        with os.scandir(root):
            pass
        return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())
    except OSError as e:
        raise common.CorpusError(f"Error reading corpus directory {root}: {e}") from e


def read(root: Path, path: str) -> Entry:
    try:
        return Entry(path=path, content=(root / path).read_bytes())
    except OSError as e:
        raise common.CorpusError(f"Error reading corpus entry {path}: {e}") from e
