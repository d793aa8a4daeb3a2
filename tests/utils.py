from __future__ import annotations

import random
import stat
from pathlib import Path
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


class SequenceRandom(random.Random):
    """Random number generator returning predefined values in order."""

    def __init__(self, values: list[int]) -> None:
        super().__init__(0)
        self._values = values

    def _next(self) -> int:
        return self._values.pop(0)

    def randrange(  # type: ignore[override]
        self,
        start: int,  # noqa: ARG002
        stop: Optional[int] = None,  # noqa: ARG002
        step: int = 1,  # noqa: ARG002
    ) -> int:
        return self._next()

    def getrandbits(self, k: int) -> int:  # noqa: ARG002
        return self._next()

    def choice(self, seq: Sequence[T]) -> T:
        return seq[self._next()]


def write_script(path: Path, content: str) -> Path:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path
