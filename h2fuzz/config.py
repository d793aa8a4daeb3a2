from __future__ import annotations

import enum
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_PORT = 9090
DEFAULT_SEED_START = 1020
DEFAULT_SEED_END = 1044


def builtin_engine() -> list[str]:
    return [sys.executable, "-m", "h2fuzz.mutator"]


class Policy(enum.Enum):
    CONCURRENT = "concurrent"
    SEQUENTIAL = "sequential"


@dataclass
class Config:
    """
    Configuration of a fuzzing run.

    Arguments:
    ---------
    corpus_dir:   Directory scanned recursively for test inputs.
    engine:       Command of the mutation engine. "--seed <n>" is appended on invocation.
    seed_start:   First seed passed to the engine (inclusive).
    seed_end:     Last seed passed to the engine (inclusive).
    policy:       Run one task per corpus entry concurrently or one after another.
    host:         Address the target listens on and sessions connect to.
    port:         Port of the target. Use 0 to bind an ephemeral port.
    max_workers:  Maximum number of concurrently running tasks (None: unbounded).
    timeout:      Per-request deadline in seconds for mutation, connect and send
                  (None: wait forever).
    max_time:     Deadline in seconds for the whole run (None: wait forever).
    """

    corpus_dir: Path
    engine: list[str] = field(default_factory=builtin_engine)
    seed_start: int = DEFAULT_SEED_START
    seed_end: int = DEFAULT_SEED_END
    policy: Policy = Policy.SEQUENTIAL
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    max_workers: Optional[int] = None
    timeout: Optional[float] = None
    max_time: Optional[float] = None

    def __post_init__(self) -> None:
        if self.seed_start > self.seed_end:
            raise ValueError(
                f"Seed start must not exceed seed end ({self.seed_start} > {self.seed_end})",
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"Number of workers must be positive ({self.max_workers})")
        if not self.engine:
            raise ValueError("Empty engine command")

    @property
    def seeds(self) -> range:
        return range(self.seed_start, self.seed_end + 1)
