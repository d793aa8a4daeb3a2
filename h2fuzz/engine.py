from __future__ import annotations

import asyncio
import contextlib
import logging
from asyncio.subprocess import DEVNULL, PIPE, Process
from typing import AsyncIterator, Optional, Sequence

from . import common


def command(engine: Sequence[str], seed: Optional[int] = None) -> list[str]:
    """Return the engine invocation for seed. No seed option is passed if seed is None."""
    return [*engine] if seed is None else [*engine, "--seed", str(seed)]


@contextlib.asynccontextmanager
async def _engine_process(args: list[str]) -> AsyncIterator[Process]:
    try:
        proc = await asyncio.create_subprocess_exec(*args, stdin=PIPE, stdout=PIPE, stderr=DEVNULL)
    except OSError as e:
        raise common.EngineSpawnError(f"Error starting mutation engine {args[0]}: {e}") from e

    try:
        yield proc
    finally:
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
        await proc.wait()


async def mutate(
    engine: Sequence[str],
    content: bytes,
    seed: Optional[int] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """
    Mutate content by piping it through the mutation engine.

    Arguments:
    ---------
    engine:  Engine command line (binary and leading arguments).
    content: Data written to the standard input of the engine.
    seed:    Seed passed to the engine.
    timeout: Seconds to wait for the engine to finish (None: wait forever).

    Returns the standard output of the engine. An engine that produces no output yields
    empty data. The exit status of the engine is ignored.
    """
    args = command(engine, seed)

    async with _engine_process(args) as proc:
        try:
            output, _ = await asyncio.wait_for(proc.communicate(content), timeout)
        except asyncio.TimeoutError as e:
            raise common.RequestTimeoutError(
                f"Mutation engine did not finish within {timeout} seconds",
            ) from e

    if not output:
        logging.debug("No output from mutation engine for seed %s", seed)
        return b""
    return output
