from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from . import common, corpus, engine, transport, util
from .config import Config, Policy
from .target import Target


class TaskState(enum.Enum):
    PENDING = "pending"
    LOADING = "loading"
    MUTATING = "mutating"
    CONNECTING = "connecting"
    SENDING = "sending"
    DONE = "done"


@dataclass
class Stats:
    requests: int = 0
    sessions: int = 0
    bytes_sent: int = 0
    empty_mutations: int = 0
    errors: dict[str, int] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)

    def count_error(self, error: common.RequestError) -> None:
        name = type(error).__name__
        self.errors[name] = self.errors.get(name, 0) + 1

    @property
    def total_errors(self) -> int:
        return sum(self.errors.values())

    def log(self) -> None:
        elapsed = time.time() - self.start_time
        logging.info(
            "DONE requests: %d, sessions: %d, sent: %d bytes, empty: %d, errors: %d%s, "
            "time: %.1fs, req/s: %d",
            self.requests,
            self.sessions,
            self.bytes_sent,
            self.empty_mutations,
            self.total_errors,
            (
                " (" + ", ".join(f"{k}: {v}" for k, v in sorted(self.errors.items())) + ")"
                if self.errors
                else ""
            ),
            elapsed,
            self.requests // elapsed if elapsed > 0 else 0,
        )


@dataclass
class RunContext:
    config: Config
    target: Target
    paths: list[str]
    stats: Stats = field(default_factory=Stats)


class FuzzTask:
    """Send every seed's mutation of one corpus entry to the target, in ascending seed order."""

    def __init__(self, context: RunContext, path: str):
        self._context = context
        self.path = path
        self.state = TaskState.PENDING
        self.seed: Optional[int] = None

    async def run(self) -> None:
        config = self._context.config
        stats = self._context.stats

        self.state = TaskState.LOADING
        entry = corpus.read(config.corpus_dir, self.path)

        for seed in config.seeds:
            self.seed = seed
            stats.requests += 1
            try:
                self.state = TaskState.MUTATING
                data = await engine.mutate(config.engine, entry.content, seed, config.timeout)
                if not data:
                    stats.empty_mutations += 1
                logging.info("Testing %s fuzzed with seed %d", self.path, seed)
                if logging.getLogger().isEnabledFor(logging.DEBUG):
                    logging.debug(util.hexdump(f"Payload ({len(data)} bytes):", data))

                self.state = TaskState.CONNECTING
                session = await transport.Session.open(
                    self._context.target.host,
                    self._context.target.port,
                    config.timeout,
                )
                stats.sessions += 1

                self.state = TaskState.SENDING
                await session.send(data, config.timeout)
            except common.RequestError as e:
                stats.count_error(e)
                logging.error("Error testing %s with seed %d: %s", self.path, seed, e)
            else:
                stats.bytes_sent += len(data)

        self.state = TaskState.DONE


class Scheduler:
    def __init__(self, context: RunContext):
        self._context = context
        self.tasks = [FuzzTask(context, path) for path in context.paths]

    async def run(self) -> None:
        if not self._context.target.listening:
            raise common.TargetError("Target not listening")

        max_time = self._context.config.max_time
        try:
            await asyncio.wait_for(self._dispatch(), max_time)
        except asyncio.TimeoutError as e:
            raise common.RunTimeoutError(
                f"Run did not finish within {max_time} seconds",
            ) from e

    async def _dispatch(self) -> None:
        if self._context.config.policy == Policy.SEQUENTIAL:
            for task in self.tasks:
                await task.run()
            return

        max_workers = self._context.config.max_workers
        semaphore = asyncio.Semaphore(max_workers) if max_workers else None

        async def limited(task: FuzzTask) -> None:
            if semaphore is None:
                await task.run()
                return
            async with semaphore:
                await task.run()

        running = [asyncio.ensure_future(limited(t)) for t in self.tasks]
        try:
            await asyncio.gather(*running)
        finally:
            for r in running:
                r.cancel()
            await asyncio.gather(*running, return_exceptions=True)


async def run(config: Config) -> Stats:
    """
    Fuzz the target with all mutations of all corpus entries.

    The target is listening before the corpus is loaded and any task runs. It is stopped
    when all tasks are done or a fatal error occurred.
    """
    async with Target(host=config.host, port=config.port) as target:
        paths = corpus.load(config.corpus_dir)
        logging.info(
            "START entries: %d, seeds: %d..%d, policy: %s",
            len(paths),
            config.seed_start,
            config.seed_end,
            config.policy.value,
        )
        context = RunContext(config=config, target=target, paths=paths)
        await Scheduler(context).run()

    context.stats.log()
    return context.stats
