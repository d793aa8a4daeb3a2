from __future__ import annotations

import argparse
import asyncio
import logging
import shlex
import sys
from pathlib import Path
from typing import Optional

from h2fuzz import common, config as cfg, corpus, scheduler
from h2fuzz.target import Target


def fuzz(args: argparse.Namespace) -> None:
    c = cfg.Config(
        corpus_dir=args.corpus_dir,
        engine=shlex.split(args.engine) if args.engine else cfg.builtin_engine(),
        seed_start=args.seed_start,
        seed_end=args.seed_end,
        policy=cfg.Policy.CONCURRENT if args.concurrent else cfg.Policy.SEQUENTIAL,
        host=args.host,
        port=args.port,
        max_workers=args.max_workers,
        timeout=args.timeout,
        max_time=args.max_time,
    )
    asyncio.run(scheduler.run(c))


def show_corpus(args: argparse.Namespace) -> None:
    for path in corpus.load(args.corpus_dir):
        print(path)  # noqa: T201


def serve(args: argparse.Namespace) -> None:
    async def run() -> None:
        async with Target(host=args.host, port=args.port):
            await asyncio.Event().wait()

    asyncio.run(run())


def main(argv: Optional[list[str]] = None) -> None:  # noqa: PLR0915
    parser = argparse.ArgumentParser(description="Mutation-based protocol fuzzer for HTTP/2")

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug messages including a hexdump of every payload.",
    )

    subparsers = parser.add_subparsers(dest="subcommands")

    parser_fuzz = subparsers.add_parser(
        "fuzz",
        help="Start target and send mutated corpus entries to it.",
    )
    parser_fuzz.set_defaults(func=fuzz)

    parser_fuzz.add_argument(
        "--corpus-dir",
        type=Path,
        required=True,
        help="Directory scanned recursively for test inputs.",
    )
    parser_fuzz.add_argument(
        "--engine",
        type=str,
        help="Mutation engine command, invoked with '--seed <n>' (default: built-in engine).",
    )
    parser_fuzz.add_argument(
        "--seed-start",
        type=int,
        default=cfg.DEFAULT_SEED_START,
        help="First seed passed to the engine (default: %(default)s).",
    )
    parser_fuzz.add_argument(
        "--seed-end",
        type=int,
        default=cfg.DEFAULT_SEED_END,
        help="Last seed passed to the engine, inclusive (default: %(default)s).",
    )
    parser_fuzz.add_argument(
        "--concurrent",
        action="store_true",
        help="Fuzz all corpus entries concurrently. Hangs cannot be attributed to an input.",
    )
    parser_fuzz.add_argument(
        "-j",
        "--max-workers",
        type=int,
        help="Maximum number of corpus entries fuzzed concurrently (default: unbounded).",
    )
    parser_fuzz.add_argument(
        "--timeout",
        type=float,
        help="Seconds after which a single request is considered hanging (default: none).",
    )
    parser_fuzz.add_argument(
        "--max-time",
        type=float,
        help="Maximum number of seconds to run the fuzzer (default: none).",
    )

    parser_corpus = subparsers.add_parser(
        "corpus",
        help="Print the corpus entries in the order they are fuzzed and exit.",
    )
    parser_corpus.set_defaults(func=show_corpus)
    parser_corpus.add_argument(
        "--corpus-dir",
        type=Path,
        required=True,
        help="Directory scanned recursively for test inputs.",
    )

    parser_serve = subparsers.add_parser(
        "serve",
        help="Run the target only, until interrupted.",
    )
    parser_serve.set_defaults(func=serve)

    for p in (parser_fuzz, parser_serve):
        p.add_argument(
            "--host",
            type=str,
            default="127.0.0.1",
            help="Address the target listens on (default: %(default)s).",
        )
        p.add_argument(
            "--port",
            type=int,
            default=cfg.DEFAULT_PORT,
            help="Port the target listens on (default: %(default)s).",
        )

    args = parser.parse_args(argv)

    if not args.subcommands:
        parser.exit(3)

    logging.basicConfig(
        format="[%(asctime)s] %(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    # Per-frame debug output of the HTTP/2 stack would bury the payload dumps
    for name in ("h2", "hpack"):
        logging.getLogger(name).setLevel(logging.INFO)

    try:
        args.func(args)
    except (
        common.CorpusError,
        common.EngineSpawnError,
        common.TargetError,
        common.RunTimeoutError,
        ValueError,
    ) as e:
        sys.exit(f"Error: {e}")
    except KeyboardInterrupt:
        sys.exit("\nUser cancellation. Exiting.\n")
