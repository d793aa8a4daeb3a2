from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import pytest

from h2fuzz import common, config as cfg, main, scheduler


def test_main_fuzz(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config: Optional[cfg.Config] = None

    async def run(c: cfg.Config) -> scheduler.Stats:
        nonlocal config
        config = c
        return scheduler.Stats()

    with monkeypatch.context() as mp:
        mp.setattr(scheduler, "run", run)
        main.main(
            [
                "fuzz",
                "--corpus-dir",
                str(tmp_path),
                "--engine",
                "radamsa -n 1",
                "--seed-start",
                "5",
                "--seed-end",
                "7",
                "--concurrent",
                "-j",
                "4",
                "--port",
                "8080",
                "--timeout",
                "2.5",
            ],
        )
    assert config == cfg.Config(
        corpus_dir=tmp_path,
        engine=["radamsa", "-n", "1"],
        seed_start=5,
        seed_end=7,
        policy=cfg.Policy.CONCURRENT,
        port=8080,
        max_workers=4,
        timeout=2.5,
    )


def test_main_fuzz_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config: Optional[cfg.Config] = None

    async def run(c: cfg.Config) -> scheduler.Stats:
        nonlocal config
        config = c
        return scheduler.Stats()

    with monkeypatch.context() as mp:
        mp.setattr(sys, "argv", ["main", "fuzz", "--corpus-dir", str(tmp_path)])
        mp.setattr(scheduler, "run", run)
        main.main()
    assert config is not None
    assert config.engine == [sys.executable, "-m", "h2fuzz.mutator"]
    assert list(config.seeds) == list(range(1020, 1045))
    assert config.policy == cfg.Policy.SEQUENTIAL
    assert config.host == "127.0.0.1"
    assert config.port == 9090
    assert config.max_workers is None
    assert config.timeout is None
    assert config.max_time is None


def test_main_fuzz_fatal(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    async def run(_: cfg.Config) -> scheduler.Stats:
        raise common.TargetError("Error listening on 127.0.0.1:9090: address in use")

    with monkeypatch.context() as mp:
        mp.setattr(scheduler, "run", run)
        with pytest.raises(
            SystemExit,
            match=r"^Error: Error listening on 127\.0\.0\.1:9090: address in use$",
        ):
            main.main(["fuzz", "--corpus-dir", str(tmp_path)])


def test_main_fuzz_invalid_seeds(tmp_path: Path) -> None:
    with pytest.raises(
        SystemExit,
        match=r"^Error: Seed start must not exceed seed end \(5 > 4\)$",
    ):
        main.main(["fuzz", "--corpus-dir", str(tmp_path), "--seed-start", "5", "--seed-end", "4"])


def test_main_corpus(capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b").write_bytes(b"b")
    (tmp_path / "a").write_bytes(b"a")
    main.main(["corpus", "--corpus-dir", str(tmp_path)])
    assert capsys.readouterr().out == "a\nsub/b\n"


def test_main_corpus_missing(tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match=r"^Error: Error reading corpus directory "):
        main.main(["corpus", "--corpus-dir", str(tmp_path / "missing")])


def test_main_serve(monkeypatch: pytest.MonkeyPatch) -> None:
    address: Optional[tuple[str, int]] = None

    class Target:
        def __init__(self, host: str, port: int) -> None:
            nonlocal address
            address = (host, port)

        async def __aenter__(self) -> Target:
            raise common.TargetError("Error listening")

        async def __aexit__(self, *_: object) -> None:
            pass  # pragma: no cover

    with monkeypatch.context() as mp:
        mp.setattr(main, "Target", Target)
        with pytest.raises(SystemExit, match=r"^Error: Error listening$"):
            main.main(["serve", "--host", "::1", "--port", "1234"])
    assert address == ("::1", 1234)


def test_main_no_subcommand() -> None:
    with pytest.raises(SystemExit, match="^3$"):
        main.main([])


def test_keyboard_interrupt(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    async def run(_: cfg.Config) -> scheduler.Stats:
        raise KeyboardInterrupt

    with monkeypatch.context() as mp:
        mp.setattr(scheduler, "run", run)
        with pytest.raises(SystemExit, match=r"^\nUser cancellation\. Exiting\.\n$"):
            main.main(["fuzz", "--corpus-dir", str(tmp_path)])


def test_main_verbose_quiets_http2_stack(
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    async def run(_: cfg.Config) -> scheduler.Stats:
        logging.debug("payload")
        logging.getLogger("hpack").debug("header")
        return scheduler.Stats()

    with monkeypatch.context() as mp:
        mp.setattr(scheduler, "run", run)
        for name in ("h2", "hpack"):
            mp.setattr(logging.getLogger(name), "level", logging.NOTSET)
        with caplog.at_level(logging.DEBUG):
            main.main(["-v", "fuzz", "--corpus-dir", str(tmp_path)])
        assert [t for t in caplog.record_tuples if t[0] != "asyncio"] == [
            ("root", logging.DEBUG, "payload"),
        ]
        assert logging.getLogger("h2").getEffectiveLevel() == logging.INFO
        assert logging.getLogger("hpack").getEffectiveLevel() == logging.INFO
