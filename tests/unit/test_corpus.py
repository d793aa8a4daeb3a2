from __future__ import annotations

import os
from pathlib import Path

import pytest

from h2fuzz import common, corpus


@pytest.fixture(name="corpus_dir")
def fixture_corpus_dir(tmp_path: Path) -> Path:
    root = tmp_path / "corpus"
    (root / "sub" / "deeper").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "b.bin").write_bytes(b"\x00\x01")
    (root / "a.bin").write_bytes(b"")
    (root / "sub" / "c").write_bytes(b"deadbeef")
    (root / "sub" / "deeper" / "d.txt").write_bytes(b"PRI * HTTP/2.0")
    return root


def test_load(corpus_dir: Path) -> None:
    assert corpus.load(corpus_dir) == ["a.bin", "b.bin", "sub/c", "sub/deeper/d.txt"]


def test_load_idempotent(corpus_dir: Path) -> None:
    assert corpus.load(corpus_dir) == corpus.load(corpus_dir)


def test_load_empty(tmp_path: Path) -> None:
    assert corpus.load(tmp_path) == []


def test_load_missing(tmp_path: Path) -> None:
    with pytest.raises(common.CorpusError, match=r"^Error reading corpus directory .*/missing: "):
        corpus.load(tmp_path / "missing")


def test_load_file(corpus_dir: Path) -> None:
    with pytest.raises(common.CorpusError, match=r"^Error reading corpus directory .*/b.bin: "):
        corpus.load(corpus_dir / "b.bin")


@pytest.mark.skipif(os.geteuid() == 0, reason="permissions are not enforced for root")
def test_load_unreadable(corpus_dir: Path) -> None:
    corpus_dir.chmod(0)
    try:
        with pytest.raises(common.CorpusError, match=r"Permission denied"):
            corpus.load(corpus_dir)
    finally:
        corpus_dir.chmod(0o755)


def test_corpus_error_is_os_error(tmp_path: Path) -> None:
    with pytest.raises(OSError):  # noqa: PT011
        corpus.load(tmp_path / "missing")


def test_read(corpus_dir: Path) -> None:
    assert corpus.read(corpus_dir, "sub/c") == corpus.Entry(path="sub/c", content=b"deadbeef")
    assert corpus.read(corpus_dir, "a.bin").content == b""


def test_read_missing(corpus_dir: Path) -> None:
    with pytest.raises(common.CorpusError, match=r"^Error reading corpus entry missing: "):
        corpus.read(corpus_dir, "missing")
