import sys
from pathlib import Path
import importlib
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture()
def m():
    """Lazily import the main module for tests to avoid module-level import."""
    return importlib.import_module("main")


@pytest.fixture()
def no_progress(monkeypatch, m):
    """Suppress progress rendering in main module during tests."""
    calls = []

    def _stub(line: str):
        calls.append(line)

    monkeypatch.setattr(m, "_print_progress", _stub)
    return calls


@pytest.fixture()
def progress_recorder():
    """Provide a reusable progress callback and its call log."""
    calls = []

    def cb(done, total):
        calls.append((done, total))

    return cb, calls


SAMPLES = [
    b"",
    b"a",
    b"a" * 1000,
    b"aaabbc",
    b"ab",
    b"The quick brown fox jumps over the lazy dog. " * 5,
    bytes(range(256)),
    bytes(range(256)) * 3 + b"\x00" * 500,
    b"\x00\xff" * 17 + b"\x7f",
]


@pytest.fixture(params=SAMPLES, ids=lambda s: f"len{len(s)}")
def sample(request):
    """Representative inputs: empty, single symbol, skewed and uniform."""
    return request.param


@pytest.fixture()
def text_file(tmp_path: Path):
    """A small text file on disk."""
    path = tmp_path / "notes.txt"
    path.write_bytes(b"she sells sea shells by the sea shore\n" * 20)
    return path
