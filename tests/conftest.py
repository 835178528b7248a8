"""Shared test fixtures."""

import os

import pytest


def filled_pipe(data: bytes) -> int:
    """Return the read end of a pipe holding *data*, write end already closed."""
    r, w = os.pipe()
    if data:
        os.write(w, data)
    os.close(w)
    return r


def drain(fd: int) -> bytes:
    """Read *fd* to end of stream and close it."""
    chunks = []
    while True:
        b = os.read(fd, 4096)
        if not b:
            break
        chunks.append(b)
    os.close(fd)
    return b"".join(chunks)


class FakeChild:
    """Pipe-backed stand-in for process.Child with a canned exit code."""

    def __init__(self, output: bytes, returncode: int, with_input: bool):
        self.stdout = os.fdopen(filled_pipe(output), "rb", buffering=0)
        self.stdin = None
        self._input_fd = None
        if with_input:
            r, w = os.pipe()
            self.stdin = os.fdopen(w, "wb", buffering=0)
            self._input_fd = r
        self.returncode = returncode
        self.waited = False

    def wait(self) -> int:
        self.waited = True
        if self._input_fd is not None:
            os.close(self._input_fd)
            self._input_fd = None
        return self.returncode


@pytest.fixture
def mock_process(monkeypatch):
    """Mock process.spawn; queue (output, returncode) pairs in `responses`."""
    from bashpipe import process

    calls = []
    responses = []
    children = []

    def fake_spawn(command, interpreter=("/bin/bash", "-c"), env=None, with_input=True):
        calls.append(("spawn", command, tuple(interpreter), dict(env or {}), with_input))
        output, returncode = responses.pop(0) if responses else (b"", 0)
        child = FakeChild(output, returncode, with_input)
        children.append(child)
        return child

    monkeypatch.setattr(process, "spawn", fake_spawn)

    return type("MockProcess", (), {"calls": calls, "responses": responses, "children": children})()
