"""Duplex pipe pump: feed a child's stdin while draining its stdout.

One selector, two channels. The read side is always registered while
open; the write side only while open and input remains. The loop ends
when the read side reaches end of stream or fails. Whatever input is
still unwritten at that point is dropped, since the child no longer
produces output.

Known limitation: if the child leaves a descendant holding its stdout
open, end of stream never arrives and run() blocks until that
descendant exits.
"""

import enum
import io
import os
import selectors
import signal
import threading
from contextlib import contextmanager
from dataclasses import dataclass

from bashpipe import log

CHUNK_SIZE = 1024


class ChannelState(enum.Enum):
    OPEN = "open"
    PIPE_BROKEN = "pipe-broken"
    CLOSED = "closed"


class InputSource:
    """Bytes to feed the child, consumed through a cursor.

    The cursor only moves by what was actually written, so a short write
    replays the unwritten tail of the chunk on the next attempt.
    """

    def __init__(self, data=None):
        if data is None:
            stream = io.BytesIO(b"")
        elif isinstance(data, str):
            stream = io.BytesIO(data.encode("utf-8"))
        elif isinstance(data, (bytes, bytearray, memoryview)):
            stream = io.BytesIO(bytes(data))
        elif hasattr(data, "read"):
            if _is_seekable(data):
                stream = data
            else:
                content = data.read()
                if isinstance(content, str):
                    content = content.encode("utf-8")
                stream = io.BytesIO(content)
        else:
            raise TypeError(f"unsupported input type: {type(data).__name__}")

        self._stream = stream
        self._start = stream.tell()
        self._end = stream.seek(0, io.SEEK_END)
        self.cursor = 0

    def __len__(self) -> int:
        return self._end - self._start

    @property
    def remaining(self) -> int:
        return len(self) - self.cursor

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self)

    def next_chunk(self, size: int) -> bytes:
        """Return up to *size* bytes at the cursor without advancing it."""
        self._stream.seek(self._start + self.cursor)
        chunk = self._stream.read(min(size, self.remaining))
        if isinstance(chunk, str):
            raise TypeError("input stream must be opened in binary mode")
        return chunk

    def advance(self, n: int) -> None:
        if n < 0 or n > self.remaining:
            raise ValueError(f"cannot advance by {n} with {self.remaining} bytes remaining")
        self.cursor += n


def _is_seekable(stream) -> bool:
    seekable = getattr(stream, "seekable", None)
    return bool(seekable and seekable())


class _Channel:
    def __init__(self, handle, name: str):
        self.handle = handle
        self.fd = handle if isinstance(handle, int) else handle.fileno()
        self.name = name
        self.state = ChannelState.OPEN

    def close(self) -> None:
        if self.state is ChannelState.CLOSED:
            return
        self.state = ChannelState.CLOSED
        if isinstance(self.handle, int):
            os.close(self.handle)
        else:
            self.handle.close()

    def __repr__(self):
        return f"<{self.name} fd={self.fd} {self.state.value}>"


class ReadChannel(_Channel):
    def __init__(self, handle):
        super().__init__(handle, "output")


class WriteChannel(_Channel):
    def __init__(self, handle):
        super().__init__(handle, "input")

    def mark_broken(self) -> None:
        if self.state is ChannelState.OPEN:
            self.state = ChannelState.PIPE_BROKEN


@dataclass
class DriveResult:
    output: bytes
    read_failed: bool
    bytes_written: int
    write_state: ChannelState


@contextmanager
def _sigpipe_ignored():
    """Turn SIGPIPE into EPIPE for the duration of the pump.

    Signal handlers can only be changed from the main thread; elsewhere the
    interpreter's default (ignored) disposition is relied upon.
    """
    if not hasattr(signal, "SIGPIPE") or threading.current_thread() is not threading.main_thread():
        yield
        return
    original = signal.getsignal(signal.SIGPIPE)
    if original is None or original == signal.SIG_IGN:
        yield
        return
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGPIPE, original)


class PipeDriver:
    """Pump *source* into *writer* and collect *reader* until end of stream.

    *reader* and *writer* are file objects (anything with fileno() and
    close()) or raw descriptors. The driver takes ownership of both and
    closes them before run() returns.
    """

    def __init__(self, reader, writer=None, source=None, chunk_size: int = CHUNK_SIZE, trace: bool = False):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.reader = ReadChannel(reader)
        self.writer = WriteChannel(writer) if writer is not None else None
        if self.writer is not None:
            # A write may then take less than the chunk but never blocks the loop.
            os.set_blocking(self.writer.fd, False)
        self.source = source if isinstance(source, InputSource) else InputSource(source)
        self.chunk_size = chunk_size
        self.trace = trace
        self.output = bytearray()
        self.bytes_written = 0
        self.read_failed = False
        self._selector: selectors.BaseSelector | None = None

    def _trace(self, msg: str) -> None:
        if self.trace:
            log.trace(msg)

    def run(self) -> DriveResult:
        with _sigpipe_ignored(), selectors.DefaultSelector() as selector:
            self._selector = selector
            try:
                self._register()
                self._loop()
                write_state = self.writer.state if self.writer is not None else ChannelState.CLOSED
            finally:
                self._release()
                self._selector = None

        return DriveResult(
            output=bytes(self.output),
            read_failed=self.read_failed,
            bytes_written=self.bytes_written,
            write_state=write_state,
        )

    def _register(self) -> None:
        assert self._selector is not None
        self._selector.register(self.reader.fd, selectors.EVENT_READ, self.reader)
        if self.writer is None:
            return
        if self.source.exhausted:
            self._trace("no input data, closing input to command")
            self._close(self.writer)
            return
        self._trace(f"have {len(self.source)} bytes of input data")
        self._selector.register(self.writer.fd, selectors.EVENT_WRITE, self.writer)

    def _loop(self) -> None:
        assert self._selector is not None
        while self.reader.state is ChannelState.OPEN and not self.read_failed:
            ready = {key.data for key, _ in self._selector.select()}

            # Reads first: drain output before pushing more input.
            if self.reader in ready:
                self._on_readable()
                if self.reader.state is not ChannelState.OPEN or self.read_failed:
                    break

            if self.writer is not None and self.writer in ready:
                self._on_writable()

    def _read(self) -> bytes:
        return os.read(self.reader.fd, self.chunk_size)

    def _write(self, data: bytes) -> int:
        assert self.writer is not None
        return os.write(self.writer.fd, data)

    def _on_readable(self) -> None:
        try:
            data = self._read()
        except OSError as e:
            log.warning(f"read from command failed: {e}")
            self.read_failed = True
            return

        if not data:
            self._trace("closing output from command")
            self._close(self.reader)
            return

        self._trace(f"read {len(data)} bytes from command")
        self.output += data

    def _on_writable(self) -> None:
        writer = self.writer
        assert writer is not None

        if writer.state is ChannelState.PIPE_BROKEN:
            self._trace("closing input to command as pipe is closed")
            self._close(writer)
            return

        chunk = self.source.next_chunk(self.chunk_size)
        self._trace(f"writing {len(chunk)} bytes to command")
        try:
            written = self._write(chunk)
        except BlockingIOError:
            written = 0
        except BrokenPipeError:
            self._trace("got broken pipe")
            writer.mark_broken()
            return
        except OSError as e:
            log.warning(f"write to command failed: {e}")
            writer.mark_broken()
            return

        if written < len(chunk):
            self._trace(f"wrote {written} of {len(chunk)} bytes to command")
        self.source.advance(written)
        self.bytes_written += written

        if self.source.exhausted:
            self._trace("closing input to command on end of data")
            self._close(writer)

    def _close(self, channel: _Channel) -> None:
        if channel.state is ChannelState.CLOSED:
            return
        if self._selector is not None and channel.fd in self._selector.get_map():
            self._selector.unregister(channel.fd)
        channel.close()

    def _release(self) -> None:
        """Close whatever the loop left open."""
        if self.writer is not None:
            self._close(self.writer)
        self._close(self.reader)
