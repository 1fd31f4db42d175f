"""Non-blocking output streams drained by a background writer thread."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from .inputstream import BufferPool, BytesBuffer, ErrorBuffer, InputStream

Callback = Callable[[], None]

MAX_WRITE_SIZE = 4 * 1024


class OutputStream(ABC):
    """A stream of bytes that accepts writes without blocking."""

    @abstractmethod
    def check_write(self) -> int:
        """Return how many bytes may be written now (0 if none)."""

    @abstractmethod
    def write(self, contents: bytes) -> None:
        """Write bytes permitted by a preceding :meth:`check_write`."""

    @abstractmethod
    def blocking_write_and_flush(self, contents: bytes) -> None:
        """Write bytes and wait until they have been passed on."""

    @abstractmethod
    def flush(self) -> None:
        """Request a flush without waiting."""

    @abstractmethod
    def blocking_flush(self) -> None:
        """Wait until pending writes have been passed on."""

    @abstractmethod
    def subscribe(self, callback: Callback) -> None:
        """Call ``callback`` once the stream can accept a write or has failed."""

    @abstractmethod
    def write_zeroes(self, n: int) -> None:
        """Write ``n`` zero bytes."""

    @abstractmethod
    def blocking_write_zeroes_and_flush(self, n: int) -> None:
        """Write ``n`` zero bytes and wait until they have been passed on."""

    @abstractmethod
    def splice(self, src: InputStream, n: int) -> int:
        """Move up to ``n`` available bytes from ``src``; return the count moved."""

    @abstractmethod
    def blocking_splice(self, src: InputStream, n: int) -> int:
        """Wait for data in ``src`` and move up to ``n`` bytes of it."""


class WriterOutputStream(OutputStream):
    """An output stream over a file-like object written by a background thread."""

    def __init__(self, writer: Any) -> None:
        self._writer = writer
        self._pool = BufferPool(1, MAX_WRITE_SIZE)
        self._error: Optional[BaseException] = None
        self._allocated: Optional[BytesBuffer | ErrorBuffer] = None
        self._subscriptions: List[Callback] = []
        self._subscriptions_lock = threading.RLock()
        self._done = threading.Event()
        self._thread = threading.Thread(target=self._drain, daemon=True)
        self._thread.start()

    def __enter__(self) -> "WriterOutputStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _drain(self) -> None:
        pool = self._pool
        try:
            while True:
                buf = pool.written.receive()
                if buf is None or self._done.is_set():
                    return
                data, _ = buf.read(MAX_WRITE_SIZE)
                try:
                    self._writer.write(data)
                except Exception as exc:  # handed to the caller's thread
                    if not self._done.is_set() and pool.free.send(ErrorBuffer(exc)):
                        self._notify_subscribers()
                    return
                if self._done.is_set() or not pool.free.send(buf):
                    return
                self._notify_subscribers()
        finally:
            pool.free.close()

    def _raise_closed(self) -> None:
        raise self._error if self._error is not None else EOFError("stream closed")

    def _get_write_buffer(self, blocking: bool) -> Optional[bytearray]:
        """Hold the write buffer; None means none is free and ``blocking`` is off."""
        if self._error is not None:
            raise self._error
        if self._allocated is None:
            buf = self._pool.free.receive(block=blocking)
            if buf is None:
                if blocking:
                    self._raise_closed()
                return None
            self._allocated = buf
        target = self._allocated.get_write_buffer()
        if target is None:
            try:
                self._allocated.read(0)
            except Exception as exc:
                self.close_on_error(exc)
            self._raise_closed()
        return target

    def _submit(self, contents: bytes) -> None:
        target = self._allocated.get_write_buffer()
        target[:] = contents
        buf, self._allocated = self._allocated, None
        if not self._pool.written.send(buf):
            self._raise_closed()

    def check_write(self) -> int:
        if self._error is not None:
            raise self._error
        if self._get_write_buffer(False) is None:
            return 0
        return self._pool.buffer_size

    def write(self, contents: bytes) -> None:
        if self._error is not None:
            raise self._error
        if self._allocated is None:
            raise RuntimeError("no allocated buffer")
        if len(contents) > self._pool.buffer_size:
            raise ValueError("write exceeds allocated buffer size")
        self._submit(contents)

    def blocking_write_and_flush(self, contents: bytes) -> None:
        if len(contents) > MAX_WRITE_SIZE:
            raise ValueError("write exceeds max size")
        self._get_write_buffer(True)
        self._submit(contents)
        self._get_write_buffer(True)

    def flush(self) -> None:
        # Writes already proceed in the background, so there is nothing to start.
        if self._error is not None:
            raise self._error

    def blocking_flush(self) -> None:
        if self._error is not None:
            raise self._error
        self._get_write_buffer(True)

    def subscribe(self, callback: Callback) -> None:
        if self._error is not None:
            callback()
            return
        with self._subscriptions_lock:
            try:
                ready = self._get_write_buffer(False) is not None
            except Exception:
                ready = True
            if not ready:
                self._subscriptions.append(callback)
                return
        callback()

    def write_zeroes(self, n: int) -> None:
        if n > MAX_WRITE_SIZE:
            raise ValueError("write exceeds max size")
        self.write(bytes(n))

    def blocking_write_zeroes_and_flush(self, n: int) -> None:
        if n > MAX_WRITE_SIZE:
            raise ValueError("write exceeds max size")
        self.blocking_write_and_flush(bytes(n))

    def splice(self, src: InputStream, n: int) -> int:
        n = min(n, self.check_write())
        data = src.read(n)
        self.write(data)
        return len(data)

    def blocking_splice(self, src: InputStream, n: int) -> int:
        data = src.blocking_read(min(n, MAX_WRITE_SIZE))
        self.blocking_write_and_flush(data)
        return len(data)

    def close(self) -> Any:
        """Stop the stream and close the underlying object if it can be closed."""
        self.close_on_error(EOFError("stream closed"))
        closer = getattr(self._writer, "close", None)
        if callable(closer):
            return closer()
        return None

    def close_on_error(self, error: BaseException) -> None:
        """Put the stream into a failed state; later operations raise ``error``."""
        if self._error is not None:
            return
        self._error = error
        self._notify_subscribers()
        self._done.set()
        self._pool.written.close()

    def _notify_subscribers(self) -> None:
        with self._subscriptions_lock:
            pending, self._subscriptions = self._subscriptions, []
        for callback in pending:
            callback()