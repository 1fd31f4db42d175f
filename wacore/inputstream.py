"""Non-blocking input streams fed by a background reader thread."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, List, Optional, Tuple

Callback = Callable[[], None]


class _Channel:
    """A bounded, closable hand-off queue between threads."""

    def __init__(self, capacity: int) -> None:
        self._items: Deque[Any] = deque()
        self._capacity = capacity
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: Any) -> bool:
        """Queue ``item``, waiting for room; return False if the channel is closed."""
        with self._cond:
            while len(self._items) >= self._capacity and not self._closed:
                self._cond.wait()
            if self._closed:
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def receive(self, block: bool = True) -> Any:
        """Take the next item, or None if none is available (or the channel is closed)."""
        with self._cond:
            while not self._items:
                if self._closed or not block:
                    return None
                self._cond.wait()
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


@dataclass
class BytesBuffer:
    """A reusable data buffer consumed from ``offset`` onward."""

    data: bytearray = field(default_factory=bytearray)
    offset: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)

    def read(self, n: int) -> Tuple[bytes, bool]:
        """Consume up to ``n`` bytes; also report whether any remain."""
        remaining = len(self.data) - self.offset
        if remaining == 0:
            return b"", False
        count = min(n, remaining)
        start = self.offset
        self.offset += count
        return bytes(self.data[start:self.offset]), remaining - count > 0

    def get_write_buffer(self) -> bytearray:
        """Rewind and return the underlying storage for refilling."""
        self.offset = 0
        return self.data


@dataclass
class ErrorBuffer:
    """A buffer standing for a failure of the underlying reader or writer.

    Reading from it, or asking it for storage to refill, raises the stored
    failure with a fresh traceback each time.
    """

    error: BaseException

    def read(self, n: int) -> Tuple[bytes, bool]:
        if n < 0:
            raise ValueError(f"negative read size: {n}")
        raise self.error.with_traceback(None)

    def get_write_buffer(self) -> bytearray:
        failure = self.error.with_traceback(None)
        raise failure


Buffer = "BytesBuffer | ErrorBuffer"


class BufferPool:
    """A fixed set of buffers passed between a free and a written queue."""

    def __init__(self, num_buffers: int, buffer_size: int) -> None:
        self.buffer_size = buffer_size
        self.written = _Channel(num_buffers)
        self.free = _Channel(num_buffers)
        for _ in range(num_buffers):
            self.free.send(BytesBuffer(bytearray(buffer_size)))


class InputStream(ABC):
    """A stream of bytes that can be read without blocking."""

    @abstractmethod
    def read(self, n: int) -> bytes:
        """Return up to ``n`` bytes that are available now."""

    @abstractmethod
    def blocking_read(self, n: int) -> bytes:
        """Wait for data, then return up to ``n`` bytes."""

    @abstractmethod
    def skip(self, n: int) -> int:
        """Discard up to ``n`` available bytes and return how many were skipped."""

    @abstractmethod
    def blocking_skip(self, n: int) -> int:
        """Wait for data, then discard up to ``n`` bytes."""

    @abstractmethod
    def subscribe(self, callback: Callback) -> None:
        """Call ``callback`` once data or an error is available."""


class ReaderInputStream(InputStream):
    """An input stream over a file-like object read by a background thread.

    An empty read from the underlying object marks the end of the stream,
    which is reported as :class:`EOFError`.
    """

    def __init__(
        self,
        reader: Any,
        max_read_size: int = 32768,
        buffer_size: int = 1024,
        n_buffers: int = 32,
    ) -> None:
        self._reader = reader
        self._max_read_size = max_read_size
        self._pool = BufferPool(n_buffers, buffer_size)
        self._error: Optional[BaseException] = None
        self._current: Optional[BytesBuffer | ErrorBuffer] = None
        self._subscriptions: List[Callback] = []
        self._subscriptions_lock = threading.Lock()
        self._thread = threading.Thread(target=self._fill, daemon=True)
        self._thread.start()

    def __enter__(self) -> "ReaderInputStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _fill(self) -> None:
        pool = self._pool
        try:
            while True:
                buf = pool.free.receive()
                if buf is None:
                    return
                try:
                    target = buf.get_write_buffer()
                except Exception:
                    continue
                failure: Optional[BaseException] = None
                try:
                    chunk = self._reader.read(pool.buffer_size)
                except Exception as exc:  # stored and raised to the consumer
                    failure = exc
                else:
                    if not chunk:
                        failure = EOFError("end of stream")
                if failure is not None:
                    if pool.written.send(ErrorBuffer(failure)):
                        self._notify_subscriptions()
                    return
                target[:] = chunk
                if not pool.written.send(buf):
                    return
                self._notify_subscriptions()
        finally:
            pool.written.close()

    def _release_current(self) -> None:
        self._pool.free.send(self._current)
        self._current = None

    def read(self, n: int) -> bytes:
        if self._error is not None:
            raise self._error
        remaining = min(n, self._max_read_size)
        out = bytearray()
        while remaining > 0:
            if self._current is None:
                self._current = self._pool.written.receive(block=False)
                if self._current is None:
                    return bytes(out)
            try:
                data, has_more = self._current.read(remaining)
            except Exception as exc:
                self._close_on_error(exc)
                if not out:
                    raise
                return bytes(out)
            out += data
            remaining -= len(data)
            if not has_more:
                self._release_current()
        return bytes(out)

    def blocking_read(self, n: int) -> bytes:
        if self._error is not None:
            raise self._error
        if self._current is None:
            self._current = self._pool.written.receive(block=True)
        return self.read(n)

    def skip(self, n: int) -> int:
        if self._error is not None:
            raise self._error
        remaining = n
        while remaining > 0:
            if self._current is None:
                self._current = self._pool.written.receive(block=False)
                if self._current is None:
                    return n - remaining
            try:
                data, has_more = self._current.read(remaining)
            except Exception as exc:
                self._close_on_error(exc)
                raise
            remaining -= len(data)
            if not has_more:
                self._release_current()
        return n

    def blocking_skip(self, n: int) -> int:
        if self._current is None and self._error is None:
            self._current = self._pool.written.receive(block=True)
        return self.skip(n)

    def subscribe(self, callback: Callback) -> None:
        if self._current is not None or self._error is not None:
            callback()
            return
        with self._subscriptions_lock:
            buf = self._pool.written.receive(block=False)
            if buf is None and not self._pool.written.closed:
                self._subscriptions.append(callback)
                return
            self._current = buf
        callback()

    def close(self) -> Any:
        """Stop the stream and close the underlying object if it can be closed."""
        self._close_on_error(EOFError("stream closed"))
        closer = getattr(self._reader, "close", None)
        if callable(closer):
            return closer()
        return None

    def _close_on_error(self, error: BaseException) -> None:
        if self._error is not None:
            return
        self._error = error
        with self._subscriptions_lock:
            pending, self._subscriptions = self._subscriptions, []
        for callback in pending:
            callback()
        self._pool.free.close()
        self._pool.written.close()

    def _notify_subscriptions(self) -> None:
        with self._subscriptions_lock:
            pending, self._subscriptions = self._subscriptions, []
        for callback in pending:
            callback()