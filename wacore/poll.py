"""Readiness objects that callers can query or wait on."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Iterable, List


class Pollable(ABC):
    """Something that becomes ready at some point."""

    @abstractmethod
    def is_ready(self) -> bool:
        """Return True if the pollable is ready, without waiting."""

    @abstractmethod
    def block(self) -> None:
        """Wait until the pollable is ready."""


class AlwaysReadyPollable(Pollable):
    """A pollable that is ready from the start."""

    def is_ready(self) -> bool:
        return True

    def block(self) -> None:
        return None


class EventPollable(Pollable):
    """A pollable that becomes ready once :meth:`fire` has been called."""

    def __init__(self, event: threading.Event | None = None) -> None:
        self._event = event if event is not None else threading.Event()

    def is_ready(self) -> bool:
        return self._event.is_set()

    def block(self) -> None:
        self._event.wait()

    def fire(self) -> None:
        """Mark the pollable ready and wake any waiters."""
        self._event.set()


def poll(pollables: Iterable[Pollable]) -> List[int]:
    """Return the positions of the pollables that are ready now."""
    return [index for index, pollable in enumerate(pollables) if pollable.is_ready()]