"""
Re-entry guard for async operations.

One flag per operation. A second invocation while the first is pending is
refused, not queued. ``rearm`` frees a flag whose holder will never settle
(e.g. a signature request dismissed in the wallet UI); the stale holder's
eventual release is then ignored.
"""

from contextlib import contextmanager
from typing import Iterator

from ..errors import OperationInProgress


class BusyFlag:

    def __init__(self, name: str):
        self.name = name
        self._active = False
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._active

    def acquire(self) -> int:
        if self._active:
            raise OperationInProgress(f"{self.name} is already in progress")
        self._active = True
        self._generation += 1
        return self._generation

    def release(self, token: int) -> None:
        if token == self._generation:
            self._active = False

    def rearm(self) -> None:
        self._generation += 1
        self._active = False

    @contextmanager
    def hold(self) -> Iterator[int]:
        token = self.acquire()
        try:
            yield token
        finally:
            self.release(token)
