"""Cooperative cancellation and progress reporting for long runs."""

import threading
from enum import Enum
from typing import Callable


ProgressCallback = Callable[[float], None]


class RunStatus(Enum):
    """Outcome of a feature finding run."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CancellationToken:
    """Flag checked by the run driver before each window.

    A window that has started always runs to completion; cancelling takes
    effect at the next window boundary.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
