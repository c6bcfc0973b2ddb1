"""Fixed-delay pacing between remote calls."""

import time
from typing import Callable, Protocol


class Pacer(Protocol):
    def wait(self) -> None:
        """Block until the next remote call may start."""


class FixedDelay:
    """Sleep a constant interval on every wait(). A zero delay never sleeps."""

    def __init__(self, seconds: float, sleep: Callable[[float], None] = time.sleep):
        self.seconds = max(0.0, seconds)
        self._sleep = sleep
        self.waits = 0

    def wait(self) -> None:
        self.waits += 1
        if self.seconds > 0:
            self._sleep(self.seconds)
