from __future__ import annotations

from enum import IntEnum
from typing import Protocol


class PlayerState(IntEnum):
    """Player state codes as reported by the YouTube IFrame API."""

    unstarted = -1
    ended = 0
    playing = 1
    paused = 2
    buffering = 3
    cued = 5


class Player(Protocol):
    """The handles a video player exposes to the lesson engine."""

    def get_current_position(self) -> float: ...

    def seek(self, seconds: float) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...
