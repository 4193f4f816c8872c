from __future__ import annotations

import asyncio
import logging
import math
from enum import Enum
from typing import Callable, Collection, Iterable

from lesson_mentor.player import Player, PlayerState
from lesson_mentor.schedule import build_schedule, next_checkpoint
from lesson_mentor.schemas import Checkpoint

logger = logging.getLogger(__name__)


class WatcherState(str, Enum):
    idle = "idle"
    watching = "watching"


class PlaybackWatcher:
    """
    Polls the player while it is playing and pauses it at each checkpoint.

    The watcher always targets the first schedule entry it has not fired yet, so
    checkpoints fire in time order and each id fires at most once per video. The
    fired set survives schedule replacement and is only reset when the video changes.
    """

    def __init__(
        self,
        *,
        on_time_update: Callable[[int], None],
        on_checkpoint_reached: Callable[[Checkpoint], None],
        interval: float = 1.0,
    ) -> None:
        self.on_time_update = on_time_update
        self.on_checkpoint_reached = on_checkpoint_reached
        self.interval = interval
        self.player: Player | None = None
        self.video_id: str | None = None
        self.resume_time = 0
        self.schedule: tuple[Checkpoint, ...] = ()
        self.triggered: set[str] = set()
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> WatcherState:
        if self._task is not None and not self._task.done():
            return WatcherState.watching
        return WatcherState.idle

    def set_video(self, video_id: str, resume_time: int = 0) -> None:
        if video_id != self.video_id:
            self.stop()
            self.triggered = set()
            self.player = None
            self.video_id = video_id
        self.resume_time = max(int(resume_time), 0)

    def set_checkpoints(self, checkpoints: Iterable[Checkpoint], completed_ids: Collection[str] = ()) -> None:
        self.schedule = build_schedule(checkpoints, completed_ids)

    def attach(self, player: Player) -> None:
        """Called once the player is ready; jumps to the saved position before playback."""
        self.player = player
        if self.resume_time > 0:
            player.seek(self.resume_time)

    def on_player_state_change(self, state: PlayerState | int) -> None:
        if state == PlayerState.playing:
            self._start()
        else:
            self.stop()

    def _start(self) -> None:
        if self.state == WatcherState.watching:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.tick()
            except Exception:
                logger.exception("Playback watcher tick failed for %s", self.video_id)

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def reset(self) -> None:
        """Forget the current video entirely (lesson closed)."""
        self.stop()
        self.player = None
        self.video_id = None
        self.resume_time = 0
        self.schedule = ()
        self.triggered = set()

    def tick(self) -> Checkpoint | None:
        player = self.player
        if player is None:
            return None

        position = math.floor(player.get_current_position())
        self.on_time_update(position)

        upcoming = next_checkpoint(self.schedule, self.triggered)
        if upcoming is None or position < upcoming.timeSeconds:
            return None

        player.pause()
        self.triggered.add(upcoming.id)
        logger.info("Checkpoint %s reached at %ss", upcoming.id, position)
        self.on_checkpoint_reached(upcoming)
        return upcoming

    def play(self) -> None:
        if self.player is not None:
            self.player.play()

    def pause(self) -> None:
        if self.player is not None:
            self.player.pause()
