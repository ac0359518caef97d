"""
PlaybackController: narrates queued notifications, one at a time.

State machine:

    IDLE ──play_next──▶ PLAYING ──hold elapsed──▶ STOPPED ──play_next──▶ PLAYING
      ▲                    │                         │
      └──────── stop() ────┴───────── stop() ────────┘

Rules:
- At most one narration in flight. play_next() is a no-op while PLAYING,
  and PLAYING is entered before the first suspension point so two calls
  in quick succession cannot both get through.
- The very first notification of the session is played automatically
  (AutoPlayGate). Every later one waits for play_next()/skip().
- The engine gives no completion signal; PLAYING is held for an
  estimated duration by a background task. stop() is authoritative: it
  bumps the generation counter, so a hold that wakes up late sees a
  different generation and does nothing.
- Engine failures are recorded on last_error and emitted as
  playback:error. They never propagate and never leave us in PLAYING.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from birdie.core.bus import EventBus
from birdie.core.config import PlaybackConfig
from birdie.core.errors import EmptyQueueError
from birdie.core.events import Event, EventType
from birdie.notifications.base import Notification
from birdie.notifications.store import NotificationStore
from birdie.playback.narration import (
    DurationEstimator,
    build_narration_text,
    make_estimator,
)
from birdie.speech.base import SpeechEngine

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    STOPPED = "stopped"


class AutoPlayGate:
    """One-shot token: open until the first notification is auto-played."""

    def __init__(self) -> None:
        self._open = True

    @property
    def is_open(self) -> bool:
        return self._open

    def consume(self) -> bool:
        """Close the gate. Returns True only for the call that closed it."""
        if not self._open:
            return False
        self._open = False
        return True


class PlaybackController:
    """
    Owns the queue, the current item and the playback state.

    Usage:
        controller = PlaybackController(engine, bus=kernel.bus)
        await controller.enqueue(notification)   # first one auto-plays
        await controller.play_next()
        await controller.skip()
        await controller.stop()
    """

    def __init__(
        self,
        engine: SpeechEngine,
        bus: EventBus | None = None,
        config: PlaybackConfig | None = None,
        estimator: DurationEstimator | None = None,
        store: NotificationStore | None = None,
    ) -> None:
        self._engine = engine
        self._bus = bus
        self._config = config or PlaybackConfig()
        self._estimate = estimator or make_estimator(self._config)
        self._store = store or NotificationStore()
        self._gate = AutoPlayGate()

        self._state = PlaybackState.IDLE
        self._current: Notification | None = None
        self._generation = 0
        # Generation of the latest utterance handed to the engine
        self._speaking_generation = 0
        self._hold_task: asyncio.Task | None = None
        self.last_error: str | None = None

    # ━━━ Read-only views ━━━

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def current(self) -> Notification | None:
        return self._current

    @property
    def queue(self) -> tuple[Notification, ...]:
        return self._store.peek_all()

    @property
    def auto_play_pending(self) -> bool:
        return self._gate.is_open

    # ━━━ Controls ━━━

    async def enqueue(self, notification: Notification) -> None:
        """
        Add a notification to the tail of the queue.

        The first notification of the session starts playing right away if
        nothing else is; after that the gate is closed for good.
        """
        size = self._store.enqueue(notification)
        await self._emit(
            EventType.NOTIFICATION_QUEUED,
            {"notification": notification.to_dict(), "queue_size": size},
        )

        if self._gate.is_open and not self.is_playing:
            self._gate.consume()
            logger.info("First notification of the session, playing automatically")
            await self.play_next()

    async def play_next(self) -> bool:
        """
        Narrate the head of the queue.

        Returns True if a narration was started. Returns False without side
        effects when something is already playing or the queue is empty.
        """
        if self.is_playing:
            logger.debug("play_next ignored: already playing")
            return False

        try:
            notification = self._take_next()
        except EmptyQueueError as e:
            logger.debug(e.message)
            return False

        self._cancel_hold()
        self._generation += 1
        generation = self._generation
        self._current = notification
        self._state = PlaybackState.PLAYING
        self.last_error = None

        text = build_narration_text(notification, self._config.template)
        await self._emit(
            EventType.PLAYBACK_STARTED,
            {"notification": notification.to_dict(), "text": text},
        )

        self._speaking_generation = generation
        try:
            result = await self._engine.speak(text, self._config.lang)
        except Exception as e:
            if generation == self._generation:
                await self._fail(f"Narration failed: {e}")
            return False

        if generation != self._generation:
            # stop() ran while speak() was outstanding. Only silence the
            # engine if no newer utterance has started since.
            if self._speaking_generation == generation:
                await self._silence()
            return False

        duration = self._estimate(text)
        logger.debug(
            f"Speaking ({self._engine.name}: {result}); holding {duration:.1f}s"
        )
        self._hold_task = asyncio.create_task(
            self._hold(generation, duration), name="playback-hold"
        )
        return True

    async def stop(self) -> None:
        """
        Cancel narration, clear the current item, go IDLE.

        Always calls through to the engine. Safe to call repeatedly.
        """
        self._generation += 1
        self._cancel_hold()
        self._state = PlaybackState.IDLE
        self._current = None

        try:
            await self._engine.stop()
        except Exception as e:
            self.last_error = f"Failed to stop narration: {e}"
            logger.warning(self.last_error)
            await self._emit(EventType.PLAYBACK_ERROR, {"error": self.last_error})

        await self._emit(EventType.PLAYBACK_STOPPED, {"queue_size": len(self._store)})

    async def skip(self) -> bool:
        """Drop the current item and play the next one, if any."""
        await self.stop()
        if self._store.is_empty:
            await self._emit(EventType.PLAYBACK_IDLE, {})
            return False
        return await self.play_next()

    async def wait_until_finished(self) -> None:
        """Wait for the current narration hold (if any) to end."""
        task = self._hold_task
        if task is None or task.done():
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    async def close(self) -> None:
        """Stop playback and drop anything still queued."""
        await self.stop()
        self._store.clear()

    # ━━━ Internals ━━━

    def _take_next(self) -> Notification:
        notification = self._store.pop_head()
        if notification is None:
            raise EmptyQueueError("play_next ignored: queue is empty")
        return notification

    async def _hold(self, generation: int, duration: float) -> None:
        await asyncio.sleep(duration)
        if generation != self._generation or self._state is not PlaybackState.PLAYING:
            return
        self._state = PlaybackState.STOPPED
        logger.debug(f"Narration finished; {len(self._store)} left in queue")
        await self._emit(
            EventType.PLAYBACK_FINISHED,
            {
                "notification": self._current.to_dict() if self._current else None,
                "queue_size": len(self._store),
            },
        )

    def _cancel_hold(self) -> None:
        task, self._hold_task = self._hold_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _fail(self, message: str) -> None:
        self.last_error = message
        self._state = PlaybackState.IDLE
        self._current = None
        logger.error(message)
        await self._emit(EventType.PLAYBACK_ERROR, {"error": message})

    async def _silence(self) -> None:
        try:
            await self._engine.stop()
        except Exception as e:
            logger.warning(f"Failed to silence superseded narration: {e}")

    async def _emit(self, event_type: str, data: dict) -> None:
        if self._bus is None:
            return
        await self._bus.emit(Event(type=event_type, data=data, source="playback"))
