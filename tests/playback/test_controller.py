"""Tests for birdie/playback/controller.py."""
from __future__ import annotations

import asyncio

import pytest

from birdie.core.events import EventType
from birdie.notifications.store import NotificationStore
from birdie.playback.controller import AutoPlayGate, PlaybackController, PlaybackState
from birdie.speech.mock import MockSpeechEngine

from conftest import HOLD, make_notification


class BlockingEngine(MockSpeechEngine):
    """speak() waits until the test releases it."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def speak(self, text: str, lang: str) -> str:
        self.entered.set()
        await self.release.wait()
        return await super().speak(text, lang)


class FirstBlockingEngine(BlockingEngine):
    """Only the first speak() waits; later ones return at once."""

    async def speak(self, text: str, lang: str) -> str:
        if self.entered.is_set():
            return await MockSpeechEngine.speak(self, text, lang)
        return await super().speak(text, lang)


# ── AutoPlayGate ─────────────────────────────────────────────────────────────

def test_gate_is_one_shot():
    gate = AutoPlayGate()
    assert gate.is_open is True
    assert gate.consume() is True
    assert gate.is_open is False
    assert gate.consume() is False
    assert gate.is_open is False


# ── Auto-play-first ──────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestAutoPlay:
    async def test_first_notification_plays_immediately(self, controller, engine):
        a = make_notification()
        await controller.enqueue(a)

        assert controller.current is a
        assert controller.state is PlaybackState.PLAYING
        assert controller.queue == ()
        assert controller.auto_play_pending is False
        assert engine.speak_count == 1

    async def test_later_notifications_queue_behind_current(self, controller, engine):
        a = make_notification(message="uno")
        b = make_notification(message="dos")
        c = make_notification(message="tres")
        await controller.enqueue(a)
        await controller.enqueue(b)
        await controller.enqueue(c)

        assert controller.current is a
        assert controller.queue == (b, c)
        assert engine.speak_count == 1

    async def test_gate_never_reopens(self, controller, engine):
        await controller.enqueue(make_notification(message="uno"))
        await controller.stop()

        b = make_notification(message="dos")
        await controller.enqueue(b)

        assert controller.state is PlaybackState.IDLE
        assert controller.current is None
        assert controller.queue == (b,)
        assert engine.speak_count == 1


# ── play_next ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestPlayNext:
    async def test_second_call_while_playing_is_ignored(self, controller, engine):
        await controller.enqueue(make_notification(message="uno"))
        await controller.enqueue(make_notification(message="dos"))

        assert await controller.play_next() is False
        assert engine.speak_count == 1
        assert len(controller.queue) == 1

    async def test_concurrent_calls_start_one_narration(self, engine):
        store = NotificationStore()
        a, b = make_notification(message="uno"), make_notification(message="dos")
        store.enqueue(a)
        store.enqueue(b)
        controller = PlaybackController(engine, store=store, estimator=lambda t: HOLD)

        results = await asyncio.gather(controller.play_next(), controller.play_next())

        assert sorted(results) == [False, True]
        assert engine.speak_count == 1
        assert controller.current is a
        assert controller.queue == (b,)
        await controller.stop()

    async def test_empty_queue_is_a_no_op(self, controller, engine):
        assert await controller.play_next() is False
        assert controller.state is PlaybackState.IDLE
        assert engine.speak_count == 0

    async def test_plays_next_after_previous_finished(self, controller, engine):
        a = make_notification(message="uno")
        await controller.enqueue(a)
        await controller.wait_until_finished()
        assert controller.state is PlaybackState.STOPPED

        b = make_notification(message="dos")
        await controller.enqueue(b)
        assert controller.current is a  # no auto-play after the first

        assert await controller.play_next() is True
        assert controller.current is b
        assert controller.state is PlaybackState.PLAYING
        assert engine.speak_count == 2


# ── Narration hold ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestHold:
    async def test_whatsapp_scenario(self, controller, engine, recorder):
        n = make_notification(app_name="WhatsApp", sender="Ana", message="Hola")
        await controller.enqueue(n)
        assert controller.is_playing is True
        assert controller.current is n

        await controller.wait_until_finished()

        assert controller.is_playing is False
        assert controller.state is PlaybackState.STOPPED
        assert controller.current is n
        assert controller.queue == ()
        assert engine.spoken == [("Nueva notificación de WhatsApp, de Ana: Hola", "es")]
        assert EventType.PLAYBACK_STARTED in recorder.types()
        assert EventType.PLAYBACK_FINISHED in recorder.types()

    async def test_stop_beats_pending_hold(self, controller, recorder):
        await controller.enqueue(make_notification())
        await controller.stop()

        await asyncio.sleep(HOLD * 3)

        assert controller.state is PlaybackState.IDLE
        assert controller.current is None
        assert recorder.of(EventType.PLAYBACK_FINISHED) == []

    async def test_estimator_receives_narration_text(self, engine):
        seen: list[str] = []

        def estimate(text: str) -> float:
            seen.append(text)
            return HOLD

        controller = PlaybackController(engine, estimator=estimate)
        await controller.enqueue(make_notification(app_name="Slack", sender="Bo", message="hey"))
        await controller.wait_until_finished()

        assert seen == ["Nueva notificación de Slack, de Bo: hey"]


# ── stop / skip ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestStopAndSkip:
    async def test_stop_is_idempotent(self, controller, engine):
        for _ in range(3):
            await controller.stop()
            assert controller.state is PlaybackState.IDLE
            assert controller.current is None
        assert engine.stop_count == 3

    async def test_stop_clears_current(self, controller, engine):
        await controller.enqueue(make_notification())
        await controller.stop()

        assert controller.state is PlaybackState.IDLE
        assert controller.current is None
        assert engine.stop_count == 1

    async def test_skip_discards_current_and_plays_next(self, controller, engine):
        a = make_notification(message="uno")
        b = make_notification(message="dos")
        await controller.enqueue(a)
        await controller.enqueue(b)

        assert await controller.skip() is True

        assert controller.current is b
        assert controller.state is PlaybackState.PLAYING
        assert controller.queue == ()
        assert engine.speak_count == 2
        assert a not in controller.queue

    async def test_skip_on_last_item_goes_idle(self, controller, recorder):
        await controller.enqueue(make_notification())

        assert await controller.skip() is False

        assert controller.state is PlaybackState.IDLE
        assert controller.current is None
        assert EventType.PLAYBACK_IDLE in recorder.types()

    async def test_stop_while_speak_outstanding(self, bus):
        engine = BlockingEngine()
        controller = PlaybackController(engine, bus=bus, estimator=lambda t: HOLD)
        controller._store.enqueue(make_notification())

        task = asyncio.create_task(controller.play_next())
        await engine.entered.wait()
        assert controller.is_playing is True

        await controller.stop()
        engine.release.set()

        assert await task is False
        assert controller.state is PlaybackState.IDLE
        assert controller.current is None
        # stop() itself plus silencing the late utterance
        assert engine.stop_count == 2

    async def test_late_speak_does_not_silence_skipped_to_item(self, bus):
        engine = FirstBlockingEngine()
        controller = PlaybackController(engine, bus=bus, estimator=lambda t: HOLD)
        a = make_notification(message="uno")
        b = make_notification(message="dos")
        controller._store.enqueue(a)
        controller._store.enqueue(b)

        first = asyncio.create_task(controller.play_next())
        await engine.entered.wait()

        assert await controller.skip() is True
        assert controller.current is b
        stops_after_b_started = engine.stop_count

        engine.release.set()
        assert await first is False

        assert controller.state is PlaybackState.PLAYING
        assert controller.current is b
        assert engine.stop_count == stops_after_b_started
        assert any(text.endswith("dos") for text, _ in engine.spoken)


# ── Failures ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestFailures:
    async def test_speak_failure_leaves_idle(self, controller, engine, recorder):
        engine.fail_next_speak("engine unavailable")

        await controller.enqueue(make_notification())

        assert controller.state is PlaybackState.IDLE
        assert controller.current is None
        assert "engine unavailable" in controller.last_error
        errors = recorder.of(EventType.PLAYBACK_ERROR)
        assert len(errors) == 1
        assert "engine unavailable" in errors[0].data["error"]

    async def test_controls_still_work_after_failure(self, controller, engine):
        engine.fail_next_speak()
        await controller.enqueue(make_notification(message="uno"))

        b = make_notification(message="dos")
        await controller.enqueue(b)
        assert await controller.play_next() is True
        assert controller.current is b
        assert controller.last_error is None

    async def test_stop_failure_is_recorded_not_raised(self, controller, engine):
        await controller.enqueue(make_notification())
        engine.fail_next_stop("device busy")

        await controller.stop()

        assert controller.state is PlaybackState.IDLE
        assert "device busy" in controller.last_error
