"""
Mock speech engine: for testing and for running without audio.

Makes no sound. Tracks every call for test assertions.
"""

from __future__ import annotations

from birdie.core.errors import NarrationError
from birdie.speech.base import SpeechEngine


class MockSpeechEngine(SpeechEngine):
    """
    Usage in tests:
        engine = MockSpeechEngine()
        await engine.speak("Hola", "es")
        assert engine.spoken == [("Hola", "es")]

        engine.fail_next_speak("engine unavailable")
    """

    def __init__(self) -> None:
        self.spoken: list[tuple[str, str]] = []
        self.stop_count: int = 0
        self._speak_error: str | None = None
        self._stop_error: str | None = None

    @property
    def name(self) -> str:
        return "mock"

    @property
    def speak_count(self) -> int:
        return len(self.spoken)

    @property
    def last_text(self) -> str | None:
        return self.spoken[-1][0] if self.spoken else None

    def fail_next_speak(self, message: str = "mock speak failure") -> None:
        self._speak_error = message

    def fail_next_stop(self, message: str = "mock stop failure") -> None:
        self._stop_error = message

    async def speak(self, text: str, lang: str) -> str:
        if self._speak_error is not None:
            error, self._speak_error = self._speak_error, None
            raise NarrationError(error, engine=self.name)
        self.spoken.append((text, lang))
        return "ok"

    async def stop(self) -> None:
        self.stop_count += 1
        if self._stop_error is not None:
            error, self._stop_error = self._stop_error, None
            raise NarrationError(error, engine=self.name)
