"""
SpeechEngine: the text-to-speech capability Birdie narrates through.

Engines are fire-and-forget: speak() returns once the utterance has been
handed off, not when it finishes. There is no completion signal, which is
why PlaybackController estimates narration length itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SpeechEngine(ABC):
    """
    Abstract TTS engine.

    speak() and stop() raise NarrationError when the engine is unavailable
    or rejects the call.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier, e.g. 'say', 'espeak', 'mock'."""
        ...

    @abstractmethod
    async def speak(self, text: str, lang: str) -> str:
        """
        Start speaking text in the given language.

        Returns an opaque engine-specific result string.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Cancel any utterance in progress. Safe to call when silent."""
        ...

    async def close(self) -> None:
        """Release engine resources."""
        await self.stop()
