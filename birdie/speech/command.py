"""
CommandSpeechEngine: narrates through the platform's TTS command.

macOS ships `say`; most Linux desktops have `espeak-ng` or `espeak`.
The process is started and left running (fire-and-forget); stop()
terminates it.
"""

from __future__ import annotations

import asyncio
import logging
import shutil

from birdie.core.errors import NarrationError
from birdie.speech.base import SpeechEngine

logger = logging.getLogger(__name__)


class CommandSpeechEngine(SpeechEngine):
    """
    Runs a TTS executable as an asyncio subprocess.

    Usage:
        engine = CommandSpeechEngine("espeak-ng")
        await engine.speak("Hola", "es")
        await engine.stop()
    """

    def __init__(self, executable: str, voice: str | None = None) -> None:
        self._executable = executable
        self._voice = voice
        self._process: asyncio.subprocess.Process | None = None

    @property
    def name(self) -> str:
        return self._executable

    def build_command(self, text: str, lang: str) -> list[str]:
        """Command line for the configured executable."""
        if self._executable == "say":
            # `say` picks voices by name, not language code
            args = ["say"]
            if self._voice:
                args += ["-v", self._voice]
            return args + [text]
        return [self._executable, "-v", self._voice or lang, text]

    async def speak(self, text: str, lang: str) -> str:
        path = shutil.which(self._executable)
        if path is None:
            raise NarrationError(
                f"TTS command '{self._executable}' not found on PATH",
                engine=self.name,
            )

        # One utterance at a time
        await self.stop()

        command = self.build_command(text, lang)
        command[0] = path
        try:
            self._process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise NarrationError(
                f"Failed to start '{self._executable}': {e}",
                engine=self.name,
            ) from e

        logger.debug(f"Speaking via {self._executable} (pid {self._process.pid})")
        return f"pid:{self._process.pid}"

    async def stop(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
