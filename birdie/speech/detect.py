"""
Speech engine auto-detection: picks a TTS command for the current OS.
"""

from __future__ import annotations

import logging
import platform
import shutil

from birdie.speech.base import SpeechEngine

logger = logging.getLogger(__name__)


def detect_engine(preference: str = "auto", voice: str | None = None) -> SpeechEngine:
    """
    Return a speech engine.

    Args:
        preference: "auto", "say", "espeak", "espeak-ng" or "mock".
                    "auto" picks the best available for the current OS,
                    falling back to the silent mock engine.
    """
    if preference != "auto":
        return _create_by_name(preference, voice)

    system = platform.system().lower()
    candidates = ["say"] if system == "darwin" else ["espeak-ng", "espeak"]

    for executable in candidates:
        if shutil.which(executable):
            logger.info(f"Detected {system}: using {executable} for speech")
            from birdie.speech.command import CommandSpeechEngine

            return CommandSpeechEngine(executable, voice=voice)

    logger.warning("No TTS command found; narration will be silent")
    from birdie.speech.mock import MockSpeechEngine

    return MockSpeechEngine()


def _create_by_name(name: str, voice: str | None) -> SpeechEngine:
    name = name.lower().strip()

    if name == "mock":
        from birdie.speech.mock import MockSpeechEngine

        return MockSpeechEngine()
    if name in ("say", "espeak", "espeak-ng"):
        from birdie.speech.command import CommandSpeechEngine

        return CommandSpeechEngine(name, voice=voice)
    raise ValueError(
        f"Unknown speech engine: '{name}'. "
        f"Available: say, espeak, espeak-ng, mock"
    )
