"""
Narration text and duration estimation.

Speech engines never tell us when they finish talking, so the controller
holds the "playing" state for an estimated duration instead. The estimate
is a plain callable so a real completion signal can replace it later
without touching the state machine.

Default heuristic (a product guess, not a measurement):

    duration = max(words * ms_per_word + response_allowance_ms, min_duration_ms)
"""

from __future__ import annotations

from typing import Callable

from birdie.core.config import PlaybackConfig
from birdie.notifications.base import Notification

# text -> seconds
DurationEstimator = Callable[[str], float]


def build_narration_text(notification: Notification, template: str) -> str:
    """
    Render the sentence spoken for a notification.

    The default Spanish template uses commas rather than periods between
    parts; some engines cut off at the first full stop.
    """
    return template.format(
        app_name=notification.app_name,
        sender=notification.sender,
        message=notification.message,
    )


def count_words(text: str) -> int:
    return len(text.split())


def estimate_duration_ms(
    text: str,
    ms_per_word: int = 250,
    response_allowance_ms: int = 5000,
    min_duration_ms: int = 7000,
) -> int:
    """Estimated milliseconds to speak text plus time for the user to react."""
    speech_ms = count_words(text) * ms_per_word
    return max(speech_ms + response_allowance_ms, min_duration_ms)


def make_estimator(config: PlaybackConfig) -> DurationEstimator:
    """Build the default estimator from playback config."""

    def estimate(text: str) -> float:
        return (
            estimate_duration_ms(
                text,
                ms_per_word=config.ms_per_word,
                response_allowance_ms=config.response_allowance_ms,
                min_duration_ms=config.min_duration_ms,
            )
            / 1000.0
        )

    return estimate
