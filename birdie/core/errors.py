"""
Birdie exception hierarchy.

Every error in the system inherits from BirdieError.
Each subsystem has its own error class for targeted catching.

Usage:
    try:
        await session.refresh_tabs()
    except DiscoveryError as e:
        # Tab listing failed while we believed we were connected
    except BirdieError as e:
        # Handle any Birdie error
"""


class BirdieError(Exception):
    """Base exception for all Birdie errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Core ━━━


class ConfigError(BirdieError):
    """Configuration is invalid, missing, or malformed."""

    pass


class NotificationError(BirdieError):
    """Inbound notification payload is malformed."""

    pass


# ━━━ Playback ━━━


class NarrationError(BirdieError):
    """The speech engine rejected a speak or stop call."""

    def __init__(
        self,
        message: str,
        engine: str = "",
        details: dict | None = None,
    ):
        self.engine = engine
        super().__init__(message, details)


class EmptyQueueError(BirdieError):
    """Playback requested with nothing queued. Treated as a guarded no-op."""

    pass


# ━━━ CDP ━━━


class CDPError(BirdieError):
    """Base for Chrome DevTools Protocol failures."""

    pass


class CDPConnectionError(CDPError):
    """Debugger endpoint unreachable or misconfigured."""

    def __init__(
        self,
        message: str,
        port: int = 0,
        help_url: str | None = None,
        details: dict | None = None,
    ):
        self.port = port
        self.help_url = help_url
        super().__init__(message, details)


class DiscoveryError(CDPError):
    """Tab listing failed while the session was assumed connected."""

    pass


class ScriptExecutionError(CDPError):
    """A script evaluated in a tab threw, or the call itself failed."""

    def __init__(
        self,
        message: str,
        tab_id: str = "",
        details: dict | None = None,
    ):
        self.tab_id = tab_id
        super().__init__(message, details)
