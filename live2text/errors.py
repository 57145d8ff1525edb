"""Error types for Live2Text."""


class Live2TextError(Exception):
    """Base class for Live2Text errors."""


class LiveConnectionError(Live2TextError):
    """Transport failed to open or closed abnormally."""


class ProtocolParseError(Live2TextError):
    """Inbound payload is not valid JSON or does not have the expected shape."""

    def __init__(self, message: str, raw: object = None):
        super().__init__(message)
        self.raw = raw


class CaptureError(Live2TextError):
    """Microphone or audio pipeline could not be acquired."""
