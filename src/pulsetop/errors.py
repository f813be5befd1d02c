"""Exception hierarchy for pulsetop."""


class PulsetopError(Exception):
    """Base class for all pulsetop errors."""


class FrameError(PulsetopError):
    """A telemetry frame could not be decoded."""


class BackendError(PulsetopError):
    """The backend HTTP surface rejected a request or returned garbage."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class ConfigurationError(PulsetopError):
    """Settings could not be loaded or failed validation."""
