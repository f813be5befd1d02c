"""pulsetop - terminal client for streaming system telemetry."""

__version__ = "0.1.0"
