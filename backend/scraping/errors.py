"""
Exception taxonomy for capture and synthesis.

Only session and connection failures during capture are meant to escape to
callers. Everything raised after a transcript exists is absorbed by the
synthesis loop and turned into an attempt verdict.
"""


class ScrapingError(Exception):
    """Base class for all errors raised by the scraping core."""


class ConfigurationError(ScrapingError):
    """A required setting (API key, project id) is missing."""


class CaptureError(ScrapingError):
    """Capture could not run to completion."""


class SessionError(CaptureError):
    """The remote browser session could not be created."""


class BrowserConnectionError(CaptureError, ConnectionError):
    """A remote session exists but the controller could not attach to it."""


class BodyReadError(ScrapingError):
    """Reading a single response body failed; the event is kept without a body."""


class NormalizationError(ScrapingError):
    """Internal to the normalizer, which returns its input unchanged instead."""


class GenerationFault(ScrapingError):
    """The code-generation agent failed or returned no usable reply."""


class TestExecutionFault(ScrapingError):
    """The test executor failed internally."""

    __test__ = False


class SchemaSyntaxError(ValueError):
    """Schema text could not be parsed by the schema language."""

    def __init__(self, message: str, position: int = -1):
        self.position = position
        if position >= 0:
            message = f"{message} (at position {position})"
        super().__init__(message)
