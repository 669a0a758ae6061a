from __future__ import annotations


class ExternalServiceError(Exception):
    """An upstream HTTP call failed after the retry budget was spent."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RateLimitedError(ExternalServiceError):
    """Upstream kept answering 429."""


class NonRetryableClientError(ExternalServiceError):
    """Upstream answered with a 4xx other than 429."""


class ConfigurationError(Exception):
    """Required settings or credentials are missing."""


class DataQualityWarning(UserWarning):
    """A listing was missing normalized fields and got defaults."""
