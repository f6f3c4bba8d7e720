"""Failure signals raised by provider transports.

These never leave the provider package: ResilientProvider translates them
into the closed ErrorCode taxonomy.
"""


class ProviderError(Exception):
    """Base class. ``transient`` failures are retried and trip the breaker."""

    transient = False

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ProviderTimeoutError(ProviderError):
    transient = True


class ProviderTransportError(ProviderError):
    transient = True


class ProviderServerError(ProviderError):
    transient = True


class ProviderRateLimitError(ProviderError):

    def __init__(self, message: str, retry_after: float | None = None, daily_limit: bool = False):
        super().__init__(message, status=429)
        self.retry_after = retry_after
        self.daily_limit = daily_limit


class ProviderAuthError(ProviderError):
    pass


class ProviderNotFoundError(ProviderError):
    pass


class ProviderRequestError(ProviderError):
    """4xx other than auth / not-found / rate-limit."""


class ProviderPayloadError(ProviderError):
    """Response body could not be decoded into the expected shape."""
