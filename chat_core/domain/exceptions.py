"""Unified business error model.

Every error raised across module boundaries derives from BusinessError so
the CLI can catch it in one place and show the user a readable message.

Propagation levels:

- ConfigurationError: process-level, detected at startup.
- NetworkError / ApiError / HttpStatusError / ParseError: turn-level, the
  current turn is aborted and the prompt loop continues.
- StreamDecodeError: frame-level, the frame is logged and skipped.
"""


class BusinessError(Exception):
    """Base class of all business errors.

    Attributes:
        code: machine readable error code (e.g. "NETWORK_ERROR").
        message: human readable message.
        http_status: HTTP status when one applies, defaults to 400.
        extra: additional context (provider, frame preview, ...).
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """Missing or invalid endpoint, credential or model."""


class NetworkError(BusinessError):
    """Connection level failure: refused, timed out, DNS failure."""


class ApiError(BusinessError):
    """The provider reported an error in an otherwise readable response."""


class HttpStatusError(ApiError):
    """Non-2xx response; ``message`` carries the server provided detail."""


class RateLimitError(HttpStatusError):
    """HTTP 429 from the provider. Not retried automatically."""


class StreamDecodeError(BusinessError):
    """A single stream frame could not be decoded."""


class ParseError(BusinessError):
    """The whole response could not be used, e.g. the stream broke off."""
