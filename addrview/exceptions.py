"""
Custom exception hierarchy for addrview.

Each exception maps to a specific CLI exit code and JSON error_code field.
cli.py catches all AddrviewError subclasses and formats them as JSON output.
Inside a view, every independent fetch catches its own AddrviewError and
leaves its slice of state at a safe default.

Exit code mapping:
  1 — AddrviewError (generic error, torn-down view)
  2 — APIError (server error, malformed payload, rate limit)
  3 — NetworkError (timeout, connection refused)
  4 — DataError (invalid address, invalid page query)
  5 — ConfigError (missing/malformed config)
"""


class AddrviewError(Exception):
    """Base exception for all addrview errors."""

    exit_code: int = 1
    error_code: str = "unknown_error"
    retryable: bool = False

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class APIError(AddrviewError):
    """Backend returned an error response."""

    exit_code = 2
    error_code = "api_error"


class ServerError(APIError):
    """Backend answered with a non-success status."""

    error_code = "server_error"
    retryable = True

    def __init__(self, message: str, status_code: int | None = None, **kwargs) -> None:
        super().__init__(message, details={"status_code": status_code, **kwargs})
        self.status_code = status_code


class MalformedResponseError(ServerError):
    """Backend answered 2xx but the payload does not match the expected schema."""

    error_code = "malformed_response"


class RateLimitError(APIError):
    """Backend rate limit exceeded."""

    error_code = "rate_limited"
    retryable = True

    def __init__(self, message: str, retry_after: int = 60, **kwargs) -> None:
        super().__init__(message, details={"retry_after_seconds": retry_after})
        self.retry_after = retry_after


class NetworkError(AddrviewError):
    """Network connectivity issue: request never reached or never returned."""

    exit_code = 3
    error_code = "network_error"
    retryable = True


class NetworkTimeoutError(NetworkError):
    """Request timed out."""

    error_code = "network_timeout"


class ConnectionFailedError(NetworkError):
    """Could not connect to the backend."""

    error_code = "connection_failed"


class DataError(AddrviewError):
    """Input validation error."""

    exit_code = 4
    error_code = "data_error"


class InvalidAddressError(DataError):
    """Address format is invalid."""

    error_code = "invalid_address"


class InvalidPageQueryError(DataError):
    """Page size or sort column rejected before dispatch."""

    error_code = "invalid_page_query"


class ConfigError(AddrviewError):
    """Config file is missing or malformed."""

    exit_code = 5
    error_code = "config_error"


class ConfigMissingError(ConfigError):
    """Config file does not exist; user should run `addrview config init`."""

    error_code = "config_missing"


class ConfigInvalidError(ConfigError):
    """Config file exists but contains invalid TOML or invalid values."""

    error_code = "config_invalid"


class ViewClosedError(AddrviewError):
    """Operation attempted on a view that has been torn down."""

    error_code = "view_closed"
