from dataclasses import dataclass
from typing import Any, Optional

DISPLAY_MESSAGE_LIMIT = 50


def truncate_message(message: Any, limit: int = DISPLAY_MESSAGE_LIMIT) -> str:
    return str(message)[:limit]


class MarketplaceError(Exception):
    """Base for every failure the UI turns into a toast."""

    kind = "unknown"
    title = "Error"

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(MarketplaceError):
    kind = "configuration"
    title = "Error"


class AuthenticationError(MarketplaceError):
    kind = "authentication"
    title = "Authentication Error"


class InputError(MarketplaceError):
    kind = "input"
    title = "Input Error"


class UploadError(MarketplaceError):
    kind = "upload"
    title = "Upload Error"


class PersistenceError(MarketplaceError):
    kind = "persistence"


class NetworkError(MarketplaceError):
    kind = "network"


def as_marketplace_error(error: BaseException) -> MarketplaceError:
    if isinstance(error, MarketplaceError):
        return error
    return NetworkError(str(error) or error.__class__.__name__, cause=error)


@dataclass
class Result:
    ok: bool
    value: Any = None
    error: Optional[MarketplaceError] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Result":
        return cls(ok=False, error=as_marketplace_error(error))
