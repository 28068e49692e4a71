from __future__ import annotations

from enum import Enum
from typing import Optional


class QRCacheError(Exception):
    """Base class for errors raised by the cache and retry layers."""

    can_retry = True


class NetworkErrorKind(str, Enum):
    NO_CONNECTION = "no_connection"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    INVALID_RESPONSE = "invalid_response"
    RATE_LIMITED = "rate_limited"


_MESSAGES = {
    NetworkErrorKind.NO_CONNECTION: "Check your internet connection and try again",
    NetworkErrorKind.TIMEOUT: "Request expired. Try again soon",
    NetworkErrorKind.SERVER_ERROR: "Server error. Try again later",
    NetworkErrorKind.INVALID_RESPONSE: "Invalid server response",
    NetworkErrorKind.RATE_LIMITED: "Too many requests. Slow down and try again",
}


class NetworkError(QRCacheError):
    def __init__(self, kind: NetworkErrorKind, status_code: Optional[int] = None, detail: str = "") -> None:
        self.kind = kind
        self.status_code = status_code
        self.detail = detail
        message = _MESSAGES[kind]
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

    @property
    def can_retry(self) -> bool:  # type: ignore[override]
        return self.kind is not NetworkErrorKind.INVALID_RESPONSE

    @classmethod
    def server_error(cls, status_code: int, detail: str = "") -> "NetworkError":
        return cls(NetworkErrorKind.SERVER_ERROR, status_code=status_code, detail=detail)


class ImageDecodeError(QRCacheError):
    """Payload bytes do not form an image Pillow can read."""

    can_retry = False
