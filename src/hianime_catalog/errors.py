from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    TIMEOUT = "TIMEOUT"
    HTTP = "HTTP"
    NETWORK = "NETWORK"
    UNSUCCESSFUL_RESPONSE = "UNSUCCESSFUL_RESPONSE"
    CACHE_FAULT = "CACHE_FAULT"


class CatalogError(Exception):
    """Raised by the fetcher and the catalog client for classified upstream failures.

    Caught once at the CatalogClient boundary and converted into a
    ``StaleFallback`` or ``Failure`` outcome. Nothing above the client ever
    sees this exception.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.url = url

    def to_dict(self) -> dict:
        return {
            "error": {
                "kind": self.kind,
                "message": self.message,
                "status_code": self.status_code,
                "url": self.url,
            }
        }


class StoreError(Exception):
    """Raised by key-value stores when a read or write cannot be completed.

    Never crosses the TimedCache boundary.
    """
