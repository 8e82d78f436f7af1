"""Protocol interfaces for swappable components.

The cache, the client and the view controllers reference these protocols,
not the concrete implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other persistence backends to be swapped in without touching the cache
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from hianime_catalog.fetcher import RequestSpec


class KeyValueStore(Protocol):
    """Flat string-to-string storage behind the TimedCache.

    Implementations raise ``StoreError`` for any backend fault.
    """

    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...

    async def keys(self) -> list[str]: ...


class FetcherProtocol(Protocol):
    """Interface for the retrying HTTP fetcher."""

    async def execute(self, spec: RequestSpec) -> Any: ...
