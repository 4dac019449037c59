"""SuiEventSource: ``suix_queryEvents`` over JSON-RPC with httpx."""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any

import httpx

from ..events import EventKind, EventPage, EventPosition, LedgerEvent
from ..exceptions import EventSourceError, InvalidCursorError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

FULLNODE_URLS: dict[str, str] = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
    "localnet": "http://127.0.0.1:9000",
}

INVALID_PARAMS_CODE = -32602


class SuiEventSource:
    """
    Event source backed by a Sui full node.

    Pages through one Move event type at a time in ascending order. Pass an
    ``httpx.AsyncClient`` to share a connection pool (or a mock transport in
    tests); otherwise the source owns its client and closes it on exit.

    ```python
    async with SuiEventSource(url, package_id) as source:
        page = await source.fetch(EventKind.TIER_CREATED, None, 50)
    ```
    """

    def __init__(
        self,
        rpc_url: str,
        package_id: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.rpc_url = rpc_url
        self.package_id = package_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def fetch(
        self,
        kind: EventKind,
        after: EventPosition | None,
        limit: int,
    ) -> EventPage:
        """Query the next page of *kind* strictly after *after*.

        Raises:
            InvalidCursorError: If the node rejects the cursor.
            EventSourceError: On any other HTTP, transport or JSON-RPC error.
        """
        params: list[Any] = [
            {"MoveEventType": kind.move_event_type(self.package_id)},
            after.as_cursor() if after is not None else None,
            limit,
            False,
        ]
        result = await self._call("suix_queryEvents", params)
        return self._to_page(kind, result)

    async def _call(self, method: str, params: list[Any]) -> Any:
        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._client.post(self.rpc_url, json=request)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise EventSourceError(
                f"{method} failed: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise EventSourceError(f"{method} failed: {e}") from e

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            code = error.get("code")
            message = str(error.get("message", ""))
            if code == INVALID_PARAMS_CODE or "Invalid params" in message:
                raise InvalidCursorError(f"{method} rejected cursor: {message}")
            raise EventSourceError(f"{method} error {code}: {message}")
        if not isinstance(body, dict) or "result" not in body:
            raise EventSourceError(f"{method} returned no result")
        return body["result"]

    @staticmethod
    def _to_page(kind: EventKind, result: dict[str, Any]) -> EventPage:
        try:
            events = [
                LedgerEvent(
                    kind=kind,
                    position=EventPosition.from_cursor(item["id"]),
                    payload=dict(item.get("parsedJson") or {}),
                    timestamp_ms=(
                        int(item["timestampMs"])
                        if item.get("timestampMs") is not None
                        else None
                    ),
                )
                for item in result.get("data", [])
            ]
            next_cursor = result.get("nextCursor")
            next_position = (
                EventPosition.from_cursor(next_cursor) if next_cursor else None
            )
        except (KeyError, TypeError, ValueError) as e:
            raise EventSourceError(f"Unexpected suix_queryEvents result: {e}") from e
        return EventPage(
            events=events,
            next_position=next_position,
            has_next_page=bool(result.get("hasNextPage", False)),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SuiEventSource:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
