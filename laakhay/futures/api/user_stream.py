"""Listen key management for the private user data stream."""

from __future__ import annotations

from ..models import ListenKey
from ..runtime.rest.dispatcher import RequestDispatcher
from . import endpoints as ep


class UserStreamAPI:
    """Create, keep alive and close listen keys.

    Satisfies ``ListenKeyService`` so it can back a session manager directly.
    """

    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def create_listen_key(self) -> str:
        result = await self._dispatcher.call(ep.CREATE_LISTEN_KEY, None, ListenKey)
        return result.listen_key

    async def keepalive_listen_key(self, listen_key: str | None = None) -> str | None:
        """Extend the key's validity. Returns the key if the exchange echoes one."""
        params = {"listenKey": listen_key} if listen_key else None
        data = await self._dispatcher.execute(ep.KEEPALIVE_LISTEN_KEY, params)
        if isinstance(data, dict):
            return data.get("listenKey")
        return None

    async def close_listen_key(self, listen_key: str | None = None) -> None:
        params = {"listenKey": listen_key} if listen_key else None
        await self._dispatcher.execute(ep.CLOSE_LISTEN_KEY, params)
