"""User data stream session payloads."""

from .base import FuturesModel


class ListenKey(FuturesModel):
    listen_key: str
