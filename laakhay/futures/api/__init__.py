"""Typed REST facades and stream name builders."""

from . import streams
from .account import AccountAPI
from .market import MarketAPI
from .trading import TradingAPI
from .user_stream import UserStreamAPI

__all__ = ["AccountAPI", "MarketAPI", "TradingAPI", "UserStreamAPI", "streams"]
