"""Credentials, timestamps and request signing."""

from .clock import Clock
from .credentials import Credentials
from .signer import Signer, canonical_query, encode_value, sign

__all__ = [
    "Clock",
    "Credentials",
    "Signer",
    "canonical_query",
    "encode_value",
    "sign",
]
