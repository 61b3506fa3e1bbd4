"""Signed request envelope."""

from __future__ import annotations

from dataclasses import dataclass

from ...auth.signer import Params, Signer, canonical_query, ordered_params
from ...core.enums import HttpMethod


@dataclass(frozen=True)
class SignedRequest:
    """One transmission of an authenticated request.

    ``query`` is the exact byte sequence sent on the wire: the canonical
    parameters followed by ``signature``. Instances are built per attempt and
    must not be sent once ``recv_window`` has elapsed since ``timestamp``.
    """

    method: HttpMethod
    path: str
    params: tuple[tuple[str, str], ...]
    timestamp: int
    recv_window: int
    signature: str
    query: str

    @classmethod
    def build(
        cls,
        signer: Signer,
        method: HttpMethod,
        path: str,
        params: Params | None,
        *,
        timestamp: int,
        recv_window: int,
    ) -> SignedRequest:
        canonical = canonical_query(params, recv_window=recv_window, timestamp=timestamp)
        signature = signer.sign(canonical)
        return cls(
            method=method,
            path=path,
            params=tuple(ordered_params(params)),
            timestamp=timestamp,
            recv_window=recv_window,
            signature=signature,
            query=f"{canonical}&signature={signature}",
        )

    @property
    def expires_at_ms(self) -> int:
        return self.timestamp + self.recv_window

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expires_at_ms
