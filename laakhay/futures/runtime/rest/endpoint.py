"""REST endpoint descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field

from ...core.enums import HttpMethod, Security


@dataclass(frozen=True)
class RestEndpointSpec:
    """Static description of one REST endpoint.

    ``idempotent`` decides whether the dispatcher may resend the request after
    a transient failure. It defaults to True for GET, PUT and DELETE and to
    False for POST.
    """

    id: str
    method: HttpMethod
    path: str
    security: Security = Security.NONE
    idempotent: bool | None = field(default=None)

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", HttpMethod(self.method))
        if self.idempotent is None:
            object.__setattr__(self, "idempotent", self.method is not HttpMethod.POST)

    @property
    def signed(self) -> bool:
        return self.security is Security.SIGNED
