"""API credentials."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from ..core.config import API_KEY_ENV, SECRET_KEY_ENV
from ..core.exceptions import ConfigError


@dataclass(frozen=True)
class Credentials:
    """API key identifier and secret.

    Immutable once constructed. The secret is excluded from ``repr`` and
    equality so it cannot leak through logs or tracebacks.
    """

    api_key: str
    secret_key: str = field(repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.api_key, str) or not self.api_key.strip():
            raise ConfigError("api_key must be a non-empty string")
        if not isinstance(self.secret_key, str) or not self.secret_key.strip():
            raise ConfigError("secret_key must be a non-empty string")

    @classmethod
    def from_env(
        cls,
        key_var: str = API_KEY_ENV,
        secret_var: str = SECRET_KEY_ENV,
    ) -> Credentials:
        """Load credentials from the process environment.

        Raises:
            ConfigError: If either variable is unset or empty
        """
        api_key = os.environ.get(key_var, "")
        secret_key = os.environ.get(secret_var, "")
        if not api_key or not secret_key:
            raise ConfigError(f"{key_var} and {secret_var} must both be set")
        return cls(api_key=api_key, secret_key=secret_key)

    @property
    def masked_key(self) -> str:
        """API key with all but the last four characters hidden."""
        return f"***{self.api_key[-4:]}"
