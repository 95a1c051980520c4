"""
Authentication configuration for the streaming service.
The bearer token is optional: anonymous calls are sent without an Authorization header.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_TOKEN = "AGENTSTREAM_TOKEN"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """
    Container for the bearer token used by the streaming endpoints.
    """

    token: str | None = None

    @staticmethod
    def from_env_or_value(token: str | None) -> AuthConfig:
        """
        Create an AuthConfig from an explicit value or the environment.

        Args:
            token: Optional token provided by the user. Takes precedence over the environment.

        Returns:
            An AuthConfig whose token is None when neither source defines one.
        """
        key = token or os.getenv(ENV_TOKEN) or None
        return AuthConfig(token=key)

    @property
    def bearer(self) -> str | None:
        if not self.token:
            return None
        return f"Bearer {self.token}"
