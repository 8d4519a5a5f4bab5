"""Client configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from metaforce.core.endpoint import DEFAULT_API_VERSION, DEFAULT_LOGIN_URL

_DEFAULT_TIMEOUT_SECONDS = 60.0


def _env_flag(name: str, default: bool = False) -> bool:
    """Return True for 1/true/yes/on (case-insensitive)."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_seconds(name: str, default: float) -> float:
    """Return a positive number of seconds, or the default when unset or invalid."""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings needed to build a MetadataClient.

    Either `session_id` + `server_url` (reuse a session) or `username` +
    `password` (log in) may be given; with neither the client starts
    anonymous.
    """

    login_url: str = DEFAULT_LOGIN_URL
    api_version: str = DEFAULT_API_VERSION
    username: str | None = None
    password: str | None = None
    session_id: str | None = None
    server_url: str | None = None
    timeout: float = _DEFAULT_TIMEOUT_SECONDS
    gzip: bool = True
    debug: bool = False

    @property
    def has_session(self) -> bool:
        return bool(self.session_id and self.server_url)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create configuration from METAFORCE_* environment variables."""
        return cls(
            login_url=os.getenv("METAFORCE_LOGIN_URL") or DEFAULT_LOGIN_URL,
            api_version=os.getenv("METAFORCE_API_VERSION") or DEFAULT_API_VERSION,
            username=os.getenv("METAFORCE_USERNAME") or None,
            password=os.getenv("METAFORCE_PASSWORD") or None,
            session_id=os.getenv("METAFORCE_SESSION_ID") or None,
            server_url=os.getenv("METAFORCE_SERVER_URL") or None,
            timeout=_env_seconds("METAFORCE_TIMEOUT", _DEFAULT_TIMEOUT_SECONDS),
            gzip=_env_flag("METAFORCE_GZIP", default=True),
            debug=_env_flag("METAFORCE_DEBUG", default=False),
        )
