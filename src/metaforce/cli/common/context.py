"""Application context management for the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from metaforce.cli.common.exits import client_errors
from metaforce.core.client import MetadataClient
from metaforce.core.config import ClientConfig


def build_client(config: ClientConfig) -> MetadataClient:
    """Create a client from configuration (logs in if credentials are set)."""
    return MetadataClient.from_config(config)


@dataclass
class AppContext:
    """Application context holding configuration and a lazily built client."""

    config: ClientConfig
    _client: MetadataClient | None = field(default=None, repr=False)

    @property
    def client(self) -> MetadataClient:
        """Return the client, connecting on first use."""
        if self._client is None:
            with client_errors("Connect"):
                self._client = build_client(self.config)
        return self._client

    def close(self) -> None:
        """Close the client if one was built."""
        if self._client is not None:
            self._client.close()
            self._client = None


def build_context(
    login_url: str | None,
    api_version: str | None,
    *,
    debug: bool = False,
) -> AppContext:
    """Build the application context from the environment plus CLI overrides.

    Args:
        login_url: Optional login host overriding METAFORCE_LOGIN_URL.
        api_version: Optional API version overriding METAFORCE_API_VERSION.
        debug: Log SOAP traffic.

    Returns:
        AppContext: Context whose client is created on first use.
    """
    config = ClientConfig.from_env()
    overrides: dict[str, object] = {}
    if login_url:
        overrides["login_url"] = login_url
    if api_version:
        overrides["api_version"] = api_version
    if debug:
        overrides["debug"] = True
    return AppContext(config=replace(config, **overrides))
