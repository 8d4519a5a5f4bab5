"""Session state for the metadata client.

The session store owns the authentication token, the active server URL, the
login host and the API version. Callers never read those piecemeal: every
operation takes a `CallContext` snapshot, so a call in flight keeps the
header and endpoint it started with even if the session changes afterwards.

A single store is guarded by a lock for its own mutations, but the client
built on top of it is meant to be driven by one logical caller at a time. A
login racing another operation has no defined precedence.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from urllib.parse import urlparse

from metaforce.core.endpoint import (
    DEFAULT_API_VERSION,
    DEFAULT_LOGIN_URL,
    resolve,
    sanitize_host,
    to_partner_url,
    validate_api_version,
    with_api_version,
)
from metaforce.core.errors import TransportError, ValidationError
from metaforce.core.transport import CallContext, TransportPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """
    Represents the authentication state of a client.

    Attributes:
        access_token: Opaque session id sent in the session header.
        server_url: Metadata server URL the session is bound to.
        login_url: Host used for login and anonymous calls.
        api_version: Protocol version string (e.g. "50.0").
        user_id: User id reported by login, if any.
    """

    access_token: str = ""
    server_url: str = ""
    login_url: str = DEFAULT_LOGIN_URL
    api_version: str = DEFAULT_API_VERSION
    user_id: str | None = None

    @property
    def active(self) -> bool:
        return bool(self.access_token)


def _is_absolute(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


class SessionStore:
    """Holds the current session and applies login/logout through a transport."""

    def __init__(
        self,
        transport: TransportPort,
        *,
        login_url: str = DEFAULT_LOGIN_URL,
        api_version: str = DEFAULT_API_VERSION,
    ):
        self._transport = transport
        self._lock = threading.Lock()
        self._session = Session(
            login_url=sanitize_host(login_url),
            api_version=validate_api_version(api_version),
        )

    @property
    def session(self) -> Session:
        return self._session

    def login_endpoint(self) -> str:
        """Return the endpoint used for login and anonymous calls."""
        s = self._session
        return resolve(s.login_url, s.api_version)

    def context(self) -> CallContext:
        """Snapshot the header and endpoint every call must use right now."""
        s = self._session
        endpoint = s.server_url or resolve(s.login_url, s.api_version)
        return CallContext(endpoint=endpoint, session_id=s.access_token or None)

    def login(self, username: str, password: str) -> Session:
        """
        Log in and install the returned session.

        The previous session is left untouched if the call fails; the error is
        re-raised as the transport reported it.

        Raises:
            ValidationError: Username or password is empty.
            AuthError: The service rejected the credentials.
            TransportError: The response did not contain a usable session.
        """
        if not username:
            raise ValidationError("Username is required.", operation="login")
        if not password:
            raise ValidationError("Password is required.", operation="login")

        context = CallContext(endpoint=self.login_endpoint())
        response = self._transport.call(
            "login", context, {"username": username, "password": password}
        )

        token = (response or {}).get("sessionId") or ""
        server_url = (response or {}).get("metadataServerUrl") or ""
        if not token or not server_url or not _is_absolute(server_url):
            raise TransportError(
                "Login response did not contain a session id and an absolute "
                "metadata server URL.",
                operation="login",
            )

        with self._lock:
            self._session = replace(
                self._session,
                access_token=token,
                server_url=server_url,
                user_id=response.get("userId"),
            )
        logger.info("Logged in as %s (server %s)", username, server_url)
        return self._session

    def adopt_existing_session(self, token: str, server_url: str) -> Session:
        """Install a session established out-of-band, without contacting the service."""
        with self._lock:
            self._session = replace(
                self._session,
                access_token=token,
                server_url=server_url,
                user_id=None,
            )
        return self._session

    def set_access_token(self, token: str) -> Session:
        """Replace only the token, keeping the server URL."""
        with self._lock:
            self._session = replace(self._session, access_token=token)
        return self._session

    def set_api_version(self, api_version: str) -> Session:
        """Change the API version; the active endpoint follows it."""
        version = validate_api_version(api_version)
        with self._lock:
            s = self._session
            server_url = with_api_version(s.server_url, version) if s.server_url else ""
            self._session = replace(s, api_version=version, server_url=server_url)
        return self._session

    def set_login_url(self, login_url: str) -> Session:
        """Change the login host used for login and anonymous calls."""
        host = sanitize_host(login_url)
        with self._lock:
            self._session = replace(self._session, login_url=host)
        return self._session

    def logout(self) -> Session:
        """
        End the active session on the service and clear it locally.

        Local state is cleared even when the remote call fails (typically an
        already expired session); the error is re-raised afterwards. Without
        an active session this only clears local state.
        """
        try:
            if self._session.active:
                context = self.context()
                self._transport.call(
                    "logout",
                    CallContext(
                        endpoint=to_partner_url(context.endpoint),
                        session_id=context.session_id,
                    ),
                    {},
                )
        finally:
            with self._lock:
                self._session = replace(
                    self._session, access_token="", server_url="", user_id=None
                )
        return self._session
