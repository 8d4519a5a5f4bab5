"""Endpoint resolution for the versioned SOAP service.

The service URL is a pure function of a host and an API version. Hosts are
normalized the same way everywhere (scheme, query string and trailing slashes
are stripped) so that a value copied from a browser still resolves to a
well-formed endpoint.
"""

import re

from metaforce.core.errors import ValidationError

DEFAULT_API_VERSION = "50.0"
DEFAULT_LOGIN_URL = "login.salesforce.com"

_PROTOCOL = "Soap"
_VERSION_RE = re.compile(r"^\d+(\.\d+)?$")
_VERSION_SEGMENT_RE = re.compile(r"(/services/Soap/[a-z]/)\d+(?:\.\d+)?")


def sanitize_host(host: str | None) -> str:
    """
    Normalize a host value.

    - Removes a leading `http://` or `https://`
    - Removes query strings and paths
    - Removes trailing slashes
    """
    if not host or not host.strip():
        raise ValidationError("Host must not be empty.")
    host = host.strip()
    host = re.sub(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", "", host)
    host = host.split("?", 1)[0]
    host = host.split("/", 1)[0]
    if not host:
        raise ValidationError("Host must not be empty.")
    return host


def validate_api_version(api_version: str | None) -> str:
    """Return the version string unchanged, or raise if it is not `NN` / `NN.N`."""
    if api_version is None or not _VERSION_RE.match(api_version.strip()):
        raise ValidationError(
            f"Invalid API version {api_version!r} (expected digits with an "
            "optional decimal, e.g. '50.0')."
        )
    return api_version.strip()


def parse_api_version(api_version: str) -> float:
    """Return the API version as a number for requests that carry `asOfVersion`."""
    return float(validate_api_version(api_version))


def resolve(host: str, api_version: str) -> str:
    """Return `https://{host}/services/Soap/u/{api_version}`."""
    return (
        f"https://{sanitize_host(host)}/services/{_PROTOCOL}/u/"
        f"{validate_api_version(api_version)}"
    )


def with_api_version(url: str, api_version: str) -> str:
    """
    Return a service URL with its version segment replaced.

    Server URLs handed out by login carry their own version segment
    (`/services/Soap/m/50.0/<org id>`). URLs without one are returned as-is.
    """
    version = validate_api_version(api_version)
    return _VERSION_SEGMENT_RE.sub(lambda m: f"{m.group(1)}{version}", url, count=1)


def to_partner_url(url: str) -> str:
    """Return the partner (`/u/`) variant of a metadata (`/m/`) server URL."""
    return url.replace("/services/Soap/m/", "/services/Soap/u/", 1)
