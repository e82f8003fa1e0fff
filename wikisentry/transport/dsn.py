"""DSN parsing and the X-Sentry-Auth header for the store API."""

import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlparse

from ..errors import InvalidDSN
from ..event.model import CLIENT, VERSION

SENTRY_PROTOCOL_VERSION = 7


@dataclass(frozen=True)
class DSNCredentials:
    """
    Connection details decoded from a DSN.

    DSN format: <scheme>://<public_key>:<secret_key>@<host>[:<port>][/<base_path>]/<project_id>
    """

    scheme: str
    host: str
    project_id: int
    public_key: str
    secret_key: str = ""
    base_path: str = ""

    @property
    def store_url(self) -> str:
        """The store endpoint for this project."""
        return f"{self.scheme}://{self.host}{self.base_path}/api/{self.project_id}/store/"


def parse_dsn(dsn: Optional[str]) -> DSNCredentials:
    """
    Parse a DSN string.

    Args:
        dsn: Full DSN string

    Returns:
        DSNCredentials

    Raises:
        InvalidDSN: If the DSN is empty, malformed or misses a component
    """
    if not dsn or not dsn.strip():
        raise InvalidDSN("No DSN configured")

    try:
        parsed = urlparse(dsn.strip())
        port = parsed.port
    except ValueError as e:
        raise InvalidDSN(f"Malformed DSN: {e}") from e

    if not parsed.scheme or not parsed.hostname:
        raise InvalidDSN("DSN is missing scheme or host")
    if not parsed.username:
        raise InvalidDSN("DSN is missing the public key")

    # Project ID is the last path segment, anything before it is a base path
    base_path, _, project = parsed.path.rstrip("/").rpartition("/")
    if not (project.isascii() and project.isdigit()):
        raise InvalidDSN("DSN is missing a numeric project id")

    host = parsed.hostname
    if ":" in host:
        host = f"[{host}]"
    if port is not None:
        host = f"{host}:{port}"

    return DSNCredentials(
        scheme=parsed.scheme,
        host=host,
        project_id=int(project),
        public_key=unquote(parsed.username),
        secret_key=unquote(parsed.password or ""),
        base_path=base_path,
    )


def build_auth_header(credentials: DSNCredentials, timestamp: Optional[int] = None) -> str:
    """
    Build the X-Sentry-Auth header.

    Format:
    Sentry sentry_version=7, sentry_client=<client><version>,
           sentry_timestamp=<unix time>, sentry_key=<public>, sentry_secret=<secret>
    """
    if timestamp is None:
        timestamp = int(time.time())

    header = [
        f"Sentry sentry_version={SENTRY_PROTOCOL_VERSION}",
        f"sentry_client={CLIENT}{VERSION}",
        f"sentry_timestamp={timestamp}",
        f"sentry_key={credentials.public_key}",
        f"sentry_secret={credentials.secret_key}",
    ]
    return ", ".join(header)


def user_agent() -> str:
    return f"{CLIENT}{VERSION}"
