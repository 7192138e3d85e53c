"""
Connection configuration.

A `ConnectionConfig` is resolved from a connection URL of the form

    scheme://[user[:password]@][host[:port]]/[database][?key=value&...]

plus a mapping of overrides. An explicit override always wins over a value
embedded in the URL.
"""
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Self

from dbaccess.loaders import iterdict_data_loader
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

__all__ = ['ConnectionConfig', 'parse_scheme']

logger = logging.getLogger(__name__)

DEFAULT_HOST = 'localhost'

# Override keys consumed by the config itself; everything else is passed
# through to the native client in `params`
_RESERVED_KEYS = {'user', 'username', 'password', 'host', 'hostname', 'port', 'database'}


def parse_scheme(url: str) -> str:
    """Extract the lower-cased scheme of a URL, ignoring a `+driver` suffix.

    Raises
        ValueError: If the URL has no scheme
    """
    scheme, sep, _ = url.partition('://')
    if not sep or not scheme:
        raise ValueError(f'Connection URL has no scheme: {url!r}')
    return scheme.split('+')[0].lower()


def _strip_port(url: str) -> str:
    """Remove the port from the host part of a URL."""
    head, sep, rest = url.partition('://')
    end = min((i for i in (rest.find('/'), rest.find('?')) if i >= 0), default=len(rest))
    userinfo, at, hostport = rest[:end].rpartition('@')
    return head + sep + userinfo + at + hostport.split(':')[0] + rest[end:]


def _parse_url(url: str):
    """Parse with SQLAlchemy, dropping a non-numeric port.

    Returns
        Tuple of (URL, port or None)
    """
    try:
        parsed = make_url(url)
        return parsed, parsed.port
    except ValueError:
        logger.debug('Ignoring invalid port in connection URL')
    try:
        return make_url(_strip_port(url)), None
    except (ValueError, ArgumentError) as exc:
        raise ValueError(f'Cannot parse connection URL: {exc}') from exc


def _valid_port(value: Any, default_port: int) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        return default_port
    if not 1 <= port <= 65535:
        return default_port
    return port


def _flatten_query(query: Mapping[str, Any]) -> dict[str, Any]:
    """Repeated query keys keep their last value."""
    return {k: v[-1] if isinstance(v, tuple) else v for k, v in query.items()}


@dataclass
class ConnectionConfig:
    """Resolved connection options

    supported schemes: `mysql`, `postgresql`, `postgres`, `sqlite`

    - params: extra options forwarded to the native client
    - data_loader: shapes `ResultSet.load()` output (default: list of dicts)
    """
    scheme: str
    host: str = DEFAULT_HOST
    port: int = 0
    database: str | None = None
    username: str | None = None
    password: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    data_loader: Callable[..., Any] = iterdict_data_loader

    def __repr__(self) -> str:
        return (f'ConnectionConfig(scheme={self.scheme!r}, host={self.host!r}, '
                f'port={self.port!r}, database={self.database!r}, '
                f'username={self.username!r})')

    @classmethod
    def from_url(cls, url: str, params: Mapping[str, Any] | None = None,
                 default_port: int = 0,
                 data_loader: Callable[..., Any] | None = None) -> Self:
        """Parse a connection URL and apply overrides.

        Args:
            url: Connection URL
            params: Override mapping; `user` and `password` replace URL
                userinfo, other keys replace URL query parameters
            default_port: Standard port of the backend, used when the URL
                port is missing, invalid or outside 1..65535
            data_loader: Optional result loader

        Returns
            ConnectionConfig
        """
        params = dict(params or {})
        scheme = parse_scheme(url)

        try:
            parsed, url_port = _parse_url(url)
        except ArgumentError as exc:
            raise ValueError(f'Cannot parse connection URL: {exc}') from exc

        extra = _flatten_query(parsed.query)
        extra.update({k: v for k, v in params.items() if k not in _RESERVED_KEYS})

        username = params.get('user', params.get('username', extra.pop('user', parsed.username)))
        password = params.get('password', extra.pop('password', parsed.password))
        host = params.get('host', params.get('hostname', parsed.host)) or DEFAULT_HOST
        port = _valid_port(params.get('port', url_port), default_port)
        database = params.get('database', parsed.database) or None

        return cls(
            scheme=scheme,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            params=extra,
            data_loader=data_loader or iterdict_data_loader,
            )
