"""
Driver registry: URL scheme -> connection factory.

A registry is an explicit object. `DriverRegistry.with_builtin_drivers()`
returns one holding a `Driver` for every bundled native client; the
module-level `default_registry()` is built that way on first use.
"""
import logging
import threading
from collections.abc import Callable
from functools import lru_cache
from typing import Any, Self

from dbaccess.connection import Connection
from dbaccess.exceptions import UnknownDriverError
from dbaccess.native import NativeSession, get_available_schemes, get_native_class
from dbaccess.options import parse_scheme

__all__ = ['Driver', 'DriverRegistry', 'default_registry']

logger = logging.getLogger(__name__)

DriverFactory = Callable[..., Connection]


class Driver:
    """Connection factory bound to one native session class.
    """

    def __init__(self, native_cls: type[NativeSession]) -> None:
        self.native_cls = native_cls

    def __repr__(self) -> str:
        return f'Driver({self.native_cls.__name__})'

    def __call__(self, url: str, params: dict[str, Any] | None = None,
                 data_loader: Callable[..., Any] | None = None) -> Connection:
        return Connection(self.native_cls, url, params, data_loader=data_loader)

    @staticmethod
    def generate_url(scheme: str, host: str, port: int, database: str) -> str:
        """Build a connection URL from its parts."""
        return f'{scheme}://{host}:{port}/{database}'

    @staticmethod
    def user_password(user: str, password: str) -> dict[str, str]:
        """Build the override mapping carrying credentials."""
        return {'user': user, 'password': password}


class DriverRegistry:
    """Maps URL schemes to connection factories.

    A factory is any callable taking (url, params) and returning a
    `Connection`. Registering a scheme twice replaces the earlier factory.
    """

    def __init__(self) -> None:
        self._factories: dict[str, DriverFactory] = {}
        self._lock = threading.RLock()

    @classmethod
    def with_builtin_drivers(cls) -> Self:
        """Create a registry holding every bundled driver."""
        registry = cls()
        for scheme in get_available_schemes():
            registry.register(scheme, Driver(get_native_class(scheme)))
        return registry

    def register(self, scheme: str, factory: DriverFactory) -> None:
        with self._lock:
            self._factories[scheme.lower()] = factory
            logger.debug(f'Registered driver for scheme {scheme}: {factory!r}')

    def schemes(self) -> list[str]:
        """Return list of registered scheme names."""
        with self._lock:
            return list(self._factories.keys())

    def get(self, scheme: str) -> DriverFactory:
        """Get the factory for a scheme.

        Raises
            UnknownDriverError: No factory is registered for the scheme
        """
        key = scheme.split('+')[0].lower()
        with self._lock:
            if key not in self._factories:
                available = list(self._factories.keys())
                raise UnknownDriverError(f'Unsupported scheme: {scheme}. Available: {available}')
            return self._factories[key]

    def connect(self, url: str, params: dict[str, Any] | None = None,
                data_loader: Callable[..., Any] | None = None,
                **overrides: Any) -> Connection:
        """Open a connection through the factory registered for the URL scheme.

        Args:
            url: `scheme://[user[:password]@][host[:port]]/[database][?k=v]`
            params: Override mapping, e.g. {'user': ..., 'password': ...}
            data_loader: Optional loader used by `ResultSet.load()`
            overrides: Further overrides, merged over `params`

        Raises
            UnknownDriverError: Scheme missing or not registered
            ConnectionFailure: The factory could not open the connection
        """
        try:
            scheme = parse_scheme(url)
        except ValueError as exc:
            raise UnknownDriverError(str(exc)) from exc
        factory = self.get(scheme)
        merged = {**(params or {}), **overrides}
        if data_loader is not None:
            return factory(url, merged, data_loader=data_loader)
        return factory(url, merged)


@lru_cache(maxsize=1)
def default_registry() -> DriverRegistry:
    """Registry with the bundled drivers, shared by `dbaccess.connect`."""
    return DriverRegistry.with_builtin_drivers()
