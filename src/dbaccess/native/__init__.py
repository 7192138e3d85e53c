"""
Native client adapters, one per backend.
"""
from dbaccess.native.base import _NATIVE_REGISTRY
from dbaccess.native.base import NativeSession as NativeSession
from dbaccess.native.base import get_native_class as get_native_class
from dbaccess.native.base import register_native as register_native
from dbaccess.native.mysql import MySQLSession as MySQLSession
from dbaccess.native.postgres import PostgresSession as PostgresSession
from dbaccess.native.sqlite import SQLiteSession as SQLiteSession


def get_available_schemes() -> list[str]:
    """Return list of schemes with a bundled native client."""
    return list(_NATIVE_REGISTRY.keys())
