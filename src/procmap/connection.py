"""
Connection provisioning with SQLAlchemy.

This module provides:
1. Engine creation and management through a thread-safe registry
2. `EngineConnectionProvider`, which hands out one configured DBAPI
   connection per executor call and releases it on every exit path
3. Commit/rollback helpers that work on any DBAPI connection

Anything exposing a ``dialect`` name and a ``connect()`` context manager can
stand in for `EngineConnectionProvider`.
"""
import atexit
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol

import sqlalchemy as sa
from procmap.options import DatabaseOptions
from procmap.strategy import ProcedureStrategy, get_strategy
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

__all__ = [
    'ConnectionProvider',
    'EngineConnectionProvider',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
    'ensure_commit',
    'safe_rollback',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


class ConnectionProvider(Protocol):
    """Supplies opened DBAPI connections for one call at a time."""

    @property
    def dialect(self) -> str: ...

    def connect(self) -> Any:
        """Context manager yielding an open DBAPI connection."""


def create_url_from_options(options: DatabaseOptions) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    return get_strategy(options.drivername).build_connection_url(options)


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = f'{str(options)}_{options.use_pool}_{options.pool_max_connections}'

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        url = create_url_from_options(options)
        strategy = get_strategy(options.drivername)

        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs(options))

        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['pool_recycle'] = options.pool_max_idle_time
            engine_kwargs['pool_timeout'] = options.pool_wait_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def ensure_commit(connection: Any) -> None:
    """Commit unless the connection is in auto-commit mode.
    """
    raw_conn = getattr(connection, 'driver_connection', connection)
    if getattr(raw_conn, 'autocommit', False) is True:
        return
    connection.commit()


def safe_rollback(connection: Any) -> None:
    """Roll back, logging rather than raising if the connection is unusable.

    Used while another exception is already propagating.
    """
    try:
        connection.rollback()
    except Exception as e:
        logger.debug(f'Rollback failed: {e}')


class EngineConnectionProvider:
    """Connection provider backed by a SQLAlchemy engine.

    Each `connect()` checks out a DBAPI connection, applies the dialect's
    connection settings, and returns it to the engine (closed under NullPool)
    when the block exits.
    """

    def __init__(self, options: DatabaseOptions,
                 engine_factory: Callable[..., Engine] = sa.create_engine) -> None:
        self.options = options
        self._engine_factory = engine_factory

    @property
    def dialect(self) -> str:
        return self.options.drivername

    @property
    def strategy(self) -> ProcedureStrategy:
        return get_strategy(self.dialect)

    @property
    def engine(self) -> Engine:
        return get_engine_for_options(self.options, engine_factory=self._engine_factory)

    @contextmanager
    def connect(self) -> Iterator[Any]:
        raw_conn = self.engine.raw_connection()
        try:
            self.strategy.configure_connection(raw_conn.driver_connection)
            logger.debug(f'Opened {self.dialect} connection to {self.options.database}')
            yield raw_conn
        finally:
            raw_conn.close()
            logger.debug(f'Released {self.dialect} connection')
