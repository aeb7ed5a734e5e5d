"""Connection pools for a read server and a write server."""

from __future__ import annotations

import signal
import threading
import time
from collections import deque
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import pymysql

from .builder import SLOW_QUERY_SECONDS, QueryBuilder
from .config import DEFAULT_LOG_PATH, Config, ConfigList
from .logger import Logger

CONNECTION_LIFETIME_SECONDS = 3600.0

_NOT_AVAILABLE = "database connection is not available"


class PoolError(Exception):
    """Raised when pools cannot be opened or closed."""


@dataclass(frozen=True)
class ExecResult:
    """Outcome of a statement that returns no rows."""

    last_insert_id: int
    rows_affected: int


def _close_quietly(connection: Any) -> None:
    with suppress(Exception):
        connection.close()


class Pool:
    """A thread-safe pool of DB-API connections made by ``connect``.

    ``max_open`` of 0 means no limit on open connections; ``max_lifetime`` of
    ``None`` means connections never expire.
    """

    def __init__(
        self,
        connect: Callable[[], Any],
        *,
        max_open: int = 0,
        max_idle: int = 2,
        max_lifetime: float | None = CONNECTION_LIFETIME_SECONDS,
        logger: Logger | None = None,
    ) -> None:
        self._connect = connect
        self.max_open = max_open
        self.max_idle = max_idle
        self.max_lifetime = max_lifetime
        self.logger = logger
        self._idle: deque[tuple[Any, float]] = deque()
        self._open = 0
        self._closed = False
        self._cond = threading.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open_connections(self) -> int:
        with self._cond:
            return self._open

    def _expired(self, created: float) -> bool:
        return self.max_lifetime is not None and time.monotonic() - created >= self.max_lifetime

    def _unavailable(self) -> ConnectionError:
        if self.logger is not None:
            self.logger.action(True, "Database connection is not available")
        return ConnectionError(_NOT_AVAILABLE)

    def _acquire(self) -> tuple[Any, float]:
        with self._cond:
            while True:
                if self._closed:
                    raise self._unavailable()
                while self._idle:
                    connection, created = self._idle.pop()
                    if self._expired(created):
                        self._open -= 1
                        _close_quietly(connection)
                        continue
                    return connection, created
                if not self.max_open or self._open < self.max_open:
                    self._open += 1
                    break
                self._cond.wait()
        try:
            connection = self._connect()
        except BaseException:
            with self._cond:
                self._open -= 1
                self._cond.notify()
            raise
        return connection, time.monotonic()

    def _release(self, connection: Any, created: float, reusable: bool) -> None:
        with self._cond:
            keep = (
                reusable
                and not self._closed
                and not self._expired(created)
                and len(self._idle) < self.max_idle
            )
            if keep:
                self._idle.append((connection, created))
            else:
                self._open -= 1
            self._cond.notify()
        if not keep:
            _close_quietly(connection)

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        connection, created = self._acquire()
        reusable = True
        try:
            yield connection
        except (pymysql.err.OperationalError, pymysql.err.InterfaceError):
            reusable = False
            raise
        finally:
            self._release(connection, created, reusable)

    def _timed_execute(self, cursor: Any, query: str, params: tuple[Any, ...]) -> None:
        start = time.perf_counter()
        cursor.execute(query, params or None)
        elapsed = time.perf_counter() - start
        if elapsed > SLOW_QUERY_SECONDS and self.logger is not None:
            self.logger.action(False, f"Slow Query: {elapsed * 1000:.3f}ms", query)

    def _ping(self) -> None:
        with self._connection() as connection:
            connection.ping(reconnect=False)

    def query(self, query: str, *params: Any) -> list[Any]:
        """Run a statement and return all of its rows."""
        with self._connection() as connection, connection.cursor() as cursor:
            self._timed_execute(cursor, query, params)
            return list(cursor.fetchall())

    def execute(self, query: str, *params: Any) -> ExecResult:
        """Run a statement and return its insert id and affected row count."""
        with self._connection() as connection, connection.cursor() as cursor:
            self._timed_execute(cursor, query, params)
            return ExecResult(cursor.lastrowid, cursor.rowcount)

    def db(self, database_name: str) -> QueryBuilder:
        """Return a query builder working in ``database_name``."""
        try:
            self.execute(f"USE `{database_name}`")
        except Exception as exc:
            if self.logger is not None:
                self.logger.action(
                    True, f"Failed to switch to database {database_name}", str(exc)
                )
        return QueryBuilder(_DatabaseConnection(self, database_name), database_name, self.logger)

    def close(self) -> None:
        """Close idle connections and refuse further use."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            self._open -= len(idle)
            self._cond.notify_all()
        first_error: Exception | None = None
        for connection, _ in idle:
            try:
                connection.close()
            except Exception as exc:
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error


class _DatabaseConnection:
    """Hands out cursors from a pool with a database selected."""

    def __init__(self, pool: Pool, database: str) -> None:
        self._pool = pool
        self._database = database

    @contextmanager
    def cursor(self) -> Iterator[Any]:
        with self._pool._connection() as connection, connection.cursor() as cursor:
            cursor.execute(f"USE `{self._database}`")
            yield cursor


@dataclass
class PoolList:
    """The read pool, the write pool and the logger they share."""

    read: Pool | None
    write: Pool | None
    logger: Logger

    def close(self) -> None:
        """Close both pools, reporting the first failure."""
        read_error = write_error = None
        if self.read is not None:
            try:
                self.read.close()
            except Exception as exc:
                read_error = exc
            self.read = None
        if self.write is not None:
            try:
                self.write.close()
            except Exception as exc:
                write_error = exc
            self.write = None
        if read_error is not None:
            self.logger.action(True, "Failed to close read pool", str(read_error))
            raise PoolError(f"Failed to close read pool: {read_error}") from read_error
        if write_error is not None:
            self.logger.action(True, "Failed to close write pool", str(write_error))
            raise PoolError(f"Failed to close write pool: {write_error}") from write_error

    def __enter__(self) -> PoolList:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _connector(config: Config) -> Callable[[], Any]:
    def connect() -> Any:
        return pymysql.connect(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            charset=config.charset,
            autocommit=True,
        )

    return connect


def _open_pool(config: Config, role: str, logger: Logger) -> Pool:
    pool = Pool(
        _connector(config),
        max_open=config.connection,
        max_idle=config.connection // 2,
        max_lifetime=CONNECTION_LIFETIME_SECONDS,
        logger=logger,
    )
    try:
        pool._ping()
    except Exception as exc:
        with suppress(Exception):
            pool.close()
        logger.init(True, f"Failed to connect {role} pool", str(exc))
        raise PoolError(f"Failed to connect {role} pool: {exc}") from exc
    return pool


def _listen_shutdown_signal(pools: PoolList) -> None:
    if threading.current_thread() is not threading.main_thread():
        return

    def handle(signum: int, frame: Any) -> None:
        with suppress(Exception):
            pools.close()
        raise SystemExit(0)

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, handle)


def open_pools(config: ConfigList | None) -> PoolList:
    """Open and check the read and write pools described by ``config``."""
    if config is None:
        raise ValueError("Config is required")
    try:
        logger = Logger(config.log_path or DEFAULT_LOG_PATH)
    except OSError as exc:
        raise PoolError(f"Failed to init logger: {exc}") from exc

    read_config = (config.read or Config()).with_defaults()
    read = _open_pool(read_config, "read", logger)

    write_config = config.write.with_defaults() if config.write is not None else read_config
    try:
        write = _open_pool(write_config, "write", logger)
    except Exception:
        with suppress(Exception):
            read.close()
        raise

    pools = PoolList(read=read, write=write, logger=logger)
    _listen_shutdown_signal(pools)
    return pools