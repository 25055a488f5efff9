"""
easymysql client - async convenience layer over the aiomysql driver.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence, Union

import aiomysql
from pymysql.constants import CR
from pymysql.converters import escape_item
from pymysql.err import MySQLError as DriverError

from .config import MySQLConfig, PoolConfig
from .errors import ConnectError, MySQLError, NotConnectedError, PoolExhaustedError
from .sql import (Row, Where, build_delete, build_insert, build_update,
                  format_datetime, quote_identifier)

logger = logging.getLogger(__name__)

_LOST_CONNECTION_CODES = (CR.CR_SERVER_GONE_ERROR, CR.CR_SERVER_LOST)

# Handed to the driver escape as-is; anything else is coerced with str().
# bool is covered by int.
_NATIVE_TYPES = (str, bytes, bytearray, int, float, Decimal)


@dataclass
class QueryResult:
    """Rows returned by a statement that produces a result set."""
    columns: list[str]
    rows: list[dict[str, Any]]

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, index: int) -> dict[str, Any]:
        return self.rows[index]


@dataclass
class WriteResult:
    """Outcome of a statement that does not return rows."""
    insert_id: Optional[int] = None
    affected_rows: Optional[int] = None


class MySQL:
    """
    Async MySQL facade over one connection or one pool.

    Example:
        db = MySQL(host='localhost', database='test')
        await db.connect()
        users = await db.select('SELECT * FROM users', 'id')
        new_id = await db.insert('users', {'name': 'Alice'})
        await db.close()
    """

    def __init__(self,
                 host: str = '127.0.0.1',
                 port: int = 3306,
                 user: str = 'root',
                 password: str = '',
                 database: Optional[str] = None,
                 charset: str = 'utf8mb4',
                 pool: Union[bool, PoolConfig, None] = None):
        """
        Initialize the facade. Nothing is opened until connect().

        Args:
            host: Server hostname
            port: Server port (default 3306)
            user: User name
            password: Password
            database: Default database, selected after connecting
            charset: Connection character set
            pool: True or a PoolConfig to wrap a connection pool
        """
        if pool is True:
            pool = PoolConfig()
        elif pool is False:
            pool = None

        self.config = MySQLConfig(host=host, port=port, user=user,
                                  password=password, database=database,
                                  charset=charset, pool=pool)
        self._connection: Optional[aiomysql.Connection] = None
        self._pool: Optional[aiomysql.Pool] = None
        self._parent: Optional[aiomysql.Pool] = None
        self._waiting = 0
        # One statement at a time on a single connection.
        self._lock = asyncio.Lock()
        self._listeners: dict[str, list[Callable[..., Any]]] = {}

    @classmethod
    def from_config(cls, config: MySQLConfig) -> 'MySQL':
        return cls(host=config.host, port=config.port, user=config.user,
                   password=config.password, database=config.database,
                   charset=config.charset, pool=config.pool)

    @classmethod
    def from_env(cls, prefix: str = 'MYSQL_') -> 'MySQL':
        return cls.from_config(MySQLConfig.from_env(prefix))

    @property
    def connected(self) -> bool:
        return self._connection is not None or self._pool is not None

    # -- lifecycle ---------------------------------------------------------

    async def connect(self) -> 'MySQL':
        """
        Open the connection (or pool). Does nothing if already connected.

        Returns:
            self for method chaining

        Raises:
            ConnectError: If the driver cannot open the connection
        """
        if self.connected:
            return self

        if self._parent is not None:
            self._connection = await self._parent.acquire()
        elif self.config.use_pool:
            await self._create_pool()
        else:
            await self._open_connection()
        return self

    async def _open_connection(self) -> None:
        cfg = self.config
        logger.info(f"Connecting to MySQL at {cfg.host}:{cfg.port} as {cfg.user}")
        try:
            self._connection = await aiomysql.connect(
                host=cfg.host,
                port=cfg.port,
                user=cfg.user,
                password=cfg.password,
                charset=cfg.charset,
                autocommit=True,
            )
        except (DriverError, OSError) as e:
            raise ConnectError(f"Could not connect to {cfg.host}:{cfg.port}: {e}") from e

        if cfg.database:
            try:
                await self.query(f'USE {quote_identifier(cfg.database)}')
            except DriverError:
                await self.close()
                raise
        logger.info("Connected to MySQL")

    async def _create_pool(self) -> None:
        cfg = self.config
        logger.info(
            f"Creating MySQL pool for {cfg.host}:{cfg.port} "
            f"(limit: {cfg.pool.connection_limit})"
        )
        try:
            self._pool = await aiomysql.create_pool(
                host=cfg.host,
                port=cfg.port,
                user=cfg.user,
                password=cfg.password,
                db=cfg.database,
                charset=cfg.charset,
                autocommit=True,
                minsize=1,
                maxsize=cfg.pool.connection_limit,
            )
        except (DriverError, OSError) as e:
            raise ConnectError(f"Could not create pool for {cfg.host}:{cfg.port}: {e}") from e

    async def close(self) -> None:
        """Close the connection or pool. Allocated handles are released instead."""
        if self._parent is not None:
            await self.release()
            return

        if self._connection is not None:
            connection, self._connection = self._connection, None
            try:
                await connection.ensure_closed()
            except (DriverError, OSError):
                connection.close()
            logger.info("Disconnected from MySQL")

        if self._pool is not None:
            pool, self._pool = self._pool, None
            pool.close()
            await pool.wait_closed()
            logger.info("MySQL pool closed")

    async def end(self) -> None:
        """Alias for close()."""
        await self.close()

    async def __aenter__(self) -> 'MySQL':
        return await self.connect()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -- pool --------------------------------------------------------------

    async def allocate(self) -> 'MySQL':
        """
        Check out one pooled connection and wrap it in its own handle.

        The returned handle owns the connection until release() or close().

        Raises:
            MySQLError: If this handle is not in pool mode
            NotConnectedError: If the pool has not been created
            PoolExhaustedError: If no connection is free and waiting is disabled
        """
        if not self.config.use_pool or self._parent is not None:
            raise MySQLError("allocate() requires a pool-backed handle")
        if self._pool is None:
            raise NotConnectedError("Not connected to db. Call connect() first.")

        handle = MySQL.from_config(self.config)
        handle._parent = self._pool
        handle._connection = await self._acquire()
        return handle

    async def release(self) -> None:
        """Return an allocated connection to its pool."""
        if self._parent is None:
            raise MySQLError("Only handles created by allocate() can be released")
        if self._connection is not None:
            connection, self._connection = self._connection, None
            self._parent.release(connection)

    async def _acquire(self) -> aiomysql.Connection:
        pool = self._pool
        policy = self.config.pool
        busy = pool.freesize == 0 and pool.size >= pool.maxsize

        if busy:
            if not policy.wait_for_connections:
                raise PoolExhaustedError("No free connection in pool")
            if policy.queue_limit and self._waiting >= policy.queue_limit:
                raise PoolExhaustedError(
                    f"Connection queue limit reached ({policy.queue_limit})")
            self._waiting += 1
        try:
            return await pool.acquire()
        finally:
            if busy:
                self._waiting -= 1

    # -- events ------------------------------------------------------------

    def on(self, event: str, listener: Callable[..., Any]) -> 'MySQL':
        """
        Register a listener.

        The only event emitted is ``close``: the connection was lost without
        close() being called. The listener receives the driver error.
        """
        self._listeners.setdefault(event, []).append(listener)
        return self

    def off(self, event: str, listener: Callable[..., Any]) -> 'MySQL':
        """Remove a listener registered with on()."""
        try:
            self._listeners.get(event, []).remove(listener)
        except ValueError:
            pass
        return self

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception as e:
                logger.warning(f"Listener for '{event}' failed: {e}")

    def _connection_lost(self, connection: aiomysql.Connection, error: DriverError) -> None:
        logger.warning(f"MySQL connection closed unexpectedly: {error}")
        self._connection = None
        if self._parent is not None:
            self._parent.release(connection)
        self._emit('close', error)

    # -- executor ----------------------------------------------------------

    async def query(self, sql: str) -> Union[QueryResult, WriteResult]:
        """
        Execute a SQL statement as-is.

        Args:
            sql: Complete SQL statement

        Returns:
            QueryResult for statements returning rows, WriteResult otherwise

        Raises:
            NotConnectedError: If there is no connection or pool
        """
        if self._connection is not None:
            async with self._lock:
                if self._connection is None:
                    raise NotConnectedError("Connection was closed while waiting.")
                return await self._execute(self._connection, sql)

        if self._pool is not None:
            connection = await self._acquire()
            try:
                return await self._execute(connection, sql)
            finally:
                self._pool.release(connection)

        raise NotConnectedError("Not connected to db. Call connect() first.")

    async def _execute(self, connection: aiomysql.Connection,
                       sql: str) -> Union[QueryResult, WriteResult]:
        logger.debug(f"Executing: {sql}")
        try:
            async with connection.cursor(aiomysql.DictCursor) as cursor:
                await cursor.execute(sql)

                if cursor.description is None:
                    rowcount = cursor.rowcount
                    return WriteResult(
                        insert_id=cursor.lastrowid or None,
                        affected_rows=rowcount if rowcount is not None and rowcount >= 0 else None,
                    )

                columns = [column[0] for column in cursor.description]
                rows = await cursor.fetchall()
                return QueryResult(columns=columns, rows=list(rows))
        except DriverError as e:
            if connection is self._connection and self._is_lost(connection, e):
                self._connection_lost(connection, e)
            raise

    @staticmethod
    def _is_lost(connection: aiomysql.Connection, error: DriverError) -> bool:
        if error.args and error.args[0] in _LOST_CONNECTION_CODES:
            return True
        return bool(getattr(connection, 'closed', False))

    # -- read helper -------------------------------------------------------

    async def select(self, sql: str,
                     key: Union[str, bool, None] = None,
                     first: bool = False) -> Any:
        """
        Run a SELECT and shape its rows.

        Args:
            sql: SELECT statement
            key: Column to key the result by. A bool here is taken as ``first``.
            first: Return only the first row

        Returns:
            - with a key: dict of key value -> row ({} when empty)
            - with first: the first row or None
            - otherwise: the list of rows or None when empty
        """
        if isinstance(key, bool):
            key, first = None, key
        if key:
            first = False

        result = await self.query(sql)
        rows = list(result) if isinstance(result, QueryResult) else []

        if key:
            mapped = {}
            for row in rows:
                if row is not None and key in row:
                    mapped[row[key]] = row
            return mapped

        if first:
            return rows[0] if rows else None
        return rows or None

    async def select_row(self, sql: str) -> Optional[dict[str, Any]]:
        """Return the first row of a SELECT, or None."""
        return await self.select(sql, first=True)

    async def get_by_id(self, table: str, id: Any) -> Optional[dict[str, Any]]:
        """Fetch one row by its integer ``id`` column. Non-numeric ids give None."""
        try:
            id = int(id)
        except (TypeError, ValueError):
            return None
        return await self.select_row(
            f'SELECT * FROM {quote_identifier(table)} WHERE `id` = {id} LIMIT 1')

    # -- write helpers -----------------------------------------------------

    async def insert(self, table: str,
                     data: Union[Row, Sequence[Row]],
                     columns: Union[Sequence[str], bool, None] = None,
                     ignore: bool = False) -> Optional[int]:
        """
        Insert one row or many.

        Args:
            table: Table name
            data: Row mapping or sequence of row mappings
            columns: Columns to write (default: keys of the first row).
                A bool here is taken as ``ignore``.
            ignore: Use INSERT IGNORE

        Returns:
            The generated id, or None if the driver reported none

        Raises:
            ValidationError: If no columns could be resolved
        """
        if isinstance(columns, bool):
            columns, ignore = None, columns

        sql = build_insert(table, data, self.escape, columns=columns, ignore=ignore)
        return self._insert_id(await self.query(sql))

    async def update(self, table: str,
                     data: Row,
                     columns: Union[Sequence[str], Where] = None,
                     where: Where = None) -> Optional[int]:
        """
        Update rows matching a where-clause.

        Called as ``update(table, data, where)`` when the third argument is a
        string or a mapping.

        Args:
            table: Table name
            data: Column -> new value
            columns: Columns of ``data`` to write (default: all keys)
            where: Raw condition or column -> value mapping (ANDed)

        Returns:
            Affected row count, or None if the driver reported none

        Raises:
            ValidationError: If the where-clause is empty
        """
        if where is None and isinstance(columns, (str, Mapping)):
            columns, where = None, columns

        sql = build_update(table, data, where, self.escape, columns=columns)
        return self._affected_rows(await self.query(sql))

    async def delete(self, table: str, where: Where) -> Optional[int]:
        """
        Delete rows matching a where-clause.

        Raises:
            ValidationError: If the where-clause is empty
        """
        sql = build_delete(table, where, self.escape)
        return self._affected_rows(await self.query(sql))

    # -- escaping ----------------------------------------------------------

    def escape(self, value: Any) -> str:
        """
        Render a value as a SQL literal using the driver's escaping.

        Dates are written as ``YYYY-MM-DD HH:MM:SS`` in UTC first.

        Raises:
            NotConnectedError: If there is no connection or pool
        """
        if isinstance(value, date):
            value = format_datetime(value)
        elif value is not None and not isinstance(value, _NATIVE_TYPES):
            value = str(value)

        if self._connection is not None:
            return self._connection.escape(value)
        if self._pool is not None:
            return escape_item(value, self.config.charset)
        raise NotConnectedError("Not connected to db. Call connect() first.")

    @staticmethod
    def _insert_id(result: Union[QueryResult, WriteResult]) -> Optional[int]:
        if isinstance(result, WriteResult) and result.insert_id:
            return result.insert_id
        return None

    @staticmethod
    def _affected_rows(result: Union[QueryResult, WriteResult]) -> Optional[int]:
        if isinstance(result, WriteResult):
            return result.affected_rows
        return None
