"""
easymysql - async convenience layer for MySQL

Turns the common statements into coroutine calls over an aiomysql
connection or pool.

Usage:
    from easymysql import MySQL

    db = MySQL(host='localhost', database='test')
    await db.connect()

    # All rows, rows keyed by a column, or just the first row
    users = await db.select('SELECT * FROM users LIMIT 10')
    by_id = await db.select('SELECT * FROM users LIMIT 10', 'id')
    user = await db.select('SELECT * FROM users LIMIT 1', True)

    # Write helpers build the SQL and escape values through the driver
    new_id = await db.insert('users', {'name': 'Alice', 'email': None})
    changed = await db.update('users', {'name': 'Bob'}, {'id': new_id})
    removed = await db.delete('users', 'id > 100')

    await db.close()
"""

from .client import MySQL, QueryResult, WriteResult
from .config import MySQLConfig, PoolConfig
from .errors import (ConnectError, MySQLError, NotConnectedError,
                     PoolExhaustedError, ValidationError)

__version__ = '0.1.0'
__all__ = [
    'MySQL', 'QueryResult', 'WriteResult', 'MySQLConfig', 'PoolConfig',
    'MySQLError', 'ConnectError', 'NotConnectedError', 'ValidationError',
    'PoolExhaustedError',
]
