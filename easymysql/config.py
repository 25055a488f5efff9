"""
Connection settings for the MySQL facade.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


@dataclass
class PoolConfig:
    """Settings used when the facade wraps a connection pool."""
    wait_for_connections: bool = True
    connection_limit: int = 10
    queue_limit: int = 0  # 0 = unlimited

    def __post_init__(self) -> None:
        if self.connection_limit < 1:
            raise ValueError("connection_limit must be at least 1")
        if self.queue_limit < 0:
            raise ValueError("queue_limit must not be negative")


@dataclass
class MySQLConfig:
    """Connection settings. Every field has a usable default."""
    host: str = '127.0.0.1'
    port: int = 3306
    user: str = 'root'
    password: str = ''
    database: Optional[str] = None
    charset: str = 'utf8mb4'
    pool: Optional[PoolConfig] = None

    @property
    def use_pool(self) -> bool:
        return self.pool is not None

    @classmethod
    def from_env(cls, prefix: str = 'MYSQL_',
                 environ: Optional[Mapping[str, str]] = None) -> 'MySQLConfig':
        """
        Build a config from environment variables.

        Reads ``<prefix>HOST``, ``PORT``, ``USER``, ``PASSWORD``, ``DATABASE``
        and ``CHARSET``. When ``<prefix>POOL`` is truthy, pool settings are
        read from ``POOL_WAIT``, ``POOL_LIMIT`` and ``POOL_QUEUE_LIMIT``.
        Unset variables keep the defaults.

        Args:
            prefix: Variable name prefix
            environ: Mapping to read from (defaults to os.environ)
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(prefix + name)
            return value if value else None

        defaults = cls()
        pool = None
        if (get('POOL') or '').lower() in _TRUE_VALUES:
            pool_defaults = PoolConfig()
            wait = get('POOL_WAIT')
            pool = PoolConfig(
                wait_for_connections=(wait.lower() in _TRUE_VALUES
                                      if wait is not None
                                      else pool_defaults.wait_for_connections),
                connection_limit=int(get('POOL_LIMIT') or pool_defaults.connection_limit),
                queue_limit=int(get('POOL_QUEUE_LIMIT') or pool_defaults.queue_limit),
            )

        return cls(
            host=get('HOST') or defaults.host,
            port=int(get('PORT') or defaults.port),
            user=get('USER') or defaults.user,
            password=get('PASSWORD') or defaults.password,
            database=get('DATABASE') or defaults.database,
            charset=get('CHARSET') or defaults.charset,
            pool=pool,
        )
