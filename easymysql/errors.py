"""
Exceptions raised by the easymysql facade.

Errors reported by the driver for a failed statement are not wrapped; they
reach the caller as PyMySQL ``MySQLError`` subclasses.
"""


class MySQLError(Exception):
    """Base exception for easymysql errors."""
    pass


class ConnectError(MySQLError):
    """The driver failed to open the connection or pool."""
    pass


class NotConnectedError(MySQLError):
    """An operation was attempted without an active connection."""
    pass


class ValidationError(MySQLError):
    """A write helper was given input it cannot turn into safe SQL."""
    pass


class PoolExhaustedError(MySQLError):
    """No pooled connection is free and the caller may not wait for one."""
    pass
