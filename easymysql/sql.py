"""
SQL text builders used by the write helpers.

The builders never escape values themselves. They take an ``escape``
callable (normally ``MySQL.escape``, which defers to the driver) and only
special-case ``None``, which is always written as the bare ``NULL`` keyword.
"""

from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from .errors import ValidationError

Row = Mapping[str, Any]
Where = Union[str, Mapping[str, Any], None]
Escape = Callable[[Any], str]


def quote_identifier(name: str) -> str:
    """Wrap a table or column name in backticks."""
    return '`' + str(name).replace('`', '``') + '`'


def format_datetime(value: date) -> str:
    """Format a date or datetime as ``YYYY-MM-DD HH:MM:SS`` in UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime('%Y-%m-%d %H:%M:%S')
    return value.strftime('%Y-%m-%d') + ' 00:00:00'


def render_value(value: Any, escape: Escape) -> str:
    if value is None:
        return 'NULL'
    return escape(value)


def column_list(columns: Union[str, Sequence[str]]) -> list[str]:
    """A bare column name counts as a one-element list."""
    if isinstance(columns, str):
        return [columns]
    return list(columns)


def build_where(where: Where, escape: Escape) -> str:
    """
    Resolve a where-clause.

    A string is used as a raw SQL fragment. A mapping becomes ``col = value``
    tests joined with AND (``col IS NULL`` for None values). Returns an empty
    string when nothing was given.
    """
    if where is None:
        return ''
    if isinstance(where, Mapping):
        parts = []
        for column, value in where.items():
            if value is None:
                parts.append(f'{quote_identifier(column)} IS NULL')
            else:
                parts.append(f'{quote_identifier(column)} = {escape(value)}')
        return ' AND '.join(parts)
    return str(where).strip()


def build_insert(table: str,
                 data: Union[Row, Sequence[Row]],
                 escape: Escape,
                 columns: Optional[Sequence[str]] = None,
                 ignore: bool = False) -> str:
    """
    Build an INSERT for one row or many.

    Args:
        table: Table name
        data: A row mapping or a sequence of row mappings
        escape: Value escaping callable
        columns: Columns to write (default: keys of the first row)
        ignore: Emit INSERT IGNORE

    Raises:
        ValidationError: If the column list resolves to empty
    """
    rows = [data] if isinstance(data, Mapping) else list(data)
    if columns is None:
        columns = list(rows[0].keys()) if rows else []
    columns = column_list(columns)

    if not columns:
        raise ValidationError("No columns set.")
    if not rows:
        raise ValidationError("No rows to insert.")

    cols = ', '.join(quote_identifier(c) for c in columns)
    values = ', '.join(
        '(' + ', '.join(render_value(row.get(c), escape) for c in columns) + ')'
        for row in rows
    )
    verb = 'INSERT IGNORE INTO' if ignore else 'INSERT INTO'
    return f'{verb} {quote_identifier(table)} ({cols}) VALUES {values}'


def build_update(table: str,
                 data: Row,
                 where: Where,
                 escape: Escape,
                 columns: Optional[Sequence[str]] = None) -> str:
    """
    Build an UPDATE. Unconditional updates are refused.

    Raises:
        ValidationError: If the where-clause or the column list is empty
    """
    condition = build_where(where, escape)
    if not condition:
        raise ValidationError("Cannot update without a where clause.")

    data = data or {}
    columns = list(data.keys()) if columns is None else column_list(columns)
    if not columns:
        raise ValidationError("No columns set.")

    assignments = ', '.join(
        f'{quote_identifier(c)} = {render_value(data.get(c), escape)}'
        for c in columns
    )
    return f'UPDATE {quote_identifier(table)} SET {assignments} WHERE {condition}'


def build_delete(table: str, where: Where, escape: Escape) -> str:
    """
    Build a DELETE. Unconditional deletes are refused.

    Raises:
        ValidationError: If the where-clause is empty
    """
    condition = build_where(where, escape)
    if not condition:
        raise ValidationError("Cannot delete without a where clause.")
    return f'DELETE FROM {quote_identifier(table)} WHERE {condition}'
