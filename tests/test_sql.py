"""
Tests for the SQL builders.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pymysql.converters import escape_item

from easymysql import ValidationError
from easymysql.sql import (build_delete, build_insert, build_update,
                           build_where, format_datetime, quote_identifier)


def escape(value):
    return escape_item(value, 'utf8mb4')


class TestQuoting:
    """Tests for identifier quoting and date formatting."""

    def test_quote_identifier(self):
        assert quote_identifier('users') == '`users`'

    def test_quote_identifier_doubles_backticks(self):
        assert quote_identifier('we`ird') == '`we``ird`'

    def test_format_naive_datetime(self):
        assert format_datetime(datetime(2024, 3, 5, 7, 8, 9)) == '2024-03-05 07:08:09'

    def test_format_aware_datetime_converts_to_utc(self):
        value = datetime(2024, 1, 1, 2, 30, 0, tzinfo=timezone(timedelta(hours=3)))
        assert format_datetime(value) == '2023-12-31 23:30:00'

    def test_format_date(self):
        assert format_datetime(date(2024, 12, 31)) == '2024-12-31 00:00:00'


class TestWhere:
    """Tests for where-clause resolution."""

    def test_raw_string(self):
        assert build_where('id = 1', escape) == 'id = 1'

    def test_mapping_joined_with_and(self):
        assert build_where({'id': 1, 'name': 'a'}, escape) == "`id` = 1 AND `name` = 'a'"

    def test_mapping_none_is_null_test(self):
        assert build_where({'deleted_at': None}, escape) == '`deleted_at` IS NULL'

    @pytest.mark.parametrize('where', [None, '', '   ', {}])
    def test_empty(self, where):
        assert build_where(where, escape) == ''


class TestInsert:
    """Tests for INSERT building."""

    def test_single_row(self):
        sql = build_insert('t', {'name': 'a'}, escape)
        assert sql == "INSERT INTO `t` (`name`) VALUES ('a')"

    def test_single_row_matches_one_element_list(self):
        row = {'name': 'a', 'email': 'a@test.com'}
        assert build_insert('t', row, escape) == build_insert('t', [row], escape)

    def test_many_rows(self):
        sql = build_insert('users', [
            {'name': 'test2', 'email': 'test2@test.com'},
            {'name': 'test3', 'email': 'test3@test.com'},
        ], escape)
        assert sql == (
            "INSERT INTO `users` (`name`, `email`) VALUES "
            "('test2', 'test2@test.com'), ('test3', 'test3@test.com')"
        )

    def test_explicit_columns_skip_other_keys(self):
        sql = build_insert('users', {'skip': 0.5, 'name': 'x'}, escape, columns=['name'])
        assert sql == "INSERT INTO `users` (`name`) VALUES ('x')"

    def test_bare_column_name_is_one_column(self):
        sql = build_insert('users', {'skip': 0.5, 'name': 'x'}, escape, columns='name')
        assert sql == "INSERT INTO `users` (`name`) VALUES ('x')"

    def test_none_is_null_keyword(self):
        sql = build_insert('users', {'name': 'x', 'email': None}, escape)
        assert sql.endswith("VALUES ('x', NULL)")
        assert "'None'" not in sql
        assert "'null'" not in sql

    def test_missing_key_is_null(self):
        sql = build_insert('users', [{'name': 'a', 'email': 'e'}, {'name': 'b'}], escape)
        assert sql.endswith("('a', 'e'), ('b', NULL)")

    def test_ignore(self):
        sql = build_insert('t', {'name': 'a'}, escape, ignore=True)
        assert sql.startswith('INSERT IGNORE INTO `t`')

    def test_values_are_escaped(self):
        sql = build_insert('t', {'name': "O'Brien"}, escape)
        assert sql == "INSERT INTO `t` (`name`) VALUES ('O\\'Brien')"

    def test_no_columns(self):
        with pytest.raises(ValidationError, match='No columns set'):
            build_insert('t', {}, escape)

    def test_empty_list(self):
        with pytest.raises(ValidationError, match='No columns set'):
            build_insert('t', [], escape)


class TestUpdate:
    """Tests for UPDATE building."""

    def test_null_with_mapping_where(self):
        sql = build_update('t', {'name': None}, {'id': 1}, escape)
        assert sql == 'UPDATE `t` SET `name` = NULL WHERE `id` = 1'

    def test_raw_where(self):
        sql = build_update('users', {'name': 'n', 'email': 'e'}, 'id = 1', escape)
        assert sql == "UPDATE `users` SET `name` = 'n', `email` = 'e' WHERE id = 1"

    def test_explicit_columns(self):
        sql = build_update('users', {'skip': 1, 'name': 'n'}, 'id = 5', escape, columns=['name'])
        assert sql == "UPDATE `users` SET `name` = 'n' WHERE id = 5"

    @pytest.mark.parametrize('where', [None, '', {}])
    def test_empty_where_refused(self, where):
        with pytest.raises(ValidationError, match='Cannot update without a where clause'):
            build_update('t', {'name': 'a'}, where, escape)

    def test_no_columns(self):
        with pytest.raises(ValidationError, match='No columns set'):
            build_update('t', {}, 'id = 1', escape)


class TestDelete:
    """Tests for DELETE building."""

    def test_raw_where(self):
        assert build_delete('users', 'id = 10', escape) == 'DELETE FROM `users` WHERE id = 10'

    def test_mapping_where(self):
        assert build_delete('users', {'id': 9}, escape) == 'DELETE FROM `users` WHERE `id` = 9'

    @pytest.mark.parametrize('where', [None, '', {}])
    def test_empty_where_refused(self, where):
        with pytest.raises(ValidationError, match='Cannot delete without a where clause'):
            build_delete('t', where, escape)
