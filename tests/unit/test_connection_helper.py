"""
Unit tests for the connection handling helpers.

Tests cover:
- execute_with_connection with engines (begin or connect) and connections
- scoped_transaction with engines, fresh connections and connections that
  are already inside a transaction (SAVEPOINT)
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from checkoutflow.repositories._connection import execute_with_connection, scoped_transaction

ISINSTANCE = "checkoutflow.repositories._connection.isinstance"


def async_context(value=None):
    """An async context manager mock that yields ``value``."""
    context = AsyncMock()
    context.__aenter__.return_value = value
    context.__aexit__.return_value = None
    return context


class TestExecuteWithConnection:
    """Tests for execute_with_connection."""

    async def test_engine_transactional_uses_begin(self):
        connection = AsyncMock()
        engine = MagicMock()
        engine.begin.return_value = async_context(connection)

        with patch(ISINSTANCE, side_effect=lambda obj, cls: obj is engine):
            async with execute_with_connection(engine) as conn:
                assert conn is connection

        engine.begin.assert_called_once()
        engine.connect.assert_not_called()

    async def test_engine_read_only_uses_connect(self):
        connection = AsyncMock()
        engine = MagicMock()
        engine.connect.return_value = async_context(connection)

        with patch(ISINSTANCE, side_effect=lambda obj, cls: obj is engine):
            async with execute_with_connection(engine, transactional=False) as conn:
                assert conn is connection

        engine.connect.assert_called_once()
        engine.begin.assert_not_called()

    @pytest.mark.parametrize("transactional", [True, False])
    async def test_connection_is_passed_through(self, transactional):
        connection = MagicMock()

        async with execute_with_connection(connection, transactional=transactional) as conn:
            assert conn is connection

        connection.begin.assert_not_called()
        connection.connect.assert_not_called()

    async def test_error_reaches_transaction_exit(self):
        engine = MagicMock()
        exits = []

        async def record_exit(exc_type, exc_val, exc_tb):
            exits.append(exc_type)
            return False

        context = async_context(AsyncMock())
        context.__aexit__.side_effect = record_exit
        engine.begin.return_value = context

        with patch(ISINSTANCE, side_effect=lambda obj, cls: obj is engine):
            with pytest.raises(ValueError, match="boom"):
                async with execute_with_connection(engine):
                    raise ValueError("boom")

        assert exits == [ValueError]


class TestScopedTransaction:
    """Tests for scoped_transaction."""

    async def test_engine_gets_new_transaction(self):
        connection = AsyncMock()
        engine = MagicMock()
        engine.begin.return_value = async_context(connection)

        with patch(ISINSTANCE, side_effect=lambda obj, cls: obj is engine):
            async with scoped_transaction(engine) as conn:
                assert conn is connection

        engine.begin.assert_called_once()

    async def test_idle_connection_begins(self):
        connection = MagicMock()
        connection.in_transaction.return_value = False
        connection.begin.return_value = async_context()

        async with scoped_transaction(connection) as conn:
            assert conn is connection

        connection.begin.assert_called_once()
        connection.begin_nested.assert_not_called()

    async def test_connection_in_transaction_uses_savepoint(self):
        connection = MagicMock()
        connection.in_transaction.return_value = True
        connection.begin_nested.return_value = async_context()

        async with scoped_transaction(connection) as conn:
            assert conn is connection

        connection.begin_nested.assert_called_once()
        connection.begin.assert_not_called()

    async def test_savepoint_sees_the_error(self):
        connection = MagicMock()
        connection.in_transaction.return_value = True
        savepoint = async_context()
        connection.begin_nested.return_value = savepoint

        with pytest.raises(RuntimeError):
            async with scoped_transaction(connection):
                raise RuntimeError("order insert failed")

        exc_type = savepoint.__aexit__.call_args.args[0]
        assert exc_type is RuntimeError
