"""
Unit tests for the connection handling helper.

Tests the execute_with_connection async context manager for:
- AsyncEngine inputs in transactional and read-only mode
- Passing through AsyncConnection inputs directly
- Commit on success and rollback on error against a real SQLite engine
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from tenantstore._connection import dialect_name, execute_with_connection


class TestExecuteWithConnection:
    """Tests for execute_with_connection context manager."""

    @pytest.mark.asyncio
    async def test_with_async_engine_transactional(self):
        """AsyncEngine input with transactional=True uses begin()."""
        mock_connection = AsyncMock()
        mock_engine = MagicMock()
        mock_begin_context = AsyncMock()
        mock_begin_context.__aenter__.return_value = mock_connection
        mock_begin_context.__aexit__.return_value = None
        mock_engine.begin.return_value = mock_begin_context

        with patch(
            "tenantstore._connection.isinstance",
            side_effect=lambda obj, cls: obj is mock_engine,
        ):
            async with execute_with_connection(mock_engine, transactional=True) as conn:
                assert conn is mock_connection

        mock_engine.begin.assert_called_once()
        assert not mock_engine.connect.called

    @pytest.mark.asyncio
    async def test_with_async_engine_read_only(self):
        """AsyncEngine input with transactional=False uses connect()."""
        mock_connection = AsyncMock()
        mock_engine = MagicMock()
        mock_connect_context = AsyncMock()
        mock_connect_context.__aenter__.return_value = mock_connection
        mock_connect_context.__aexit__.return_value = None
        mock_engine.connect.return_value = mock_connect_context

        with patch(
            "tenantstore._connection.isinstance",
            side_effect=lambda obj, cls: obj is mock_engine,
        ):
            async with execute_with_connection(mock_engine, transactional=False) as conn:
                assert conn is mock_connection

        mock_engine.connect.assert_called_once()
        assert not mock_engine.begin.called

    @pytest.mark.asyncio
    async def test_with_async_connection(self):
        """AsyncConnection input is yielded as-is."""
        mock_connection = AsyncMock()

        async with execute_with_connection(mock_connection, transactional=False) as conn:
            assert conn is mock_connection

        assert not mock_connection.begin.called
        assert not mock_connection.connect.called


class TestExecuteWithConnectionSQLite:
    """Behaviour against a real SQLite engine."""

    @pytest_asyncio.fixture
    async def engine(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/helper.db")
        async with engine.begin() as conn:
            await conn.execute(text("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)"))
        yield engine
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_commit_on_success(self, engine):
        async with execute_with_connection(engine) as conn:
            await conn.execute(text("INSERT INTO items (name) VALUES ('a')"))

        async with execute_with_connection(engine, transactional=False) as conn:
            count = (await conn.execute(text("SELECT COUNT(*) FROM items"))).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, engine):
        with pytest.raises(ValueError, match="boom"):
            async with execute_with_connection(engine) as conn:
                await conn.execute(text("INSERT INTO items (name) VALUES ('a')"))
                raise ValueError("boom")

        async with execute_with_connection(engine, transactional=False) as conn:
            count = (await conn.execute(text("SELECT COUNT(*) FROM items"))).scalar_one()
        assert count == 0

    @pytest.mark.asyncio
    async def test_dialect_name(self, engine):
        assert dialect_name(engine) == "sqlite"
        async with engine.connect() as conn:
            assert dialect_name(conn) == "sqlite"
