# ==============================================================================
# Tests for Database Utilities — utils/db.py
# ==============================================================================
"""
Tests for schema template rendering and schema initialization.
"""

from unittest.mock import patch

import psycopg2
import pytest

from eventstream.utils.config import PostgresSettings, Settings
from eventstream.utils.db import ensure_schema, render_schema_sql


def test_render_substitutes_schema_name():
    sql = render_schema_sql("tenant_a")

    assert "CREATE SCHEMA IF NOT EXISTS tenant_a;" in sql
    assert "tenant_a.events" in sql
    assert "tenant_a.sessions" in sql
    assert "{{" not in sql


def test_events_unique_on_message_id():
    sql = render_schema_sql("analytics")
    assert "events_message_id_key UNIQUE (message_id)" in sql


class TestEnsureSchema:
    """Tests for ensure_schema with a mocked connection."""

    @pytest.fixture()
    def settings(self):
        return Settings(postgres=PostgresSettings(schema_name="analytics_test"))

    def test_executes_rendered_sql(self, settings):
        with patch("eventstream.utils.db.psycopg2.connect") as connect:
            ensure_schema(settings)

        conn = connect.return_value
        cursor = conn.cursor.return_value.__enter__.return_value
        (sql,) = cursor.execute.call_args.args
        assert "analytics_test.events" in sql
        conn.commit.assert_called_once()
        conn.close.assert_called_once()

    def test_ddl_failure_rolls_back(self, settings):
        with patch("eventstream.utils.db.psycopg2.connect") as connect:
            conn = connect.return_value
            cursor = conn.cursor.return_value.__enter__.return_value
            cursor.execute.side_effect = psycopg2.ProgrammingError("syntax error")

            with pytest.raises(RuntimeError, match="syntax error"):
                ensure_schema(settings)

        conn.rollback.assert_called_once()
        conn.close.assert_called_once()
