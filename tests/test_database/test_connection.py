"""Tests for database connection management."""

from sqlalchemy import inspect, text

from uptimer.database.connection import DatabaseManager


class TestDatabaseManager:
    """Tests for DatabaseManager."""

    def test_engine_is_lazy(self, test_db_url):
        """Test no engine is created until first use."""
        manager = DatabaseManager(test_db_url)

        assert manager._engine is None
        assert manager.engine is manager.engine

    def test_create_all_tables(self, db):
        """Test the pipeline tables are created."""
        tables = set(inspect(db.engine).get_table_names())

        assert {"endpoints", "regions", "check_results"} <= tables

    def test_sqlite_foreign_keys_enabled(self, db):
        """Test SQLite connections enforce foreign keys."""
        session = db.get_session()
        try:
            assert session.execute(text("PRAGMA foreign_keys")).scalar() == 1
        finally:
            session.close()

    def test_dispose_resets_engine(self, test_db_url):
        """Test dispose releases the engine so it can be recreated."""
        manager = DatabaseManager(test_db_url)
        first = manager.engine

        manager.dispose()

        assert manager._engine is None
        assert manager.engine is not first
        manager.dispose()
