# =======================================================================================
# roomtrack/database.py - Database Management
# =======================================================================================
import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import QueuePool
from .config import config
from .models.tables import metadata
from .utils.deadline import Deadline

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages database connections and transactions."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or config.DB_URL
        options = dict(
            poolclass=QueuePool,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
            future=True,
        )
        if self.url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
        else:
            options["isolation_level"] = "READ COMMITTED"
        self.engine: Engine = create_engine(self.url, **options)
        if self.engine.dialect.name == "sqlite":
            self._enable_sqlite_savepoints()

    def _enable_sqlite_savepoints(self) -> None:
        # pysqlite manages BEGIN itself and breaks SAVEPOINT; let SQLAlchemy emit it
        @event.listens_for(self.engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(self.engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    def create_schema(self) -> None:
        """Create any missing tables."""
        metadata.create_all(self.engine)

    @contextmanager
    def get_connection(self) -> Iterator[Connection]:
        """Get a database connection with automatic cleanup."""
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def transaction(self, deadline: Optional[Deadline] = None) -> Iterator[Connection]:
        """
        One transaction bounded by a deadline.

        The deadline is checked again right before commit; an expired deadline
        raises DeadlineExceededError inside the block, so nothing is committed.
        """
        with self.engine.begin() as conn:
            if deadline is not None:
                deadline.check()
                self._apply_statement_timeout(conn, deadline)
            yield conn
            if deadline is not None:
                deadline.check()

    def _apply_statement_timeout(self, conn: Connection, deadline: Deadline) -> None:
        if conn.dialect.name != "mysql":
            return
        ms = max(1, int(deadline.remaining() * 1000))
        conn.execute(text("SET SESSION max_execution_time = :ms"), {"ms": ms})

    def fetch_one(self, query: str, params: dict = None):
        """Fetch a single result."""
        with self.get_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().first()

    def dispose(self) -> None:
        self.engine.dispose()

# Global database instance
db_manager = DatabaseManager()
