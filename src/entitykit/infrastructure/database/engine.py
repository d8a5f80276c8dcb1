"""Database engine setup.

SQLAlchemy Core (not ORM) is used: the engine owns change tracking itself
(record sets + snapshots), so an ORM session and identity map would only
duplicate that state. Entity tables are not declared here; they are
reflected from the live database by name.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, MutableMapping
from typing import Any

from sqlalchemy import MetaData, Table, create_engine, event
from sqlalchemy.engine import Engine, make_url

_DEADLINE = "entitykit_deadline"


def create_db_engine(
    url: str,
    *,
    echo: bool = False,
    busy_timeout: float = 5.0,
    statement_timeout: float | None = None,
) -> Engine:
    """Create an engine for *url*.

    SQLite connections get WAL mode, foreign keys, and a busy timeout so a
    locked database surfaces as a conflict instead of blocking forever.

    With *statement_timeout* (seconds) the database itself cancels any
    statement that runs longer, so a write abandoned by the caller cannot
    land much later. PostgreSQL gets the ``statement_timeout`` setting;
    SQLite statements are interrupted from a progress handler.
    """
    parsed = make_url(url)
    connect_args: dict[str, Any] = {}
    backend = parsed.get_backend_name()
    is_sqlite = backend == "sqlite"
    if is_sqlite:
        connect_args["timeout"] = busy_timeout
        # Writes fan out across worker threads.
        connect_args["check_same_thread"] = False
    elif backend == "postgresql" and statement_timeout is not None:
        connect_args["options"] = f"-c statement_timeout={int(statement_timeout * 1000)}"

    engine = create_engine(url, echo=echo, connect_args=connect_args)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn: Any, record: Any) -> None:
            cursor = dbapi_conn.cursor()
            if parsed.database not in (None, "", ":memory:"):
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
            if statement_timeout is not None:
                info = record.info
                dbapi_conn.set_progress_handler(lambda: _expired(info), 1000)

        if statement_timeout is not None:
            _arm_deadlines(engine, statement_timeout)

    return engine


def _expired(info: MutableMapping[str, Any]) -> int:
    # A non-zero return makes SQLite abort the statement as "interrupted".
    deadline = info.get(_DEADLINE)
    return int(deadline is not None and time.monotonic() > deadline)


def _arm_deadlines(engine: Engine, seconds: float) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def _arm(conn: Any, *_: Any) -> None:
        conn.connection.info[_DEADLINE] = time.monotonic() + seconds

    @event.listens_for(engine, "after_cursor_execute")
    def _disarm(conn: Any, *_: Any) -> None:
        conn.connection.info.pop(_DEADLINE, None)

    @event.listens_for(engine, "handle_error")
    def _disarm_on_error(context: Any) -> None:
        if context.connection is not None:
            context.connection.connection.info.pop(_DEADLINE, None)


def reflect_tables(engine: Engine, names: Iterable[str]) -> dict[str, Table]:
    """Load table definitions for *names* from the database.

    Raises:
        sqlalchemy.exc.NoSuchTableError: If a table does not exist.
    """
    metadata = MetaData()
    return {name: Table(name, metadata, autoload_with=engine) for name in names}
