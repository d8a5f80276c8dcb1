"""SQLAlchemy Core table store.

Each write runs in its own ``engine.begin()`` transaction so that one row's
failure never rolls back a sibling row. DB-API errors are mapped onto
:class:`FailureReason` values instead of propagating.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, delete, exists, insert, select, text, update
from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.sql.elements import ClauseElement

from entitykit.domain.types import FailureReason
from entitykit.infrastructure.stores.base import (
    StoreQueryError,
    StoreTimeoutError,
    StoreUnreachableError,
    WriteResult,
)

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement, Connection, Table
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

_BUSY_MARKERS = ("locked", "busy", "deadlock", "could not serialize")
_TIMEOUT_MARKERS = ("interrupted", "statement timeout")


def classify_db_error(exc: SQLAlchemyError) -> FailureReason:
    """Map a SQLAlchemy exception onto a write failure reason."""
    if isinstance(exc, IntegrityError):
        return FailureReason.CONSTRAINT_VIOLATION
    if isinstance(exc, OperationalError):
        text_ = str(getattr(exc, "orig", None) or exc).lower()
        if any(marker in text_ for marker in _TIMEOUT_MARKERS):
            return FailureReason.TIMEOUT
        if any(marker in text_ for marker in _BUSY_MARKERS):
            return FailureReason.CONFLICT
        return FailureReason.UNREACHABLE
    if isinstance(exc, (InterfaceError, DisconnectionError)):
        return FailureReason.UNREACHABLE
    return FailureReason.ERROR


class SqlTableStore:
    """Backing store over one SQLAlchemy ``Table``."""

    def __init__(
        self,
        engine: Engine,
        table: Table,
        identity_fields: tuple[str, ...],
        *,
        name: str | None = None,
    ) -> None:
        self._engine = engine
        self.table = table
        self.identity_fields = identity_fields
        self.name = name or table.name
        missing = [f for f in identity_fields if f not in table.c]
        if missing:
            msg = f"Table {table.name!r} has no column(s): {', '.join(missing)}"
            raise ValueError(msg)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def query(self, filter: Any = None) -> list[dict[str, Any]]:
        """Select rows matching *filter*, ordered by identity.

        *filter* may be None, a mapping of column equalities, a SQL text
        fragment, or a SQLAlchemy clause.
        """
        stmt = select(self.table)
        if filter is not None:
            stmt = stmt.where(self._where(filter))
        stmt = stmt.order_by(*(self.table.c[f] for f in self.identity_fields))

        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except (OperationalError, InterfaceError, DisconnectionError) as exc:
            detail = getattr(exc, "orig", None) or exc
            if classify_db_error(exc) == FailureReason.TIMEOUT:
                raise StoreTimeoutError(f"{self.name}: {detail}") from exc
            raise StoreUnreachableError(f"{self.name}: {detail}") from exc
        except SQLAlchemyError as exc:
            raise StoreQueryError(f"{self.name}: {exc}") from exc
        return [dict(row) for row in rows]

    def _where(self, filter: Any) -> ColumnElement[bool]:
        if isinstance(filter, ClauseElement):
            return filter  # type: ignore[return-value]
        if isinstance(filter, str):
            return text(filter)  # type: ignore[return-value]
        if isinstance(filter, Mapping):
            unknown = [name for name in filter if name not in self.table.c]
            if unknown:
                msg = f"{self.name}: unknown filter column(s): {', '.join(unknown)}"
                raise StoreQueryError(msg)
            return and_(*(self.table.c[name] == value for name, value in filter.items()))
        msg = f"{self.name}: unsupported filter type {type(filter).__name__}"
        raise StoreQueryError(msg)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def insert(self, values: Mapping[str, Any]) -> WriteResult:
        stmt = insert(self.table).values(**self._known(values))
        return self._write(stmt, check_rowcount=False)

    def update(
        self,
        identity: Mapping[str, Any],
        values: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        known = self._known(values)
        if not known:
            return WriteResult.success()
        stmt = update(self.table).where(self._keyed(identity, expected)).values(**known)
        return self._write(stmt, identity=identity)

    def delete(
        self,
        identity: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> WriteResult:
        stmt = delete(self.table).where(self._keyed(identity, expected))
        return self._write(stmt, identity=identity)

    def coerce_values(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Parse ISO strings back into the column's Python type.

        Dates, times and decimals round-trip through JSON as strings; a
        value that does not parse is passed through for the database to judge.
        """
        result = dict(values)
        for name, value in values.items():
            if not isinstance(value, str) or name not in self.table.c:
                continue
            try:
                python_type = self.table.c[name].type.python_type
            except NotImplementedError:
                continue
            try:
                result[name] = _parse(python_type, value)
            except (ValueError, InvalidOperation):
                logger.debug("Leaving %s.%s as text: %r", self.name, name, value)
        return result

    def _known(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Drop fields the target table does not have (multi-target bindings)."""
        return {name: value for name, value in values.items() if name in self.table.c}

    def _keyed(
        self,
        identity: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> ColumnElement[bool]:
        clauses = [self.table.c[name] == value for name, value in identity.items()]
        for name, value in (expected or {}).items():
            if name in self.table.c:
                column = self.table.c[name]
                clauses.append(column.is_(None) if value is None else column == value)
        return and_(*clauses)

    def _write(
        self,
        stmt: Any,
        *,
        identity: Mapping[str, Any] | None = None,
        check_rowcount: bool = True,
    ) -> WriteResult:
        try:
            with self._engine.begin() as conn:
                result = conn.execute(stmt)
                if check_rowcount and result.rowcount == 0:
                    assert identity is not None
                    return self._missing_row(conn, identity)
        except SQLAlchemyError as exc:
            reason = classify_db_error(exc)
            logger.debug("Write to %s failed (%s): %s", self.name, reason, exc)
            return WriteResult.failure(reason, str(getattr(exc, "orig", None) or exc))
        return WriteResult.success()

    def _missing_row(self, conn: Connection, identity: Mapping[str, Any]) -> WriteResult:
        """Tell a vanished row apart from a stale guard after a zero-row write."""
        present = conn.execute(select(exists().where(self._keyed(identity)))).scalar()
        if present:
            return WriteResult.failure(
                FailureReason.CONFLICT,
                f"Row {dict(identity)!r} in {self.name} changed since it was read",
            )
        return WriteResult.failure(
            FailureReason.NOT_FOUND,
            f"Row {dict(identity)!r} not found in {self.name}",
        )


def _parse(python_type: type, value: str) -> Any:
    # datetime subclasses date, so it is checked first.
    if issubclass(python_type, datetime.datetime):
        return datetime.datetime.fromisoformat(value)
    if issubclass(python_type, datetime.date):
        return datetime.date.fromisoformat(value)
    if issubclass(python_type, datetime.time):
        return datetime.time.fromisoformat(value)
    if issubclass(python_type, Decimal):
        return Decimal(value)
    return value
