"""Change classifier — diff a record set against its snapshot store.

Pipeline: current rows in RecordSet order (ADDED / MODIFIED / UNCHANGED),
then snapshots with no current row in Snapshot Store order (DELETED).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from entitykit.domain.types import RowChange

if TYPE_CHECKING:
    from entitykit.domain.records import Identity, RecordSet, Row
    from entitykit.domain.snapshots import Snapshot, SnapshotStore

_NUMERIC = (int, float, Decimal)


@dataclass(frozen=True)
class RowDiff:
    """One classified row.

    Attributes:
        identity: Identity tuple of the row.
        change: Classification against the snapshot.
        row: Current row (None for DELETED).
        snapshot: Before-image (None for ADDED).
        changed_fields: Non-identity fields that differ (MODIFIED only).
    """

    identity: Identity
    change: RowChange
    row: Row | None = None
    snapshot: Snapshot | None = None
    changed_fields: tuple[str, ...] = field(default=())

    def changes(self) -> dict[str, Any]:
        """Current values of the changed fields."""
        if self.row is None:
            return {}
        return {name: self.row[name] for name in self.changed_fields}


def values_equal(left: Any, right: Any) -> bool:
    """Strict per-type equality used for change detection.

    Examples:
        >>> values_equal(1, 1.0)
        True
        >>> values_equal(1, True)
        False
        >>> values_equal("1", 1)
        False
        >>> values_equal(float("nan"), float("nan"))
        True
    """
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, _NUMERIC) and isinstance(right, _NUMERIC):
        if _is_nan(left) or _is_nan(right):
            return _is_nan(left) and _is_nan(right)
        return bool(left == right)
    if isinstance(left, datetime) or isinstance(right, datetime):
        return isinstance(left, datetime) and isinstance(right, datetime) and left == right
    if isinstance(left, date) and isinstance(right, date):
        return left == right
    if type(left) is not type(right) and not (
        isinstance(left, type(right)) or isinstance(right, type(left))
    ):
        return False
    return bool(left == right)


def _is_nan(value: Any) -> bool:
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, Decimal):
        return value.is_nan()
    return False


def changed_fields(row: Row, snapshot: Snapshot) -> tuple[str, ...]:
    """Non-identity fields of *row* whose value differs from *snapshot*.

    Fields absent from the current row are not compared.
    """
    identity = set(row.identity_fields)
    diffs: list[str] = []
    for name, value in row.items():
        if name in identity:
            continue
        if name not in snapshot or not values_equal(value, snapshot[name]):
            diffs.append(name)
    return tuple(diffs)


def classify(records: RecordSet, snapshots: SnapshotStore) -> list[RowDiff]:
    """Classify every row of *records* and every orphaned snapshot."""
    result: list[RowDiff] = []
    present: set[Identity] = set()

    for row in records:
        identity = row.identity
        present.add(identity)
        snapshot = snapshots.get(identity)
        if snapshot is None:
            result.append(RowDiff(identity, RowChange.ADDED, row=row))
            continue
        diffs = changed_fields(row, snapshot)
        if diffs:
            result.append(
                RowDiff(
                    identity,
                    RowChange.MODIFIED,
                    row=row,
                    snapshot=snapshot,
                    changed_fields=diffs,
                )
            )
        else:
            result.append(RowDiff(identity, RowChange.UNCHANGED, row=row, snapshot=snapshot))

    for identity in snapshots:
        if identity not in present:
            result.append(
                RowDiff(identity, RowChange.DELETED, snapshot=snapshots.get(identity))
            )

    return result
