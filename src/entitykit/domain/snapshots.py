"""Snapshot store — last-known-persisted before-images, keyed by identity.

Snapshots are immutable: each one is a deep copy wrapped in a read-only
mapping. A new baseline replaces the old snapshot wholesale; nothing is
ever mutated in place.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import Any

from entitykit.domain.records import Identity

Snapshot = Mapping[str, Any]


def freeze(values: Mapping[str, Any]) -> Snapshot:
    """Return an immutable deep copy of *values*."""
    return MappingProxyType(copy.deepcopy(dict(values)))


class SnapshotStore:
    """Identity → snapshot map, iterated in capture order."""

    def __init__(self) -> None:
        self._snapshots: dict[Identity, Snapshot] = {}

    def capture(self, identity: Identity, values: Mapping[str, Any]) -> Snapshot:
        """Store a frozen copy of *values*, replacing any prior snapshot."""
        snapshot = freeze(values)
        self._snapshots[identity] = snapshot
        return snapshot

    def get(self, identity: Identity) -> Snapshot | None:
        return self._snapshots.get(identity)

    def discard(self, identity: Identity) -> None:
        """Forget *identity* (after a confirmed delete). Missing keys are ignored."""
        self._snapshots.pop(identity, None)

    def reset(self, entries: Iterable[tuple[Identity, Mapping[str, Any]]]) -> None:
        """Replace every snapshot with captures of *entries*.

        The new baseline is built completely before it is swapped in.
        """
        self._snapshots = {identity: freeze(values) for identity, values in entries}

    def clear(self) -> None:
        self._snapshots.clear()

    def identities(self) -> list[Identity]:
        return list(self._snapshots)

    def __contains__(self, identity: object) -> bool:
        return identity in self._snapshots

    def __iter__(self) -> Iterator[Identity]:
        return iter(list(self._snapshots))

    def __len__(self) -> int:
        return len(self._snapshots)
