"""Duplicate-by-content detection.

Flags entries that look like an existing server of the opposite store
saved under a different name.  Two entries match when their transport and
their command line (local) or URL (remote) are identical, compared
case-sensitively; environment, headers and the enabled flag are ignored.

Matches are advisory: they are shown next to the item and never change
its status.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping

from mcp_sync.sync.models import CanonicalEntry, StoreId, SyncStatus

# Statuses for which a value on one side may be a renamed copy.
_CHECKED_STATUSES = frozenset(
    {
        SyncStatus.CREATED_IN_A,
        SyncStatus.CREATED_IN_B,
        SyncStatus.UPDATED_IN_A,
        SyncStatus.UPDATED_IN_B,
        SyncStatus.CONFLICT,
    }
)


class DuplicateDetector:
    """Index both snapshots by content and look up renamed copies.

    Args:
        entries_a: Canonical entries of store A.
        entries_b: Canonical entries of store B.
    """

    def __init__(
        self,
        entries_a: Mapping[str, CanonicalEntry],
        entries_b: Mapping[str, CanonicalEntry],
    ) -> None:
        self._entries = {StoreId.A: entries_a, StoreId.B: entries_b}
        self._index = {
            StoreId.A: self._build_index(entries_a),
            StoreId.B: self._build_index(entries_b),
        }

    @staticmethod
    def _build_index(
        entries: Mapping[str, CanonicalEntry],
    ) -> dict[tuple, list[str]]:
        index: dict[tuple, list[str]] = defaultdict(list)
        for name in sorted(entries):
            index[entries[name].content_signature()].append(name)
        return index

    def matches_in(self, store: StoreId, entry: CanonicalEntry) -> list[str]:
        """Names in *store* whose content matches *entry*, excluding itself."""
        return [
            n
            for n in self._index[store].get(entry.content_signature(), [])
            if n != entry.name
        ]

    def content_matches(self, name: str, status: SyncStatus) -> list[str]:
        """Probable duplicates of *name* in the opposite store.

        Only items that would create or overwrite an entry are checked.
        For each side that holds *name*, the opposite store is searched.

        Returns:
            Sorted, de-duplicated list of matching names.
        """
        if status not in _CHECKED_STATUSES:
            return []
        found: set[str] = set()
        for store in (StoreId.A, StoreId.B):
            entry = self._entries[store].get(name)
            if entry is not None:
                found.update(self.matches_in(store.other, entry))
        return sorted(found)
