"""Tests for duplicate-by-content detection.

Covers:
- Local matches compare the full argv, case-sensitively
- Remote matches compare the URL
- Environment, headers and enabled flag are ignored
- The entry's own name is never reported
- Only create/update/conflict statuses are checked
"""

from __future__ import annotations

from conftest import local_entry, remote_entry
from mcp_sync.sync.duplicates import DuplicateDetector
from mcp_sync.sync.models import StoreId, SyncStatus


class TestMatchesIn:
    """Tests for DuplicateDetector.matches_in()."""

    def test_same_argv_other_name(self):
        detector = DuplicateDetector(
            {}, {"filesystem": local_entry("filesystem", "npx", "fs")}
        )
        assert detector.matches_in(
            StoreId.B, local_entry("fs", "npx", "fs")
        ) == ["filesystem"]

    def test_case_sensitive(self):
        detector = DuplicateDetector(
            {}, {"filesystem": local_entry("filesystem", "npx", "FS")}
        )
        assert detector.matches_in(
            StoreId.B, local_entry("fs", "npx", "fs")
        ) == []

    def test_ignores_environment_and_enabled(self):
        detector = DuplicateDetector(
            {},
            {
                "other": local_entry(
                    "other", "npx", "fs", environment={"A": "1"}, enabled=False
                )
            },
        )
        assert detector.matches_in(
            StoreId.B, local_entry("fs", "npx", "fs")
        ) == ["other"]

    def test_remote_by_url(self):
        detector = DuplicateDetector(
            {"api": remote_entry("api", "https://x", headers={"K": "V"})}, {}
        )
        assert detector.matches_in(
            StoreId.A, remote_entry("remote-api", "https://x")
        ) == ["api"]

    def test_local_and_remote_never_match(self):
        detector = DuplicateDetector({"x": remote_entry("x", "npx")}, {})
        assert detector.matches_in(StoreId.A, local_entry("y", "npx")) == []

    def test_excludes_same_name(self):
        detector = DuplicateDetector({}, {"fs": local_entry("fs", "npx")})
        assert detector.matches_in(StoreId.B, local_entry("fs", "npx")) == []


class TestContentMatches:
    """Tests for DuplicateDetector.content_matches()."""

    def test_created_entry_checked_against_other_store(self):
        detector = DuplicateDetector(
            {"fs": local_entry("fs", "npx", "fs")},
            {"filesystem": local_entry("filesystem", "npx", "fs")},
        )
        assert detector.content_matches("fs", SyncStatus.CREATED_IN_A) == [
            "filesystem"
        ]
        assert detector.content_matches(
            "filesystem", SyncStatus.CREATED_IN_B
        ) == ["fs"]

    def test_conflict_checks_both_sides(self):
        """Each side of a conflict is searched in its opposite store."""
        detector = DuplicateDetector(
            {
                "fs": local_entry("fs", "npx", "one"),
                "b-copy": local_entry("b-copy", "npx", "two"),
            },
            {
                "fs": local_entry("fs", "npx", "two"),
                "a-copy": local_entry("a-copy", "npx", "one"),
            },
        )
        assert detector.content_matches("fs", SyncStatus.CONFLICT) == [
            "a-copy",
            "b-copy",
        ]

    def test_synced_and_deleted_not_checked(self):
        detector = DuplicateDetector(
            {"fs": local_entry("fs", "npx")},
            {"copy": local_entry("copy", "npx")},
        )
        assert detector.content_matches("fs", SyncStatus.SYNCED) == []
        assert detector.content_matches("fs", SyncStatus.DELETED_FROM_B) == []

    def test_multiple_matches_sorted(self):
        detector = DuplicateDetector(
            {"fs": local_entry("fs", "npx")},
            {
                "zz": local_entry("zz", "npx"),
                "aa": local_entry("aa", "npx"),
            },
        )
        assert detector.content_matches("fs", SyncStatus.CREATED_IN_A) == [
            "aa",
            "zz",
        ]
