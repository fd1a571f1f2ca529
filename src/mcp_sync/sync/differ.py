"""Conflict rendering: stable JSON, line diffs and cross-schema previews.

Uses ``difflib`` for both the structured line diff (equal/insert/delete
tags for UI rendering) and the classic unified diff text.

Key design choices:

* Raw records are serialised with sorted keys and two-space indent so the
  same record always renders to the same text.
* Each conflict gets two previews: A's entry re-expressed in B's schema
  and B's entry re-expressed in A's schema, so a reviewer can compare
  "as A", "as B" or raw.
* Rendering failures never abort a plan; the affected preview is left
  empty and the message is recorded on the item.
"""

from __future__ import annotations

import difflib
import json
import logging
from collections.abc import Callable
from typing import Any

from mcp_sync.sync.errors import SerializationFailure
from mcp_sync.sync.models import (
    CanonicalEntry,
    ComparisonMode,
    DiffLine,
    DiffTag,
    RawRecord,
    SyncItem,
)
from mcp_sync.sync.normalizer import SchemaNormalizer

logger = logging.getLogger(__name__)


def to_stable_json(value: Any) -> str:
    """Serialise *value* as deterministically key-ordered, indented JSON.

    Raises:
        SerializationFailure: If *value* is not JSON-serialisable.
    """
    try:
        return json.dumps(
            value, indent=2, sort_keys=True, ensure_ascii=False
        )
    except (TypeError, ValueError) as exc:
        raise SerializationFailure(
            f"cannot serialise record: {exc}"
        ) from exc


def generate_diff_lines(old: str, new: str) -> list[DiffLine]:
    """Line-level diff of two texts as tagged lines.

    Replaced blocks are emitted as deletions followed by insertions.
    """
    old_lines = old.splitlines()
    new_lines = new.splitlines()
    matcher = difflib.SequenceMatcher(
        None, old_lines, new_lines, autojunk=False
    )

    lines: list[DiffLine] = []
    for opcode, i1, i2, j1, j2 in matcher.get_opcodes():
        if opcode == "equal":
            lines.extend(
                DiffLine(tag=DiffTag.EQUAL, content=line)
                for line in old_lines[i1:i2]
            )
            continue
        if opcode in ("delete", "replace"):
            lines.extend(
                DiffLine(tag=DiffTag.DELETE, content=line)
                for line in old_lines[i1:i2]
            )
        if opcode in ("insert", "replace"):
            lines.extend(
                DiffLine(tag=DiffTag.INSERT, content=line)
                for line in new_lines[j1:j2]
            )
    return lines


def generate_unified_diff(
    old_content: str,
    new_content: str,
    label_old: str = "old",
    label_new: str = "new",
) -> str:
    """Generate a unified diff between two strings.

    Returns:
        A unified diff string.  Empty string if the contents are identical.
    """
    old_lines = old_content.splitlines(True)
    new_lines = new_content.splitlines(True)
    # Unterminated last lines would glue onto the next diff line.
    if old_lines and not old_lines[-1].endswith("\n"):
        old_lines[-1] += "\n"
    if new_lines and not new_lines[-1].endswith("\n"):
        new_lines[-1] += "\n"

    diff_lines = difflib.unified_diff(
        old_lines,
        new_lines,
        fromfile=label_old,
        tofile=label_new,
    )
    return "".join(diff_lines)


class ConflictRenderer:
    """Produce review material for plan items.

    Args:
        normalizer: Normalizer of the store pair, used for previews.
    """

    def __init__(self, normalizer: SchemaNormalizer) -> None:
        self.normalizer = normalizer
        self.label_a = normalizer.schema_a.label
        self.label_b = normalizer.schema_b.label

    def raw_json(
        self, name: str, raw: Any, errors: list[str]
    ) -> str | None:
        """Stable JSON of one raw record, or ``None`` on failure."""
        if raw is None:
            return None
        try:
            return to_stable_json(raw)
        except SerializationFailure as exc:
            logger.warning("Cannot render raw record '%s': %s", name, exc)
            errors.append(str(exc))
            return None

    def render_conflict(
        self,
        name: str,
        raw_a: Any,
        raw_b: Any,
        entry_a: CanonicalEntry,
        entry_b: CanonicalEntry,
    ) -> dict[str, Any]:
        """Build diff and preview fields for one conflicting entry.

        Returns:
            Keyword fields for ``SyncItem`` (``raw_a_json``, ``raw_b_json``,
            ``a_as_b_json``, ``b_as_a_json``, ``unified_diff``,
            ``diff_lines``, ``additions``, ``deletions``,
            ``render_errors``).  Fields that failed to render are omitted
            or ``None``.
        """
        errors: list[str] = []
        fields: dict[str, Any] = {
            "raw_a_json": self.raw_json(name, raw_a, errors),
            "raw_b_json": self.raw_json(name, raw_b, errors),
            "a_as_b_json": self._preview(
                name, lambda: self.normalizer.denormalize_b(entry_a), errors
            ),
            "b_as_a_json": self._preview(
                name, lambda: self.normalizer.denormalize_a(entry_b), errors
            ),
        }

        if (
            fields["raw_a_json"] is not None
            and fields["raw_b_json"] is not None
        ):
            lines = generate_diff_lines(
                fields["raw_a_json"], fields["raw_b_json"]
            )
            fields["diff_lines"] = lines
            fields["additions"] = sum(
                1 for line in lines if line.tag == DiffTag.INSERT
            )
            fields["deletions"] = sum(
                1 for line in lines if line.tag == DiffTag.DELETE
            )
            fields["unified_diff"] = generate_unified_diff(
                fields["raw_a_json"],
                fields["raw_b_json"],
                self.label_a,
                self.label_b,
            )

        fields["render_errors"] = errors
        return fields

    def _preview(
        self,
        name: str,
        convert: Callable[[], RawRecord],
        errors: list[str],
    ) -> str | None:
        try:
            record = convert()
            return to_stable_json({record.key: record.body})
        except SerializationFailure as exc:
            logger.warning("Cannot render preview for '%s': %s", name, exc)
            errors.append(str(exc))
            return None

    def compare(
        self, item: SyncItem, mode: ComparisonMode
    ) -> list[DiffLine] | None:
        """Diff lines for *item* in the chosen comparison mode.

        ``raw`` compares both native records, ``as-a`` compares A's record
        with B's entry converted to A's schema, ``as-b`` compares A's entry
        converted to B's schema with B's record.

        Returns:
            Diff lines, or ``None`` if either side is unavailable.
        """
        if mode == ComparisonMode.RAW:
            left, right = item.raw_a_json, item.raw_b_json
        elif mode == ComparisonMode.AS_A:
            left, right = item.raw_a_json, self._unwrap(item.b_as_a_json)
        else:
            left, right = self._unwrap(item.a_as_b_json), item.raw_b_json
        if left is None or right is None:
            return None
        return generate_diff_lines(left, right)

    @staticmethod
    def _unwrap(preview: str | None) -> str | None:
        """Strip the ``{key: body}`` wrapper from a preview."""
        if preview is None:
            return None
        (body,) = json.loads(preview).values()
        return to_stable_json(body)
