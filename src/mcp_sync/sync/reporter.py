"""Plan and apply report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_plan`` -- plan preview grouped by the store that should
  take each change.
- ``format_conflict_diff`` -- unified diff and previews for one conflict.
- ``format_apply_report`` -- post-apply summary.
- ``plan_to_json`` / ``report_to_json`` -- structured dicts for JSON output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import ApplyAction, StoreId, SyncStatus

if TYPE_CHECKING:
    from .models import ApplyReport, SyncItem, SyncPlan

_MARKERS = {
    SyncStatus.CREATED_IN_A: "+",
    SyncStatus.CREATED_IN_B: "+",
    SyncStatus.UPDATED_IN_A: "~",
    SyncStatus.UPDATED_IN_B: "~",
    SyncStatus.DELETED_FROM_A: "-",
    SyncStatus.DELETED_FROM_B: "-",
    SyncStatus.CONFLICT: "!",
    SyncStatus.SYNCED: "=",
}

# ------------------------------------------------------------------
# Plan preview
# ------------------------------------------------------------------


def _item_line(item: SyncItem) -> str:
    line = f"  {_MARKERS[item.status]} {item.name}: {item.action_description}"
    if item.render_errors:
        line += f" [render errors: {len(item.render_errors)}]"
    return line


def format_sync_plan(
    plan: SyncPlan, label_a: str = "A", label_b: str = "B"
) -> str:
    """Format a sync plan grouped by incoming store.

    Deletions are listed under the store that should also drop the entry.
    Synced entries are summarised by count only.

    Args:
        plan: The plan to display.
        label_a: Display name of store A.
        label_b: Display name of store B.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [f"Sync plan for pair '{plan.pair_id}'", ""]

    groups = [
        (f"Incoming to {label_a}:", plan.incoming_a),
        (f"Incoming to {label_b}:", plan.incoming_b),
        ("Conflicts:", plan.conflicts),
    ]
    for title, items in groups:
        if not items:
            continue
        lines.append(title)
        lines.extend(_item_line(item) for item in items)
        lines.append("")

    if plan.malformed:
        lines.append("Malformed (excluded):")
        for record in plan.malformed:
            label = label_a if record.store == StoreId.A else label_b
            lines.append(f"  {label} {record.key}: {record.reason}")
        lines.append("")

    synced = len(plan.by_status(SyncStatus.SYNCED))
    if synced > 0:
        lines.append(f"In sync: {synced} servers")
        lines.append("")

    if plan.is_synced and not plan.malformed:
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflict diff
# ------------------------------------------------------------------


def format_conflict_diff(
    item: SyncItem, label_a: str = "A", label_b: str = "B"
) -> str:
    """Format a single conflict for interactive review.

    Shows the unified diff of both raw records followed by the two
    cross-schema previews when available.

    Args:
        item: A ``CONFLICT`` item from a plan.
        label_a: Display name of store A.
        label_b: Display name of store B.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [
        f"Conflict: {item.name} "
        f"(+{item.additions} -{item.deletions})",
        "",
    ]

    if item.unified_diff:
        lines.append(item.unified_diff.rstrip())
    elif item.entry_a is None or item.entry_b is None:
        missing = label_a if item.entry_a is None else label_b
        lines.append(f"(removed from {missing})")
    else:
        lines.append("(no textual differences)")
    lines.append("")

    if item.a_as_b_json is not None:
        lines.append(f"--- {label_a} entry as {label_b} ---")
        lines.append(item.a_as_b_json)
        lines.append("")
    if item.b_as_a_json is not None:
        lines.append(f"--- {label_b} entry as {label_a} ---")
        lines.append(item.b_as_a_json)
        lines.append("")

    for error in item.render_errors:
        lines.append(f"WARNING: {error}")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Apply report
# ------------------------------------------------------------------


def format_apply_report(
    report: ApplyReport, label_a: str = "A", label_b: str = "B"
) -> str:
    """Format a completed apply report as human-readable text.

    Args:
        report: The apply report.
        label_a: Display name of store A.
        label_b: Display name of store B.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [
        f"Apply report for pair '{report.pair_id}' ({report.mode.value})",
        f"Started: {report.started_at}",
    ]
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"{len(report.outcomes)} selected: "
        f"{len(report.applied)} written, "
        f"{len(report.skipped)} skipped, "
        f"{len(report.failed)} failed"
    )
    lines.append("")

    targets = [
        (f"Written to {label_a}:", ApplyAction.UPSERT_A),
        (f"Written to {label_b}:", ApplyAction.UPSERT_B),
    ]
    for title, action in targets:
        names = [o.name for o in report.applied if o.action == action]
        if names:
            lines.append(title)
            lines.extend(f"  {name}" for name in names)
            lines.append("")

    if report.skipped:
        lines.append("Skipped:")
        for o in report.skipped:
            lines.append(f"  {o.name}: {o.note or 'nothing to do'}")
        lines.append("")

    if report.failed:
        lines.append("Errors:")
        for o in report.failed:
            lines.append(f"  {o.name}: {o.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def plan_to_json(plan: SyncPlan) -> dict:
    """Convert a plan to a structured dict for JSON serialisation.

    Args:
        plan: The sync plan.

    Returns:
        Dict with per-status counts, items and malformed records.
    """
    counts = {status.value: 0 for status in SyncStatus}
    for item in plan.items:
        counts[item.status.value] += 1

    items = []
    for item in plan.items:
        entry = item.model_dump(
            mode="json", exclude={"state", "diff_lines"}, exclude_none=True
        )
        entry["present_in"] = sorted(s.value for s in item.state.present_in)
        items.append(entry)

    return {
        "pair_id": plan.pair_id,
        "counts": counts,
        "items": items,
        "malformed": [m.model_dump(mode="json") for m in plan.malformed],
    }


def report_to_json(report: ApplyReport) -> dict:
    """Convert an apply report to a structured dict for JSON serialisation.

    Args:
        report: The apply report.

    Returns:
        Dict with run info, counts, per-name outcomes and writes.
    """
    return {
        "pair_id": report.pair_id,
        "mode": report.mode.value,
        "source": report.source.value if report.source else None,
        "destination": (
            report.destination.value if report.destination else None
        ),
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.outcomes),
            "applied": len(report.applied),
            "skipped": len(report.skipped),
            "failed": len(report.failed),
        },
        "outcomes": [
            o.model_dump(mode="json", exclude_none=True)
            for o in report.outcomes
        ],
        "writes": [w.model_dump(mode="json") for w in report.writes],
    }
