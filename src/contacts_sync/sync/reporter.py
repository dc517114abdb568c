"""Pass report formatting functions.

Provides human-readable and machine-readable output for a reconciliation
pass:

- ``format_pass_notice`` -- the short end-of-pass notice.
- ``format_sync_report`` -- full post-pass summary for the CLI.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import RecordResult, SyncReport

NOTICE_TITLE = "Contacts sync"

# ------------------------------------------------------------------
# End-of-pass notice
# ------------------------------------------------------------------


def format_pass_notice(report: SyncReport) -> str:
    """Format the end-of-pass notice.

    Lists the non-zero counts of created, modified, deleted and skipped
    records.  When nothing was created, modified or deleted the notice
    says the folder is already up to date.

    Args:
        report: The completed pass report.

    Returns:
        Multi-line notice text.
    """
    lines = [f"{NOTICE_TITLE}:"]
    for label, results in (
        ("Created", report.created),
        ("Modified", report.modified),
        ("Deleted", report.deleted),
        ("Skipped", report.skipped),
    ):
        if results:
            lines.append(f"{label} {len(results)}")
    if report.up_to_date and report.error is None:
        lines.append("Contacts are already up to date")
    if report.settings_changed:
        lines.append("All contacts were updated to reflect new settings")
    if report.errors or report.error:
        count = len(report.errors) + (1 if report.error else 0)
        lines.append(f"{count} error(s), see the Errors note")
    return "\n".join(lines)


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _describe(r: RecordResult) -> str:
    return r.path or r.url


def format_sync_report(report: SyncReport) -> str:
    """Format a complete pass report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped records are summarised by count only to avoid excessive output.

    Args:
        report: The completed pass report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"Contacts sync for '{report.folder}'"
    if report.rewrite_all:
        header += " (REWRITE ALL)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(
        f"Processed {len(report.results)} records: "
        f"{len(report.created)} created, {len(report.modified)} modified, "
        f"{len(report.deleted)} deleted, {len(report.errors)} errors"
    )
    if report.settings_changed:
        lines.append("Settings changed since the last pass: all contacts rewritten")
    lines.append("")

    if report.error:
        lines.append(f"Pass failed: {report.error}")
        lines.append("")

    for title, results in (
        ("Created:", report.created),
        ("Modified:", report.modified),
        ("Deleted:", report.deleted),
    ):
        if results:
            lines.append(title)
            for r in results:
                lines.append(f"  {_describe(r)}")
            lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {_describe(r)}: {r.error}")
        lines.append("")

    if report.skipped:
        lines.append(f"Skipped: {len(report.skipped)} contacts (unchanged)")
        lines.append("")

    if report.up_to_date and not report.error:
        lines.append("Contacts are already up to date.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a pass report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        report: The pass report.

    Returns:
        Dict with pass info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "url": r.url,
            "path": r.path,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "folder": report.folder,
        "rewrite_all": report.rewrite_all,
        "settings_changed": report.settings_changed,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "error": report.error,
        "up_to_date": report.up_to_date,
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "modified": len(report.modified),
            "deleted": len(report.deleted),
            "skipped": len(report.skipped),
            "errors": len(report.errors),
        },
        "results": results_list,
    }
