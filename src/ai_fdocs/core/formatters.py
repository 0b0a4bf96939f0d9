from __future__ import annotations

import json
from dataclasses import asdict
from typing import Mapping, Sequence

from ai_fdocs.status.engine import PackageStatus, summarize

COL_PACKAGE = 24
COL_LOCK = 16
COL_DOCS = 16
COL_STATUS = 14

CHECK_PREFIX = "[ai-fdocs check]"
CHECK_ANNOTATION_TITLE = "ai-fdocs check"


def _row(package: str, lock: str, docs: str, status: str) -> str:
    return f"{package:<{COL_PACKAGE}} {lock:<{COL_LOCK}} {docs:<{COL_DOCS}} {status:<{COL_STATUS}}".rstrip()


def format_status_table(statuses: Sequence[PackageStatus]) -> str:
    """
    Formats statuses as a fixed-width table followed by a summary line.

    Args:
        statuses: Classified packages, in display order.

    Returns:
        The rendered table. Hints and problem details are appended only when a package needs attention.
    """
    lines = [
        _row("Package", "Lock Version", "Docs Version", "Status"),
        _row("-" * COL_PACKAGE, "-" * COL_LOCK, "-" * COL_DOCS, "-" * COL_STATUS),
    ]
    for item in statuses:
        lines.append(
            _row(item.package, item.lock_version or "-", item.docs_version or "-", item.status.value)
        )
        lines.append(f"  ↳ {item.reason}")

    summary = summarize(list(statuses))
    lines.append("")
    lines.append(
        f"Total: {summary.total} | Synced: {summary.synced} | Missing: {summary.missing} "
        f"| Outdated: {summary.outdated} | Corrupted: {summary.corrupted}"
    )

    if summary.has_problems:
        lines.append("Hint: run `ai-fdocs sync` (or `--force` for full refresh)")
        lines.append("CI hint: run `ai-fdocs check` to fail on stale docs")
        lines.append("")
        lines.append("Problem details:")
        for item in statuses:
            if item.status.is_problem:
                lines.append(f"- {item.package} [{item.status.value}]: {item.reason}")

    return "\n".join(lines) + "\n"


def format_status_json(statuses: Sequence[PackageStatus]) -> str:
    report = {
        "summary": asdict(summarize(list(statuses))),
        "statuses": [
            {**asdict(item), "status": item.status.value}
            for item in statuses
        ],
    }
    return json.dumps(report, indent=2, ensure_ascii=False)


def is_github_actions(environ: Mapping[str, str]) -> bool:
    return environ.get("GITHUB_ACTIONS") == "true"


def format_check_failures(
    statuses: Sequence[PackageStatus],
    *,
    github_actions: bool,
    output_format: str = "table",
) -> list[str]:
    """
    Returns one line per package that is not synced.

    Under GitHub Actions the lines are workflow error annotations. Otherwise plain lines are
    produced for table output only; JSON output already carries the same information.
    """
    lines: list[str] = []
    for item in statuses:
        if not item.status.is_problem:
            continue
        detail = f"{item.package} [{item.status.value}] {item.reason}"
        if github_actions:
            lines.append(f"::error title={CHECK_ANNOTATION_TITLE}::{detail}")
        elif output_format == "table":
            lines.append(f"{CHECK_PREFIX} {detail}")
    return lines
