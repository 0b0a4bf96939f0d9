from __future__ import annotations

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

CHANGELOG_TRUNCATION_MARKER = "*[Earlier entries truncated by ai-fdocs]*"

_HEADING_RE = re.compile(
    r"^#{1,3}[ \t]+.*?\[?v?(\d+\.\d+\.\d+(?:-[\w.]+)?)\]?",
    re.MULTILINE,
)


def parse_minor(version: str) -> Optional[tuple[int, int]]:
    parts = version.split(".")
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def truncate_changelog(content: str, current_version: str) -> str:
    """
    Keep the changelog entries down to the current version plus one older minor series.

    Everything above the current version's heading is kept. When the current version never
    appears and there are at least three version headings, the text is cut at the third one.
    """
    headings = [(m.start(), m.group(1)) for m in _HEADING_RE.finditer(content)]
    if not headings:
        logger.debug("No version headings found in changelog, keeping as-is.")
        return content

    current_minor = parse_minor(current_version)
    found_current = False
    previous_minor: Optional[tuple[int, int]] = None
    found_previous = False
    cut_position: Optional[int] = None

    for position, version in headings:
        version_minor = parse_minor(version)

        if version == current_version:
            found_current = True
            continue

        if not found_current:
            continue

        if not found_previous:
            if current_minor is None or version_minor != current_minor:
                found_previous = True
                previous_minor = version_minor
            continue

        if previous_minor is None or version_minor != previous_minor:
            cut_position = position
            break

    if not found_current and len(headings) > 2:
        cut_position = headings[2][0]

    if cut_position is None:
        return content

    kept = content[:cut_position].rstrip()
    return f"{kept}\n---\n\n{CHANGELOG_TRUNCATION_MARKER}\n"
