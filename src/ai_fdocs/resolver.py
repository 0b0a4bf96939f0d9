from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Dict

from ai_fdocs.core.errors import LockFileNotFoundError, LockFileParseError

logger = logging.getLogger(__name__)


def resolve_lock_versions(path: Path) -> Dict[str, str]:
    """
    Read a Cargo-style lock file and return a mapping of package name to resolved version.

    When the lock file lists one package several times, the last record wins.
    """
    if not path.exists():
        raise LockFileNotFoundError(path)

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LockFileParseError(path, f"unreadable: {e}") from e
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise LockFileParseError(path, str(e)) from e

    records = data.get("package")
    if not isinstance(records, list):
        raise LockFileParseError(path, "missing top-level [[package]] array")

    versions: Dict[str, str] = {}
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise LockFileParseError(path, f"package record #{index} is not a table")
        name = record.get("name")
        version = record.get("version")
        if not isinstance(name, str) or not isinstance(version, str):
            raise LockFileParseError(path, f"package record #{index} needs string `name` and `version`")
        versions[name] = version

    logger.debug("Resolved lock file versions. path=%s packages=%d", path, len(versions))
    return versions
