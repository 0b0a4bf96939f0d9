from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

SchemaVersion = 1
META_FILENAME = ".aifd-meta.toml"


@dataclass(slots=True)
class CacheMetadata:
    version: str
    git_ref: str
    fetched_at: str
    is_fallback: bool = False
    schema_version: int = SchemaVersion
    source_kind: Optional[str] = None
    upstream_latest_version: Optional[str] = None
    upstream_checked_at: Optional[str] = None
    docsrs_input_url: Optional[str] = None
    truncated: Optional[bool] = None
