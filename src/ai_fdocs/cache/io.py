from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Optional

import tomli_w

from ai_fdocs.cache.models import CacheMetadata, SchemaVersion

logger = logging.getLogger(__name__)


class MetadataDecodeError(ValueError):
    pass


def atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)


def encode_metadata(meta: CacheMetadata) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "schema_version": meta.schema_version,
        "version": meta.version,
        "git_ref": meta.git_ref,
        "fetched_at": meta.fetched_at,
        "is_fallback": meta.is_fallback,
    }
    optional = {
        "source_kind": meta.source_kind,
        "upstream_latest_version": meta.upstream_latest_version,
        "upstream_checked_at": meta.upstream_checked_at,
        "docsrs_input_url": meta.docsrs_input_url,
        "truncated": meta.truncated,
    }
    # TOML has no null; absent keys decode back to None.
    payload.update({key: value for key, value in optional.items() if value is not None})
    return payload


def _require(payload: dict[str, Any], key: str, expected: type) -> Any:
    value = payload.get(key)
    if not isinstance(value, expected):
        raise MetadataDecodeError(f"metadata field `{key}` must be {expected.__name__}")
    return value


def _optional(payload: dict[str, Any], key: str, expected: type) -> Any:
    value = payload.get(key)
    if value is not None and not isinstance(value, expected):
        raise MetadataDecodeError(f"metadata field `{key}` must be {expected.__name__}")
    return value


def decode_metadata(payload: dict[str, Any]) -> CacheMetadata:
    schema_version = payload.get("schema_version", SchemaVersion)
    if not isinstance(schema_version, int) or isinstance(schema_version, bool):
        raise MetadataDecodeError("metadata field `schema_version` must be int")
    return CacheMetadata(
        schema_version=schema_version,
        version=_require(payload, "version", str),
        git_ref=_optional(payload, "git_ref", str) or "",
        fetched_at=_require(payload, "fetched_at", str),
        is_fallback=bool(_optional(payload, "is_fallback", bool) or False),
        source_kind=_optional(payload, "source_kind", str),
        upstream_latest_version=_optional(payload, "upstream_latest_version", str),
        upstream_checked_at=_optional(payload, "upstream_checked_at", str),
        docsrs_input_url=_optional(payload, "docsrs_input_url", str),
        truncated=_optional(payload, "truncated", bool),
    )


def parse_metadata_text(text: str) -> CacheMetadata:
    try:
        payload = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise MetadataDecodeError(f"invalid TOML: {e}") from e
    return decode_metadata(payload)


def write_metadata_file(path: Path, meta: CacheMetadata) -> None:
    atomic_write_text(path, tomli_w.dumps(encode_metadata(meta)))


def read_metadata_file(path: Path) -> Optional[CacheMetadata]:
    """Return the parsed metadata, or None when the file is missing, unreadable or invalid."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None
    except UnicodeDecodeError as e:
        logger.warning("Ignoring undecodable cache metadata. path=%s error=%s", path, e)
        return None
    try:
        return parse_metadata_text(text)
    except MetadataDecodeError as e:
        logger.warning("Ignoring invalid cache metadata. path=%s error=%s", path, e)
        return None
