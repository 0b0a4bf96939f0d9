from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional, Sequence

from dotenv import load_dotenv
from pydantic import ValidationError

from ai_fdocs.config.models import AppConfig, ConfigLoadRequest
from ai_fdocs.core.errors import ConfigNotFoundError, ConfigParseError, InvalidConfigError

logger = logging.getLogger(__name__)


def _read_toml_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigNotFoundError(path)

    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigParseError(path, f"unreadable: {e}") from e
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(path, str(e)) from e
    if not isinstance(data, dict):
        raise ConfigParseError(path, f"top-level TOML must be a table, got: {type(data).__name__}")
    return data


def _load_dotenv_if_present(dotenv_path: Path) -> None:
    if not dotenv_path.exists():
        return
    load_dotenv(dotenv_path=dotenv_path, override=False)
    logger.debug("Loaded environment file. path=%s", dotenv_path)


def _env_var_name_to_segments(env_var_name: str, prefix: str) -> Sequence[str]:
    remainder = env_var_name[len(prefix) :]
    parts = [p for p in remainder.split("__") if p]
    if len(parts) < 2:
        raise InvalidConfigError(f"invalid environment variable override name: {env_var_name}")
    return [p.lower() for p in parts]


def _get_parent_mapping(config: MutableMapping[str, Any], path: Sequence[str]) -> MutableMapping[str, Any]:
    cur: MutableMapping[str, Any] = config
    for segment in path[:-1]:
        # Tables omitted from the file are created so overrides can target defaulted keys.
        next_value = cur.setdefault(segment, {})
        if not isinstance(next_value, dict):
            dotted = ".".join(path)
            raise InvalidConfigError(f"configuration key path does not point to a table: {dotted}")
        cur = next_value
    return cur


def _apply_env_overrides(
    config: MutableMapping[str, Any],
    env_prefix: str,
    environ: Optional[Mapping[str, str]] = None,
) -> None:
    source = os.environ if environ is None else environ
    for name, value in source.items():
        if not name.startswith(env_prefix):
            continue

        segments = _env_var_name_to_segments(name, env_prefix)
        parent = _get_parent_mapping(config, segments)

        # Raw strings are fine here; pydantic coerces and validates them afterwards.
        parent[segments[-1]] = value
        logger.debug("Applied config override. key=%s", ".".join(segments))


def parse_config(data: Mapping[str, Any]) -> AppConfig:
    try:
        return AppConfig.model_validate(dict(data))
    except ValidationError as e:
        raise InvalidConfigError(str(e)) from e


class TomlConfigLoader:
    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    async def load(self, request: ConfigLoadRequest = ConfigLoadRequest()) -> AppConfig:
        toml_path = Path(request.toml_path)
        config = _read_toml_config(toml_path)

        if request.dotenv_path is not None:
            _load_dotenv_if_present(Path(request.dotenv_path))

        _apply_env_overrides(config, request.env_prefix, self._environ)
        return parse_config(config)
