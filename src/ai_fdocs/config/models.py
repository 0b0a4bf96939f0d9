from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_SYNC_CONCURRENCY = 50


class SyncMode(str, Enum):
    LOCKFILE = "lockfile"
    LATEST_DOCS = "latest_docs"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: str) -> SyncMode:
        normalized = value.strip().lower().replace("-", "_")
        for mode in cls:
            if mode.value == normalized:
                return mode
        raise ValueError(
            f'settings.sync_mode must be "lockfile", "latest_docs", or "hybrid", got: {value}'
        )


class FileRotationSettings(BaseModel):
    """
    Date-based rotation settings (daily).

    This maps cleanly to Python's standard library TimedRotatingFileHandler behavior.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backup_count: int = 7


class FileLoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = ""
    rotation: FileRotationSettings = Field(default_factory=FileRotationSettings)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    level: str = "INFO"
    file: FileLoggingSettings = Field(default_factory=FileLoggingSettings)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    output_dir: str = "fdocs"
    max_file_size_kb: int = 200
    prune: bool = True
    sync_concurrency: int = 8
    sync_mode: SyncMode = SyncMode.LOCKFILE
    latest_ttl_hours: int = 24
    docsrs_single_page: bool = True

    # Dependency lock file, relative to the working directory
    lock_file: str = "Cargo.lock"

    @field_validator("sync_mode", mode="before")
    @classmethod
    def _parse_sync_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return SyncMode.parse(value)
        return value

    @field_validator("sync_concurrency")
    @classmethod
    def _check_concurrency(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("settings.sync_concurrency must be greater than 0")
        if value > MAX_SYNC_CONCURRENCY:
            raise ValueError(
                f"settings.sync_concurrency must not exceed {MAX_SYNC_CONCURRENCY} to avoid rate limiting"
            )
        return value

    @field_validator("max_file_size_kb")
    @classmethod
    def _check_max_file_size(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("settings.max_file_size_kb must be greater than 0")
        return value

    @field_validator("latest_ttl_hours")
    @classmethod
    def _check_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("settings.latest_ttl_hours must be greater than 0")
        return value

    @field_validator("docsrs_single_page")
    @classmethod
    def _check_single_page(cls, value: bool) -> bool:
        if not value:
            raise ValueError("settings.docsrs_single_page=false is not supported yet; use true")
        return value


class GitHubSource(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["github"]
    repo: str
    files: tuple[str, ...] = ()


class DocsRsSource(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: Literal["docs_rs", "docsrs"]


LegacySource = Annotated[Union[GitHubSource, DocsRsSource], Field(discriminator="type")]


class PackageConfig(BaseModel):
    """
    One configured package.

    Either the explicit `repo` form or the legacy `sources` list is accepted; callers only use
    `github_repo()` and `effective_files()` and never look at the legacy shape directly.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    repo: Optional[str] = None
    subpath: Optional[str] = None
    files: Optional[tuple[str, ...]] = None
    sources: Optional[tuple[LegacySource, ...]] = None
    ai_notes: str = Field(default="", validation_alias=AliasChoices("ai_notes", "notes"))

    @field_validator("repo")
    @classmethod
    def _check_repo(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        repo = value.strip().strip("/")
        owner, sep, name = repo.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f'repo must look like "owner/name", got: {value}')
        return repo

    def github_repo(self) -> Optional[str]:
        if self.repo:
            return self.repo
        for source in self.sources or ():
            if isinstance(source, GitHubSource):
                return source.repo
        return None

    def effective_files(self) -> Optional[list[str]]:
        if self.files is not None:
            return list(self.files)
        for source in self.sources or ():
            if isinstance(source, GitHubSource) and source.files:
                return list(source.files)
        return None


class AppConfig(BaseModel):
    """
    Effective runtime configuration after applying all precedence rules.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    settings: Settings = Field(default_factory=Settings)
    packages: Dict[str, PackageConfig] = Field(default_factory=dict)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_legacy_crates_table(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "crates" not in data:
            return data
        merged = dict(data)
        legacy = merged.pop("crates") or {}
        packages = dict(merged.get("packages") or {})
        for name, value in legacy.items():
            packages.setdefault(name, value)
        merged["packages"] = packages
        return merged

    @model_validator(mode="after")
    def _check_lockfile_repos(self) -> AppConfig:
        if self.settings.sync_mode is not SyncMode.LOCKFILE:
            return self
        for name, package in self.packages.items():
            if package.github_repo() is None:
                raise ValueError(
                    f"package '{name}' must define `repo` or legacy `sources` with GitHub for lockfile mode"
                )
        return self


@dataclass(frozen=True, slots=True)
class ConfigLoadRequest:
    """
    Optional inputs for the configuration loader.
    """

    toml_path: str = "ai-fdocs.toml"
    env_prefix: str = "AIFDOCS__"
    dotenv_path: Optional[str] = ".env"
