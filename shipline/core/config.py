"""Typed configuration for `shipline.toml`.

Every section is optional; a missing file yields the defaults below, which
describe the stock pipeline: push to `main`, nightly Rust toolchain, cache
keyed by Cargo.lock, `<name>.zip` published as `release-<sha>`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from string import Formatter

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_int,
    get_raw_str,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CONFIG_FILENAME",
    "CacheConfig",
    "Config",
    "ConfigError",
    "ProjectConfig",
    "ReleaseConfig",
    "RunConfig",
    "ToolchainConfig",
    "TriggerConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "shipline.toml"

DEFAULT_BRANCH = "main"
DEFAULT_CHANNEL = "nightly"
DEFAULT_PROFILE = "minimal"
DEFAULT_PROJECT = "Unilyric"
DEFAULT_TAG_PREFIX = "release-"
DEFAULT_TITLE_PREFIX = "Release"
DEFAULT_BODY_TEMPLATE = (
    "Built and published automatically from commit {sha}\n"
    "\n"
    "Commit message:\n"
    "{message}\n"
)
_BODY_PLACEHOLDERS = frozenset({"sha", "message"})
DEFAULT_WORK_DIR = ".shipline"
DEFAULT_TIMEOUT_MINUTES = 360

# Relative to the run directory: the per-run CARGO_HOME registry and git
# checkouts. The cargo target dir next to project.manifest is always cached
# on top of these.
DEFAULT_CACHE_PATHS = ("cargo-home/registry", "cargo-home/git")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Config cannot be read or has invalid values."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class TriggerConfig:
    branch: str = DEFAULT_BRANCH


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """What gets built and where it is published.

    `repository` is the GitHub slug (owner/name). `source` is what gets cloned;
    it defaults to the GitHub URL of `repository`, but a local path works too.
    """

    name: str = DEFAULT_PROJECT
    binary: str | None = None
    repository: str | None = None
    source: str | None = None
    manifest: str = "Cargo.toml"

    @property
    def binary_name(self) -> str:
        return self.binary or self.name

    @property
    def archive_name(self) -> str:
        return f"{self.name}.zip"

    def clone_source(self) -> str | None:
        if self.source:
            return self.source
        if self.repository:
            return f"https://github.com/{self.repository}.git"
        return None


@dataclass(frozen=True, slots=True)
class ToolchainConfig:
    channel: str = DEFAULT_CHANNEL
    profile: str = DEFAULT_PROFILE


@dataclass(frozen=True, slots=True)
class CacheConfig:
    enabled: bool = True
    dir: str = f"{DEFAULT_WORK_DIR}/cache"
    paths: tuple[str, ...] = DEFAULT_CACHE_PATHS
    lock_file: str = "Cargo.lock"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    tag_prefix: str = DEFAULT_TAG_PREFIX
    title_prefix: str = DEFAULT_TITLE_PREFIX
    body_template: str = DEFAULT_BODY_TEMPLATE


@dataclass(frozen=True, slots=True)
class RunConfig:
    work_dir: str = DEFAULT_WORK_DIR
    timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES
    keep_workspace: bool = False

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60.0


@dataclass(frozen=True, slots=True)
class Config:
    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    project: ProjectConfig = field(default_factory=ProjectConfig)
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    run: RunConfig = field(default_factory=RunConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Build a Config from parsed TOML.

        Raises:
            ValueError: A value is present but unusable.
        """
        trigger: StrDict = get_table(data, "trigger") or {}
        project: StrDict = get_table(data, "project") or {}
        toolchain: StrDict = get_table(data, "toolchain") or {}
        cache: StrDict = get_table(data, "cache") or {}
        release: StrDict = get_table(data, "release") or {}
        run: StrDict = get_table(data, "run") or {}

        cache_paths = get_str_list(cache, "paths")
        if cache_paths is not None and any(
            Path(p).is_absolute() or ".." in Path(p).parts for p in cache_paths
        ):
            raise ValueError("cache.paths must be relative to the run directory")

        manifest = get_str(project, "manifest") or "Cargo.toml"
        if Path(manifest).is_absolute() or ".." in Path(manifest).parts:
            raise ValueError("project.manifest must be relative to the checkout")

        body_template = get_raw_str(release, "body_template") or DEFAULT_BODY_TEMPLATE
        _check_body_template(body_template)

        timeout = get_int(run, "timeout_minutes")
        if timeout is not None and timeout <= 0:
            raise ValueError("run.timeout_minutes must be positive")

        return cls(
            trigger=TriggerConfig(branch=get_str(trigger, "branch") or DEFAULT_BRANCH),
            project=ProjectConfig(
                name=get_str(project, "name") or DEFAULT_PROJECT,
                binary=get_str(project, "binary"),
                repository=get_str(project, "repository") or os.environ.get("GITHUB_REPOSITORY"),
                source=get_str(project, "source"),
                manifest=manifest,
            ),
            toolchain=ToolchainConfig(
                channel=get_str(toolchain, "channel") or DEFAULT_CHANNEL,
                profile=get_str(toolchain, "profile") or DEFAULT_PROFILE,
            ),
            cache=CacheConfig(
                enabled=_bool_or(get_bool(cache, "enabled"), True),
                dir=get_str(cache, "dir") or f"{DEFAULT_WORK_DIR}/cache",
                paths=tuple(cache_paths) if cache_paths is not None else DEFAULT_CACHE_PATHS,
                lock_file=get_str(cache, "lock_file") or "Cargo.lock",
            ),
            release=ReleaseConfig(
                tag_prefix=get_str(release, "tag_prefix") or DEFAULT_TAG_PREFIX,
                title_prefix=get_str(release, "title_prefix") or DEFAULT_TITLE_PREFIX,
                body_template=body_template,
            ),
            run=RunConfig(
                work_dir=get_str(run, "work_dir") or DEFAULT_WORK_DIR,
                timeout_minutes=timeout or DEFAULT_TIMEOUT_MINUTES,
                keep_workspace=_bool_or(get_bool(run, "keep_workspace"), False),
            ),
        )


def _bool_or(value: bool | None, default: bool) -> bool:
    return default if value is None else value


def _check_body_template(template: str) -> None:
    """Only bare `{sha}` and `{message}` fields; no attribute or index access."""
    try:
        fields = [name for _, name, _, _ in Formatter().parse(template) if name is not None]
    except ValueError as e:
        raise ValueError(f"release.body_template is malformed: {e}") from e

    for name in fields:
        if name not in _BODY_PLACEHOLDERS:
            raise ValueError(f"release.body_template uses unknown placeholder {{{name}}}")

    try:
        template.format(sha="0" * 40, message="")
    except ValueError as e:
        raise ValueError(f"release.body_template is malformed: {e}") from e


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and validate `shipline.toml`.

    Returns:
        Ok(Config) on success, Err(ConfigError) on unreadable or invalid config.
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like load_config, but a missing file means defaults."""
    if not path.exists():
        return Ok(Config.from_dict({}))
    return load_config(path)
