"""
Settings for guidelint.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    ``GuidelintSettings`` is the single validated source of truth for lint
    behaviour, link checking and logging.

Resolution order (last wins)::

    field defaults  →  .guidelint.yml  →  .env  →  GUIDELINT_* env vars

The YAML file is found by walking up from the working directory to the
project root (``pyproject.toml`` or ``.git``), or given explicitly with
``--config``. List-valued environment variables are JSON, for example
``GUIDELINT_DISABLED_RULES='["I001", "I002"]'``.

Example ``.guidelint.yml``::

    require_fence_language: true
    disabled_rules: [I003]
    link_timeout: 5
    ignore_urls:
      - "^https://example\\.com/"

Tags:
    settings, configuration, pydantic, yaml, environment, guidelint
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from guidelint.core.errors import ConfigError

CONFIG_FILENAMES = (".guidelint.yml", ".guidelint.yaml")


def _compile_or_raise(pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"invalid regular expression {pattern!r}: {exc}") from exc


class GuidelintSettings(BaseSettings):
    """Validated guidelint configuration.

    Fields
    ──────
    log_level              : structlog level for stderr output
    log_format             : ``console``, ``json`` or ``auto``
    toc_heading_pattern    : regex matching the table-of-contents heading
    require_fence_language : report fences without an info string (I001)
    disabled_rules         : diagnostic codes to drop from results
    skip_patterns          : directory or file names skipped when expanding directories
    link_timeout           : per-request timeout (seconds)
    link_concurrency       : simultaneous requests during link checks
    link_retries           : extra attempts for transient failures
    link_user_agent        : User-Agent header for link checks
    ignore_urls            : regexes; matching URLs are never requested
    """

    model_config = SettingsConfigDict(
        env_prefix="GUIDELINT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="WARNING")
    log_format: str = Field(default="auto")

    # ── Parsing / linting ────────────────────────────────────────
    toc_heading_pattern: str = Field(default=r"^(table of contents|contents|toc)$")
    require_fence_language: bool = Field(default=False)
    disabled_rules: list[str] = Field(default_factory=list)
    skip_patterns: list[str] = Field(
        default_factory=lambda: ["node_modules", ".git", ".venv", "venv", "_build", "site-packages"]
    )

    # ── Link checking ────────────────────────────────────────────
    link_timeout: float = Field(default=10.0, gt=0)
    link_concurrency: int = Field(default=8, ge=1, le=64)
    link_retries: int = Field(default=2, ge=0, le=10)
    link_user_agent: str = Field(default="guidelint-linkcheck/0.3")
    ignore_urls: list[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return upper

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        lower = value.lower()
        if lower not in {"console", "json", "auto"}:
            raise ValueError("log_format must be console, json or auto")
        return lower

    @field_validator("toc_heading_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        _compile_or_raise(value)
        return value

    @field_validator("ignore_urls")
    @classmethod
    def _check_ignore_urls(cls, value: list[str]) -> list[str]:
        for pattern in value:
            _compile_or_raise(pattern)
        return value

    @field_validator("disabled_rules")
    @classmethod
    def _normalize_codes(cls, value: list[str]) -> list[str]:
        return [code.strip().upper() for code in value if code.strip()]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # init kwargs carry the YAML file values; the environment wins over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    # ── Derived ──────────────────────────────────────────────────

    @property
    def json_logs(self) -> bool | None:
        """``json_format`` argument for ``configure_logging``."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"

    def is_disabled(self, code: str) -> bool:
        return code.upper() in self.disabled_rules

    def should_skip(self, path: Path) -> bool:
        """Check if a path should be skipped when expanding directories."""
        parts = set(path.parts)
        return any(pattern in parts for pattern in self.skip_patterns)

    def is_ignored_url(self, url: str) -> bool:
        return any(re.search(pattern, url) for pattern in self.ignore_urls)


# ── Loading ──────────────────────────────────────────────────────────────


def find_project_root(start: Path | None = None) -> Path:
    """Walk upward from *start* to the nearest ``pyproject.toml`` or ``.git``.

    Falls back to *start* (or cwd) when no marker is found.
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / "pyproject.toml").exists():
            return directory
        if (directory / ".git").exists():
            return directory
    return current


def discover_config_file(start: Path | None = None) -> Path | None:
    """Return the nearest ``.guidelint.yml`` between *start* and the project root."""
    current = (start or Path.cwd()).resolve()
    root = find_project_root(current)
    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        if directory == root:
            break
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a YAML config file into a plain dict.

    Raises:
        ConfigError: file missing, unreadable, invalid YAML, or not a mapping
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}", path=str(path))
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}", path=str(path), cause=exc) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping", path=str(path))
    # YAML keys may use dashes (disabled-rules); fields use underscores
    return {str(key).replace("-", "_"): value for key, value in data.items()}


def load_settings(
    config_path: Path | None = None,
    *,
    start: Path | None = None,
    **overrides: Any,
) -> GuidelintSettings:
    """Load and validate settings.

    Args:
        config_path: Explicit YAML file. When None, ``.guidelint.yml`` is discovered.
        start: Directory to start discovery from (defaults to cwd).
        **overrides: Values applied last (CLI flags). ``None`` values are ignored.

    Raises:
        ConfigError: invalid file or invalid values
    """
    path = config_path or discover_config_file(start)
    file_values = read_config_file(path) if path else {}

    try:
        settings = GuidelintSettings(**file_values)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid configuration: {exc}",
            path=str(path) if path else None,
            cause=exc,
        ) from exc

    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        try:
            settings = GuidelintSettings.model_validate({**settings.model_dump(), **updates})
        except ValidationError as exc:
            raise ConfigError(f"Invalid option: {exc}", cause=exc) from exc
    return settings


__all__ = [
    "GuidelintSettings",
    "find_project_root",
    "discover_config_file",
    "read_config_file",
    "load_settings",
]
