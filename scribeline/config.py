"""
scribeline.config - YAML config loading, profile merging, validation.

Handles loading scribeline.yaml, applying profile defaults, and validating
all engine parameters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from scribeline.exceptions import ConfigError

RESTART_POLICIES = {"legacy", "auto_offset", "require_monotonic"}
EXPORT_GRANULARITIES = {"grouped", "segments"}

CONFIG_FILENAME = "scribeline.yaml"


class EngineConfig(BaseModel):
    """Resolved configuration for a transcript timeline engine."""

    profile: str = "live"

    max_caption_duration: float = Field(default=2.0, gt=0.0)
    max_caption_chars: int = Field(default=42, gt=0)
    export_granularity: str = "grouped"

    restart_policy: str = "auto_offset"
    flush_on_stop: bool = True
    throttle_interval: float = Field(default=0.25, ge=0.0)

    audit_max_entries: int = Field(default=300, gt=0)
    audit_max_text_length: int = Field(default=500, gt=0)
    audit_dir: Path | None = None
    sessions_dir: Path | None = None

    @field_validator("restart_policy")
    @classmethod
    def validate_restart_policy(cls, v: str) -> str:
        if v not in RESTART_POLICIES:
            raise ValueError(f"restart_policy must be one of: {RESTART_POLICIES}")
        return v

    @field_validator("export_granularity")
    @classmethod
    def validate_granularity(cls, v: str) -> str:
        if v not in EXPORT_GRANULARITIES:
            raise ValueError(f"export_granularity must be one of: {EXPORT_GRANULARITIES}")
        return v

    @field_validator("profile")
    @classmethod
    def validate_profile(cls, v: str) -> str:
        if v not in BUILTIN_PROFILES:
            raise ValueError(f"profile must be one of: {set(BUILTIN_PROFILES)}")
        return v


BUILTIN_PROFILES: dict[str, dict[str, Any]] = {
    "live": {
        "max_caption_duration": 2.0,
        "max_caption_chars": 42,
        "restart_policy": "auto_offset",
        "throttle_interval": 0.25,
    },
    "broadcast": {
        "max_caption_duration": 6.0,
        "max_caption_chars": 32,
        "restart_policy": "require_monotonic",
        "throttle_interval": 0.5,
    },
    "forensic": {
        "max_caption_duration": 2.0,
        "max_caption_chars": 42,
        "restart_policy": "legacy",
        "throttle_interval": 0.0,
        "audit_max_entries": 5000,
        "audit_max_text_length": 4000,
    },
}


def load_profile(name: str) -> dict[str, Any]:
    """Return a copy of a built-in profile's settings."""
    if name in BUILTIN_PROFILES:
        return BUILTIN_PROFILES[name].copy()
    raise ConfigError(f"Unknown profile: {name}")


def merge_config(file_config: dict[str, Any], profile: dict[str, Any]) -> dict[str, Any]:
    """Merge file config with profile defaults. File config takes precedence."""
    merged = profile.copy()
    for key, value in file_config.items():
        if value is not None:
            merged[key] = value
    return merged


def build_config(raw_config: dict[str, Any] | None = None) -> EngineConfig:
    """Resolve a raw settings dict against its profile and validate it.

    Raises:
        ConfigError: If the profile is unknown or a value is invalid
    """
    raw_config = raw_config or {}
    profile_name = raw_config.get("profile", "live")
    merged = merge_config(raw_config, load_profile(profile_name))
    merged["profile"] = profile_name
    try:
        return EngineConfig(**merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(path: Path) -> EngineConfig:
    """Load and validate configuration from a YAML file or a directory holding one."""
    config_file = path / CONFIG_FILENAME if path.is_dir() else path
    if not config_file.exists():
        raise ConfigError(f"No {CONFIG_FILENAME} found at {path}")

    with open(config_file) as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    return build_config(raw_config)


def create_default_config(profile: str = "live") -> dict[str, Any]:
    """Create a default config dict for a profile."""
    defaults: dict[str, Any] = {"profile": profile, "flush_on_stop": True}
    return merge_config(defaults, load_profile(profile))


def write_config(config: dict[str, Any], path: Path) -> None:
    """Write configuration to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def apply_overrides(config: EngineConfig, **overrides: Any) -> EngineConfig:
    """Return a validated copy of `config` with non-None overrides applied.

    Raises:
        ConfigError: If an override is invalid
    """
    values = config.model_dump()
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return EngineConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
