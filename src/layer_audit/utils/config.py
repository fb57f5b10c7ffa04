"""Configuration file support for layer-audit."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from layer_audit.models.policy import BaselinePolicy, ExclusionPolicy
from layer_audit.utils.errors import ConfigurationError


class AuditConfig(BaseModel):
    """Audit pipeline configuration."""

    baseline_policy: BaselinePolicy = Field(
        default=BaselinePolicy.FLAGS, description="Which installed files are tracked"
    )
    database_dir: str = Field(default="var/lib/rpm", description="Package database directory")
    exclusions: ExclusionPolicy = Field(default_factory=ExclusionPolicy)


class RegistryConfig(BaseModel):
    """Image source configuration."""

    default_source: str = Field(default="registry", description="registry, archive or docker")
    docker_config_path: str | None = Field(default=None, description="Docker config path")
    timeout: float = Field(default=300.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Transport retry attempts")


class OutputConfig(BaseModel):
    """Output configuration."""

    directory: str = Field(default=".", description="Where report artifacts are written")
    write_artifacts: bool = Field(default=True, description="Write JSON artifacts")
    color: bool = Field(default=True, description="Enable color output")
    verbose: bool = Field(default=False, description="Verbose output")


class LayerAuditConfig(BaseModel):
    """Main configuration for layer-audit."""

    audit: AuditConfig = Field(default_factory=AuditConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


def get_config_paths() -> list[Path]:
    """Get possible configuration file paths.

    Returns:
        List of paths to check for configuration files
    """
    paths = []

    paths.append(Path.cwd() / ".layer-audit.yaml")
    paths.append(Path.cwd() / ".layer-audit.yml")
    paths.append(Path.cwd() / "layer-audit.yaml")

    home = Path.home()
    paths.append(home / ".layer-audit.yaml")
    paths.append(home / ".config" / "layer-audit" / "config.yaml")

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        paths.append(Path(xdg_config) / "layer-audit" / "config.yaml")

    return paths


def load_config(config_path: Path | str | None = None) -> LayerAuditConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the explicit file is missing or any file is invalid
    """
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            return _load_config_file(path)
        raise ConfigurationError(f"Config file not found: {config_path}")

    for path in get_config_paths():
        if path.exists():
            return _load_config_file(path)

    return LayerAuditConfig()


def _load_config_file(path: Path) -> LayerAuditConfig:
    """Load configuration from a specific file."""
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {path}: {e}") from e
    if data is None:
        return LayerAuditConfig()
    try:
        return LayerAuditConfig.model_validate(data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e


def save_config(config: LayerAuditConfig, config_path: Path | str | None = None) -> Path:
    """Save configuration to file.

    Args:
        config: Configuration to save
        config_path: Path to save to. Defaults to ~/.config/layer-audit/config.yaml

    Returns:
        Path where config was saved
    """
    if config_path is None:
        config_path = Path.home() / ".config" / "layer-audit" / "config.yaml"
    else:
        config_path = Path(config_path)

    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json", exclude_defaults=True)
    config_path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))

    return config_path


def get_default_config() -> LayerAuditConfig:
    """Get the default configuration."""
    return LayerAuditConfig()


_config: LayerAuditConfig | None = None


def get_config() -> LayerAuditConfig:
    """Get the global configuration instance, loading it on first call."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: LayerAuditConfig | None) -> None:
    """Set the global configuration instance (None forces a reload)."""
    global _config
    _config = config
