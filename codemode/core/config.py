"""
Configuration management for codemode.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


@dataclass
class SandboxConfig:
    """Execution host configuration."""

    node_executable: str = "node"
    default_timeout_ms: int = 30000
    projects_root: str = "/projects"
    env_allowlist: list[str] = field(default_factory=list)
    max_log_lines: int = 1000
    max_output_chars: int = 100_000
    region_aware_rewrites: bool = False


@dataclass
class CapabilityConfig:
    """Locations backing the default capability façades."""

    bestcase_dir: str = ".codemode/bestcases"
    guides_dir: str = ".codemode/guides"
    host_projects_path: str | None = None


@dataclass
class LoggingConfig:
    """Configuration for diagnostic logging."""

    level: str = "INFO"
    mask_sensitive_data: bool = False
    max_preview_length: int = 200


@dataclass
class ProjectConfig:
    """Main configuration."""

    name: str = "codemode"
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    capabilities: CapabilityConfig = field(default_factory=CapabilityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "ProjectConfig":
        """Load configuration from file."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path) as f:
                if config_path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Failed to load configuration: expected a mapping in {config_path}"
            )
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectConfig":
        """Build a config from plain data, ignoring unknown keys."""
        try:
            sandbox = _build_section(SandboxConfig, data.get("sandbox"))
            capabilities = _build_section(CapabilityConfig, data.get("capabilities"))
            logging_cfg = _build_section(LoggingConfig, data.get("logging"))
        except TypeError as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if not isinstance(sandbox.env_allowlist, list):
            sandbox.env_allowlist = [str(sandbox.env_allowlist)]
        try:
            sandbox.default_timeout_ms = int(sandbox.default_timeout_ms)
        except (TypeError, ValueError):
            sandbox.default_timeout_ms = 0
        if sandbox.default_timeout_ms <= 0:
            raise ConfigurationError("sandbox.default_timeout_ms must be a positive integer")

        config = cls(
            name=str(data.get("name") or "codemode"),
            sandbox=sandbox,
            capabilities=capabilities,
            logging=logging_cfg,
        )
        config.apply_env_overrides()
        return config

    def apply_env_overrides(self) -> None:
        """Apply environment variables on top of file values."""
        projects_path = os.getenv("PROJECTS_PATH")
        if projects_path:
            self.sandbox.projects_root = projects_path

        host_path = os.getenv("HOST_PROJECTS_PATH")
        if host_path:
            self.capabilities.host_projects_path = host_path

        node = os.getenv("CODEMODE_NODE")
        if node:
            self.sandbox.node_executable = node

        if os.getenv("MASK_SENSITIVE_LOGS", "").lower() == "true":
            self.logging.mask_sensitive_data = True

        preview = os.getenv("MAX_LOG_PREVIEW_LENGTH")
        if preview:
            try:
                self.logging.max_preview_length = int(preview)
            except ValueError:
                raise ConfigurationError(
                    f"MAX_LOG_PREVIEW_LENGTH must be an integer, got {preview!r}"
                )

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to file."""
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            data = asdict(self)
            with open(config_path, "w") as f:
                if config_path.suffix.lower() == ".json":
                    json.dump(data, f, indent=2)
                else:
                    yaml.dump(data, f, default_flow_style=False, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}") from e

    @classmethod
    def create_default(cls) -> "ProjectConfig":
        """Create default configuration with environment overrides applied."""
        config = cls()
        config.apply_env_overrides()
        return config


def _build_section(section_cls: type, raw: Any) -> Any:
    if raw is None:
        return section_cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Section for {section_cls.__name__} must be a mapping, got {type(raw).__name__}"
        )
    valid = set(section_cls.__dataclass_fields__)
    return section_cls(**{k: v for k, v in raw.items() if k in valid})


class ConfigManager:
    """Manages codemode configuration."""

    CONFIG_FILENAMES = ("codemode.yaml", "codemode.yml", "codemode.json")

    def __init__(self, project_root: Path | None = None, config_path: Path | None = None):
        self.project_root = project_root or Path.cwd()
        self.config_path = config_path or self._resolve_config_path()
        self._config: ProjectConfig | None = None

    def _resolve_config_path(self) -> Path:
        """Pick the first existing config file, defaulting to codemode.yaml."""
        for filename in self.CONFIG_FILENAMES:
            candidate = self.project_root / filename
            if candidate.exists():
                return candidate
        return self.project_root / self.CONFIG_FILENAMES[0]

    @property
    def config(self) -> ProjectConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load_config()
        return self._config

    def load_config(self) -> ProjectConfig:
        """Load configuration from file, or defaults when no file exists."""
        if self.config_path.exists():
            self._config = ProjectConfig.load_from_file(self.config_path)
        else:
            self._config = ProjectConfig.create_default()
        return self._config

    def save_config(self) -> None:
        """Save current configuration to file."""
        if self._config is None:
            raise ConfigurationError("No configuration to save")
        self._config.save_to_file(self.config_path)
