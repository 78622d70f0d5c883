"""
DEALROOM - Engine Configuration Manager
=======================================

Centralized configuration for the access engine.

Features:
- YAML/JSON configuration loading
- Environment variable overrides (DEALROOM_<SECTION>__<KEY>)
- Configuration validation
- Reload support

Author: DEALROOM Development Team
Version: 1.0.0
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import yaml

from shared.dealroom_core.audit_log import AuditLogConfig
from shared.dealroom_core.constants import DEFAULT_SOFT_DELETE_GRACE_DAYS
from shared.dealroom_core.engine import EngineConfig
from shared.dealroom_core.exceptions import ConfigurationError
from shared.dealroom_core.viewer import ViewerConfig

logger = logging.getLogger("DEALROOM_ConfigManager")

C = TypeVar("C")


@dataclass
class LifecycleConfig:
    """Room lifecycle defaults."""

    default_grace_days: int = DEFAULT_SOFT_DELETE_GRACE_DAYS


@dataclass
class LoggingConfig:
    log_level: str = "INFO"


@dataclass
class DealRoomConfig:
    """Complete engine configuration."""

    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    audit: AuditLogConfig = field(default_factory=AuditLogConfig)
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


SECTIONS: Dict[str, Type[Any]] = {
    "lifecycle": LifecycleConfig,
    "audit": AuditLogConfig,
    "viewer": ViewerConfig,
    "engine": EngineConfig,
    "logging": LoggingConfig,
}


def _build_section(cls: Type[C], raw: Dict[str, Any]) -> C:
    """Dataclass from a raw mapping; unknown keys are logged and ignored."""
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {sorted(unknown)}")
    return cls(**{k: v for k, v in raw.items() if k in known})


class ConfigManager:
    """
    Configuration manager for the DEALROOM engine.

    Example:
        config_manager = ConfigManager()
        config_manager.load("config/dealroom.yaml")

        timeout = config_manager.get("viewer.idle_timeout_minutes")
        attempts = config_manager.audit.retry_attempts
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None, env_prefix: str = "DEALROOM_"):
        self._config_path: Optional[Path] = Path(config_path) if config_path else None
        self._config: DealRoomConfig = DealRoomConfig()
        self._raw_config: Dict[str, Any] = {}
        self._loaded_at: Optional[datetime] = None
        self._env_prefix = env_prefix

        if self._config_path:
            self.load(self._config_path)
        else:
            self._apply_env_overrides()
            self._parse_config()

        logger.info("ConfigManager initialized")

    def load(self, path: Union[str, Path]) -> bool:
        """
        Load configuration from file.

        Args:
            path: Path to config file (YAML or JSON)

        Returns:
            True if loaded successfully
        """
        path = Path(path)

        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return False

        try:
            with open(path, "r") as f:
                if path.suffix in [".yaml", ".yml"]:
                    self._raw_config = yaml.safe_load(f) or {}
                elif path.suffix == ".json":
                    self._raw_config = json.load(f)
                else:
                    logger.error(f"Unsupported config format: {path.suffix}")
                    return False
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load config: {e}")
            return False

        self._apply_env_overrides()
        self._parse_config()

        self._config_path = path
        self._loaded_at = datetime.now(timezone.utc)
        logger.info(f"Configuration loaded from: {path}")
        return True

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        for key, value in os.environ.items():
            if key.startswith(self._env_prefix):
                config_key = key[len(self._env_prefix):].lower().replace("__", ".")
                if config_key.split(".")[0] not in SECTIONS:
                    continue
                self._set_nested(config_key, self._parse_value(value))

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def _set_nested(self, key: str, value: Any) -> None:
        """Set a nested config value using dot notation."""
        parts = key.split(".")
        current = self._raw_config

        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = value

    def _parse_config(self) -> None:
        """Parse raw config into structured config."""
        raw = self._raw_config
        try:
            self._config = DealRoomConfig(
                **{
                    name: _build_section(cls, raw.get(name) or {})
                    for name, cls in SECTIONS.items()
                }
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Reads the structured config, so defaults are visible too.
        """
        parts = key.split(".")
        current: Any = asdict(self._config)

        for part in parts:
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value (runtime only)."""
        self._set_nested(key, value)
        self._parse_config()

    @property
    def config(self) -> DealRoomConfig:
        return self._config

    @property
    def lifecycle(self) -> LifecycleConfig:
        return self._config.lifecycle

    @property
    def audit(self) -> AuditLogConfig:
        return self._config.audit

    @property
    def viewer(self) -> ViewerConfig:
        return self._config.viewer

    @property
    def engine(self) -> EngineConfig:
        return self._config.engine

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._config_path:
            return self.load(self._config_path)
        return False

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        viewer = self._config.viewer
        audit = self._config.audit

        if viewer.zoom_min >= viewer.zoom_max:
            errors.append("viewer.zoom_min must be < viewer.zoom_max")
        if viewer.zoom_step <= 0:
            errors.append("viewer.zoom_step must be > 0")
        if not viewer.zoom_min <= viewer.zoom_default <= viewer.zoom_max:
            errors.append("viewer.zoom_default must lie within [zoom_min, zoom_max]")
        if viewer.idle_timeout_minutes <= 0:
            errors.append("viewer.idle_timeout_minutes must be > 0")
        if viewer.closed_history_size < 0:
            errors.append("viewer.closed_history_size must be >= 0")

        if audit.retry_attempts < 1:
            errors.append("audit.retry_attempts must be >= 1")
        if audit.retry_backoff_ms < 0:
            errors.append("audit.retry_backoff_ms must be >= 0")
        if audit.default_page_size < 1:
            errors.append("audit.default_page_size must be >= 1")
        if audit.max_page_size < audit.default_page_size:
            errors.append("audit.max_page_size must be >= audit.default_page_size")

        if self._config.lifecycle.default_grace_days < 0:
            errors.append("lifecycle.default_grace_days must be >= 0")

        if self._config.engine.decision_history_size < 1:
            errors.append("engine.decision_history_size must be >= 1")

        if self._config.logging.log_level.upper() not in (
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"
        ):
            errors.append("logging.log_level is not a valid level")

        return errors

    def require_valid(self) -> DealRoomConfig:
        """Structured config, or ConfigurationError listing every problem."""
        errors = self.validate()
        if errors:
            raise ConfigurationError(
                "Invalid engine configuration: " + "; ".join(errors),
                details={"errors": errors},
            )
        return self._config

    def get_info(self) -> Dict[str, Any]:
        """Get configuration info."""
        return {
            "path": str(self._config_path) if self._config_path else None,
            "loaded_at": self._loaded_at.isoformat() if self._loaded_at else None,
            "idle_timeout_minutes": self._config.viewer.idle_timeout_minutes,
            "audit_retry_attempts": self._config.audit.retry_attempts,
            "validation_errors": self.validate(),
        }


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "LifecycleConfig",
    "LoggingConfig",
    "DealRoomConfig",
    "ConfigManager",
]
