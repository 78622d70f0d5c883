# DEALROOM - Service Core
"""
Service-level configuration for the DEALROOM engine.
"""

from dealroom.core.config_manager import (
    LifecycleConfig,
    LoggingConfig,
    DealRoomConfig,
    ConfigManager,
)

__all__ = [
    "LifecycleConfig",
    "LoggingConfig",
    "DealRoomConfig",
    "ConfigManager",
]
