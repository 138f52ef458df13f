"""
Configuration for compliscore.
"""

from compliscore.config.settings import (
    EngineConfiguration,
    StorageConfig,
    create_default_config,
    load_config_from_env,
)

__all__ = [
    "EngineConfiguration",
    "StorageConfig",
    "create_default_config",
    "load_config_from_env",
]
