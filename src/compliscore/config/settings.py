"""
Engine configuration for compliscore.

Settings are plain dataclasses. They can be saved to and loaded from
JSON or YAML files (chosen by extension) and can be assembled from
COMPLISCORE_* environment variables.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_LOCAL_PATH = "~/.compliscore"


def _is_json(path: str) -> bool:
    return path.lower().endswith(".json")


@dataclass
class StorageConfig:
    """Where trend snapshots (and, for `local`, scan findings) are kept."""

    backend: str = "local"  # memory, local, s3
    local_path: str = DEFAULT_LOCAL_PATH
    s3_bucket: str = ""
    s3_prefix: str = "compliscore"
    s3_region: str = "us-east-1"

    @property
    def db_path(self) -> str:
        """SQLite file used by the local backend."""
        return os.path.join(self.local_path, "compliscore.db")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageConfig:
        defaults = cls()
        return cls(**{
            name: data.get(name, value)
            for name, value in asdict(defaults).items()
        })


@dataclass
class EngineConfiguration:
    """
    Complete engine configuration.

    Attributes:
        catalog_dirs: Extra directories holding framework definition files
        include_bundled: Load the frameworks shipped with the package
        max_workers: Worker pool size (None = number of CPUs)
        trend_days: Default trend window in days
        gap_limit: Default number of gaps returned by top-gap queries
        storage: Snapshot store settings
    """

    catalog_dirs: list[str] = field(default_factory=list)
    include_bundled: bool = True
    max_workers: int | None = None
    trend_days: int = 30
    gap_limit: int = 10
    storage: StorageConfig = field(default_factory=StorageConfig)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["catalog_dirs"] = list(self.catalog_dirs)
        return data

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfiguration:
        """Build a configuration, taking defaults for any missing key."""
        return cls(
            catalog_dirs=list(data.get("catalog_dirs") or []),
            include_bundled=data.get("include_bundled", True),
            max_workers=data.get("max_workers"),
            trend_days=data.get("trend_days", 30),
            gap_limit=data.get("gap_limit", 10),
            storage=StorageConfig.from_dict(data.get("storage") or {}),
        )

    @classmethod
    def from_file(cls, path: str) -> EngineConfiguration:
        """
        Load a configuration file.

        Files ending in .json are read as JSON, anything else as YAML.
        An empty YAML file yields the defaults.
        """
        path = os.path.expanduser(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f) if _is_json(path) else yaml.safe_load(f)
        return cls.from_dict(data or {})

    def save(self, path: str) -> None:
        """Write the configuration as JSON or YAML, creating parent directories."""
        path = os.path.expanduser(path)
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            if _is_json(path):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False)


def load_config_from_env() -> EngineConfiguration:
    """
    Load configuration from environment variables.

    When COMPLISCORE_CONFIG_FILE names an existing file it is used as is
    and the other variables are ignored.

    Environment variables:
        COMPLISCORE_CONFIG_FILE: Path to configuration file
        COMPLISCORE_CATALOG_DIRS: Comma-separated framework directories
        COMPLISCORE_MAX_WORKERS: Worker pool size
        COMPLISCORE_STORAGE_BACKEND: Snapshot store (memory, local, s3)
        COMPLISCORE_S3_BUCKET: S3 bucket name
        COMPLISCORE_LOCAL_PATH: Directory for the SQLite database
    """
    env = os.environ
    config_file = env.get("COMPLISCORE_CONFIG_FILE")
    if config_file and os.path.exists(os.path.expanduser(config_file)):
        return EngineConfiguration.from_file(config_file)

    config = EngineConfiguration()
    config.catalog_dirs = [
        d.strip() for d in env.get("COMPLISCORE_CATALOG_DIRS", "").split(",") if d.strip()
    ]
    if env.get("COMPLISCORE_MAX_WORKERS"):
        config.max_workers = int(env["COMPLISCORE_MAX_WORKERS"])

    storage = config.storage
    storage.backend = env.get("COMPLISCORE_STORAGE_BACKEND", "local")
    storage.s3_bucket = env.get("COMPLISCORE_S3_BUCKET", "")
    storage.local_path = env.get("COMPLISCORE_LOCAL_PATH") or storage.local_path

    return config


def create_default_config() -> EngineConfiguration:
    """Bundled frameworks with local SQLite storage under ~/.compliscore."""
    return EngineConfiguration(
        catalog_dirs=[],
        include_bundled=True,
        storage=StorageConfig(backend="local", local_path=DEFAULT_LOCAL_PATH),
    )
