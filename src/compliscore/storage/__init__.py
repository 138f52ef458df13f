"""
Storage collaborators for compliscore.

This package provides the interfaces the scoring core consumes and their
implementations:

- SnapshotStore: append-only trend samples
  (InMemorySnapshotStore, LocalSnapshotStore, S3SnapshotStore)
- FindingsSource: latest completed scan per account
  (InMemoryFindingsSource, LocalFindingsSource)

Use the get_snapshot_store() factory function to pick a backend.
"""

from compliscore.storage.base import FindingsSource, SnapshotStore, TrendSample, to_utc
from compliscore.storage.local import LocalFindingsSource, LocalSnapshotStore
from compliscore.storage.memory import InMemoryFindingsSource, InMemorySnapshotStore
from compliscore.storage.s3 import S3SnapshotStore


def get_snapshot_store(backend: str = "memory", **kwargs) -> SnapshotStore:
    """
    Factory function to get the appropriate snapshot store.

    Args:
        backend: Storage backend type. Supported values:
            - "memory": in-process store
            - "local": SQLite-based local storage
            - "s3": AWS S3 storage (requires boto3)
        **kwargs: Backend-specific configuration options

    Returns:
        Configured SnapshotStore instance

    Raises:
        ValueError: If backend type is unknown

    Examples:
        # Local storage with custom path
        store = get_snapshot_store("local", db_path="/tmp/compliscore.db")

        # AWS S3 storage
        store = get_snapshot_store("s3", bucket="my-bucket", prefix="compliscore")
    """
    backend = backend.lower()

    if backend == "memory":
        return InMemorySnapshotStore()

    elif backend == "local":
        return LocalSnapshotStore(**kwargs)

    elif backend == "s3":
        return S3SnapshotStore(**kwargs)

    else:
        raise ValueError(
            f"Unknown storage backend: {backend}. "
            "Supported backends: 'memory', 'local', 's3'"
        )


__all__ = [
    # Base
    "FindingsSource",
    "SnapshotStore",
    "TrendSample",
    "to_utc",
    # Implementations
    "InMemoryFindingsSource",
    "InMemorySnapshotStore",
    "LocalFindingsSource",
    "LocalSnapshotStore",
    "S3SnapshotStore",
    # Factory
    "get_snapshot_store",
]
