"""
Asset data model for compliscore.

An Asset identifies a cloud or SCM resource discovered by an external
collector. Rules are scoped to assets by (provider, service, resource_type);
the configuration payload itself is supplied separately at evaluation time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Asset:
    """
    Represents a discovered resource.

    Attributes:
        id: Unique asset identifier
        account_id: Account the asset belongs to
        provider: Provider name (aws, azure, gcp, oci, github)
        service: Provider service (e.g. "s3", "iam", "storage")
        resource_type: Resource type within the service (e.g. "s3_bucket")
        resource_id: Provider-native resource identifier (ARN, URI, ...)
        region: Region where the resource lives, if any
        tags: Resource tags as key-value pairs
    """

    id: str
    account_id: str
    provider: str
    service: str
    resource_type: str
    resource_id: str = ""
    region: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def scope(self) -> tuple[str, str, str]:
        """The (provider, service, resource_type) key rules are indexed by."""
        return (self.provider, self.service, self.resource_type)

    def to_dict(self) -> dict[str, Any]:
        """Convert asset to dictionary representation."""
        return {
            "id": self.id,
            "accountId": self.account_id,
            "provider": self.provider,
            "service": self.service,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "region": self.region,
            "tags": self.tags,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Asset:
        """Create an Asset from a dictionary (camelCase or snake_case keys)."""
        return cls(
            id=data["id"],
            account_id=data.get("accountId", data.get("account_id", "")),
            provider=data.get("provider", ""),
            service=data.get("service", ""),
            resource_type=data.get("resourceType", data.get("resource_type", "")),
            resource_id=data.get("resourceId", data.get("resource_id", "")),
            region=data.get("region", "") or "",
            tags=data.get("tags", {}) or {},
        )
