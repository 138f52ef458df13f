"""Built-in Azure storage rules."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from compliscore.models import FieldSpec, FindingStatus, Rule, RuleContract, Severity

_VALID_KEY_SOURCES = ("Microsoft.Storage", "Microsoft.Keyvault")


def _storage_encryption(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    encryption = config.get("encryption")
    if not encryption:
        return FindingStatus.FAIL

    key_source = encryption.get("keySource") or {}
    if key_source.get("type") in _VALID_KEY_SOURCES:
        return FindingStatus.PASS
    return FindingStatus.FAIL


def _storage_public_access(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    containers = config.get("containers") or []
    for container in containers:
        access = container.get("publicAccess")
        if access and access != "None":
            return FindingStatus.FAIL

    account = config.get("storageAccount") or {}
    if account.get("publicNetworkAccess") == "Enabled":
        return FindingStatus.WARN
    if account.get("allowBlobPublicAccess") is True:
        return FindingStatus.FAIL

    return FindingStatus.PASS


AZURE_RULES: list[Rule] = [
    Rule(
        id="azure-storage-account-encryption",
        provider="azure",
        service="storage",
        resource_type="storage-account",
        severity=Severity.HIGH,
        description="Checks if storage account encryption uses a managed key source",
        remediation="Enable storage service encryption with Microsoft or Key Vault keys.",
        evaluate=_storage_encryption,
        contract=RuleContract({"encryption": FieldSpec((dict,))}),
    ),
    Rule(
        id="azure-storage-account-public-access",
        provider="azure",
        service="storage",
        resource_type="storage-account",
        severity=Severity.CRITICAL,
        description="Checks if storage account or its containers allow public access",
        remediation=(
            "Disable blob public access on the account and set container "
            "access level to private."
        ),
        evaluate=_storage_public_access,
        contract=RuleContract({
            "containers": FieldSpec((list,)),
            "storageAccount": FieldSpec((dict,)),
        }),
    ),
]
