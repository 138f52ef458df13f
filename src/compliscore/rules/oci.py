"""Built-in OCI Object Storage rules."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from compliscore.models import FieldSpec, FindingStatus, Rule, RuleContract, Severity


def _bucket_encryption(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    bucket = config.get("bucket")
    if not bucket:
        return FindingStatus.FAIL
    if bucket.get("kmsKeyId"):
        return FindingStatus.PASS
    return FindingStatus.FAIL


def _bucket_public_access(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    bucket = config.get("bucket")
    if not bucket:
        return FindingStatus.FAIL
    if bucket.get("publicAccessType") == "NoPublicAccess":
        return FindingStatus.PASS
    if config.get("preauthenticatedRequests"):
        return FindingStatus.WARN
    return FindingStatus.FAIL


OCI_RULES: list[Rule] = [
    Rule(
        id="oci-objectstorage-bucket-encryption",
        provider="oci",
        service="objectstorage",
        resource_type="bucket",
        severity=Severity.HIGH,
        description="Checks if bucket is encrypted with a customer-managed Vault key",
        remediation="Assign a Vault master encryption key to the bucket.",
        evaluate=_bucket_encryption,
        contract=RuleContract({"bucket": FieldSpec((dict,))}),
    ),
    Rule(
        id="oci-objectstorage-bucket-public-access",
        provider="oci",
        service="objectstorage",
        resource_type="bucket",
        severity=Severity.CRITICAL,
        description="Checks if bucket denies public access",
        remediation="Set the bucket visibility to private (NoPublicAccess).",
        evaluate=_bucket_public_access,
        contract=RuleContract({
            "bucket": FieldSpec((dict,)),
            "preauthenticatedRequests": FieldSpec((list,)),
        }),
    ),
]
