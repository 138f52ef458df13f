"""Built-in GCP Cloud Storage rules."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from compliscore.models import FieldSpec, FindingStatus, Rule, RuleContract, Severity

_PUBLIC_MEMBERS = ("allUsers", "allAuthenticatedUsers")


def _bucket_encryption(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    bucket = config.get("bucket")
    if not bucket:
        return FindingStatus.FAIL

    encryption = bucket.get("encryption") or {}
    if encryption.get("defaultKmsKeyName"):
        return FindingStatus.PASS
    return FindingStatus.FAIL


def _bucket_public_access(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    bucket = config.get("bucket")
    if not bucket:
        return FindingStatus.FAIL

    if bucket.get("publicAccessPrevention") is False:
        return FindingStatus.FAIL

    iam_policy = config.get("iamPolicy") or {}
    for binding in iam_policy.get("bindings") or []:
        members = binding.get("members") or []
        if any(member in _PUBLIC_MEMBERS for member in members):
            return FindingStatus.FAIL

    return FindingStatus.PASS


GCP_RULES: list[Rule] = [
    Rule(
        id="gcp-storage-bucket-encryption",
        provider="gcp",
        service="storage",
        resource_type="gcs-bucket",
        severity=Severity.HIGH,
        description="Checks if bucket uses a customer-managed KMS key",
        remediation="Configure a default Cloud KMS key on the bucket.",
        evaluate=_bucket_encryption,
        contract=RuleContract({"bucket": FieldSpec((dict,))}),
    ),
    Rule(
        id="gcp-storage-bucket-public-access",
        provider="gcp",
        service="storage",
        resource_type="gcs-bucket",
        severity=Severity.CRITICAL,
        description="Checks if bucket is reachable by allUsers or allAuthenticatedUsers",
        remediation=(
            "Enforce public access prevention and remove public IAM bindings "
            "from the bucket."
        ),
        evaluate=_bucket_public_access,
        contract=RuleContract({
            "bucket": FieldSpec((dict,)),
            "iamPolicy": FieldSpec((dict,)),
        }),
    ),
]
