"""
Built-in AWS rules.

Configuration payloads follow the shapes produced by the AWS collectors
(S3 bucket and IAM user snapshots).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from compliscore.models import FieldSpec, FindingStatus, Rule, RuleContract, Severity

ACCESS_KEY_MAX_AGE_DAYS = 90


def _s3_public_access(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    block = config.get("publicAccessBlockConfiguration")
    if block:
        all_blocked = (
            block.get("blockPublicAcls") is True
            and block.get("blockPublicPolicy") is True
            and block.get("ignorePublicAcls") is True
            and block.get("restrictPublicBuckets") is True
        )
        if all_blocked:
            return FindingStatus.PASS

    acl = config.get("acl")
    if acl and (acl.get("AllUsers") or acl.get("AuthenticatedUsers")):
        return FindingStatus.FAIL

    policy = config.get("policy")
    if policy and policy.get("Statement"):
        for statement in policy["Statement"]:
            if statement.get("Effect") != "Allow":
                continue
            principal = statement.get("Principal")
            if principal == "*":
                return FindingStatus.FAIL
            if isinstance(principal, dict):
                aws = principal.get("AWS")
                if aws == "*" or (isinstance(aws, list) and "*" in aws):
                    return FindingStatus.FAIL

    # Nothing explicitly blocked, but no obvious public grant either
    return FindingStatus.WARN


def _s3_encryption(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    encryption = config.get("encryption")
    if not encryption or not encryption.get("Rules"):
        return FindingStatus.FAIL

    for rule in encryption["Rules"]:
        default = rule.get("ApplyServerSideEncryptionByDefault") or {}
        if default.get("SSEAlgorithm"):
            return FindingStatus.PASS
    return FindingStatus.FAIL


def _s3_versioning(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    versioning = config.get("versioning")
    if not versioning or versioning.get("Status") != "Enabled":
        return FindingStatus.FAIL
    return FindingStatus.PASS


def _s3_https_only(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    policy = config.get("policy") or {}
    for statement in policy.get("Statement") or []:
        if statement.get("Effect") != "Deny":
            continue
        condition = statement.get("Condition") or {}
        secure = (condition.get("Bool") or {}).get("aws:SecureTransport")
        if str(secure).lower() == "false":
            return FindingStatus.PASS
    return FindingStatus.FAIL


def _s3_mfa_delete(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    versioning = config.get("versioning") or {}
    if versioning.get("MFADelete") == "Enabled":
        return FindingStatus.PASS
    return FindingStatus.FAIL


def _iam_mfa(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    # Only users with console access (a login profile) need MFA
    if config.get("loginProfile") and not config.get("mfaDevices"):
        return FindingStatus.FAIL
    return FindingStatus.PASS


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iam_access_key_age(config: dict[str, Any], evaluated_at: datetime) -> FindingStatus:
    access_keys = config.get("accessKeys") or []

    for key in access_keys:
        if key.get("Status") != "Active":
            continue
        age = evaluated_at - _parse_timestamp(key["CreateDate"])
        if age.total_seconds() / 86400 > ACCESS_KEY_MAX_AGE_DAYS:
            return FindingStatus.FAIL

    return FindingStatus.PASS


AWS_RULES: list[Rule] = [
    Rule(
        id="aws-s3-bucket-public-access",
        provider="aws",
        service="s3",
        resource_type="s3_bucket",
        severity=Severity.HIGH,
        description="Checks if S3 bucket blocks public access",
        remediation="Enable all four S3 Block Public Access settings on the bucket.",
        evaluate=_s3_public_access,
        contract=RuleContract({
            "publicAccessBlockConfiguration": FieldSpec((dict,)),
            "acl": FieldSpec((dict,)),
            "policy": FieldSpec((dict,)),
        }),
    ),
    Rule(
        id="aws-s3-bucket-encryption",
        provider="aws",
        service="s3",
        resource_type="s3_bucket",
        severity=Severity.MEDIUM,
        description="Checks if S3 bucket has server-side encryption enabled",
        remediation="Enable default server-side encryption on the S3 bucket.",
        evaluate=_s3_encryption,
        contract=RuleContract({"encryption": FieldSpec((dict,))}),
    ),
    Rule(
        id="aws-s3-bucket-versioning",
        provider="aws",
        service="s3",
        resource_type="s3_bucket",
        severity=Severity.MEDIUM,
        description="Checks if S3 bucket has versioning enabled",
        remediation="Enable versioning on the S3 bucket.",
        evaluate=_s3_versioning,
        contract=RuleContract({"versioning": FieldSpec((dict,))}),
    ),
    Rule(
        id="aws-s3-bucket-https-only",
        provider="aws",
        service="s3",
        resource_type="s3_bucket",
        severity=Severity.MEDIUM,
        description="Checks if S3 bucket policy denies requests without TLS",
        remediation=(
            "Add a bucket policy statement denying all actions when "
            "aws:SecureTransport is false."
        ),
        evaluate=_s3_https_only,
        contract=RuleContract({"policy": FieldSpec((dict,))}),
    ),
    Rule(
        id="aws-s3-bucket-mfa-delete",
        provider="aws",
        service="s3",
        resource_type="s3_bucket",
        severity=Severity.MEDIUM,
        description="Checks if S3 bucket versioning requires MFA to delete",
        remediation="Enable MFA Delete in the bucket versioning configuration.",
        evaluate=_s3_mfa_delete,
        contract=RuleContract({"versioning": FieldSpec((dict,))}),
    ),
    Rule(
        id="aws-iam-user-mfa-enabled",
        provider="aws",
        service="iam",
        resource_type="iam_user",
        severity=Severity.HIGH,
        description="Checks if IAM user has MFA enabled",
        remediation="Enable MFA for all IAM users with console access.",
        evaluate=_iam_mfa,
        contract=RuleContract({
            "loginProfile": FieldSpec((dict,)),
            "mfaDevices": FieldSpec((list,)),
        }),
    ),
    Rule(
        id="aws-iam-access-key-age",
        provider="aws",
        service="iam",
        resource_type="iam_user",
        severity=Severity.MEDIUM,
        description=(
            f"Checks if active IAM access keys are older than "
            f"{ACCESS_KEY_MAX_AGE_DAYS} days"
        ),
        remediation="Rotate IAM user access keys at least every 90 days.",
        evaluate=_iam_access_key_age,
        contract=RuleContract({"accessKeys": FieldSpec((list,))}),
    ),
]
