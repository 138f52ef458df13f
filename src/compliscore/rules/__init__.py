"""
Built-in rule registry for compliscore.

Rules are fixed Python predicates grouped by provider. default_rules()
returns a fresh list suitable for RuleCatalog.from_rules().
"""

from __future__ import annotations

from compliscore.models import Rule
from compliscore.rules.aws import AWS_RULES
from compliscore.rules.azure import AZURE_RULES
from compliscore.rules.gcp import GCP_RULES
from compliscore.rules.github import GITHUB_RULES
from compliscore.rules.oci import OCI_RULES

RULES_BY_PROVIDER: dict[str, list[Rule]] = {
    "aws": AWS_RULES,
    "azure": AZURE_RULES,
    "gcp": GCP_RULES,
    "oci": OCI_RULES,
    "github": GITHUB_RULES,
}


def default_rules(providers: list[str] | None = None) -> list[Rule]:
    """
    Return the built-in rules.

    Args:
        providers: Restrict to these providers (default: all)

    Returns:
        List of Rule objects
    """
    selected = providers or list(RULES_BY_PROVIDER)
    rules: list[Rule] = []
    for provider in selected:
        rules.extend(RULES_BY_PROVIDER.get(provider, []))
    return rules


__all__ = [
    "AWS_RULES",
    "AZURE_RULES",
    "GCP_RULES",
    "GITHUB_RULES",
    "OCI_RULES",
    "RULES_BY_PROVIDER",
    "default_rules",
]
