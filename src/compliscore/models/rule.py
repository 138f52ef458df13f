"""
Rule data model for compliscore.

A Rule is a fixed, provider-specific predicate over a configuration
payload and the evaluation time. It reads no other state, so the same
inputs always give the same verdict. Each rule carries a RuleContract
describing the structural shape its predicate expects, which the
evaluator checks before the predicate runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from compliscore.models.finding import FindingStatus, Severity

Predicate = Callable[[dict[str, Any], datetime], FindingStatus]


@dataclass(frozen=True)
class FieldSpec:
    """Expected type for one top-level configuration field."""

    types: tuple[type, ...]
    required: bool = False
    nullable: bool = True


@dataclass(frozen=True)
class RuleContract:
    """
    Structural contract for a rule's configuration input.

    Only top-level fields are described. A field that is absent is a
    violation only when marked required; a present field must match one
    of the declared types (None is accepted when nullable).
    """

    fields: dict[str, FieldSpec] = field(default_factory=dict)

    def validate(self, config: Any) -> list[str]:
        """
        Check a configuration payload against the contract.

        Args:
            config: Configuration payload to check

        Returns:
            List of violations (empty if the payload conforms)
        """
        if not isinstance(config, dict):
            return [f"configuration must be a mapping, got {type(config).__name__}"]

        violations: list[str] = []
        for name, spec in self.fields.items():
            if name not in config:
                if spec.required:
                    violations.append(f"missing required field '{name}'")
                continue

            value = config[name]
            if value is None:
                if not spec.nullable:
                    violations.append(f"field '{name}' must not be null")
                continue

            # bool is a subclass of int; reject it unless explicitly allowed
            if isinstance(value, bool) and bool not in spec.types:
                violations.append(
                    f"field '{name}' expected {_type_names(spec.types)}, got bool"
                )
                continue

            if not isinstance(value, spec.types):
                violations.append(
                    f"field '{name}' expected {_type_names(spec.types)}, "
                    f"got {type(value).__name__}"
                )

        return violations


def _type_names(types: tuple[type, ...]) -> str:
    return " or ".join(t.__name__ for t in types)


@dataclass(frozen=True)
class Rule:
    """
    A security rule scoped to (provider, service, resource_type).

    Attributes:
        id: Globally unique rule id
        provider: Provider the rule applies to
        service: Provider service
        resource_type: Resource type within the service
        severity: Severity assigned to findings produced by the rule
        description: What the rule checks
        remediation: How to fix a failing resource
        evaluate: Predicate over (config, evaluated_at) returning pass, warn, or fail
        contract: Structural contract for the predicate's input
    """

    id: str
    provider: str
    service: str
    resource_type: str
    severity: Severity
    evaluate: Predicate = field(compare=False, repr=False)
    description: str = ""
    remediation: str = ""
    contract: RuleContract = field(default_factory=RuleContract, compare=False)

    @property
    def scope(self) -> tuple[str, str, str]:
        """The (provider, service, resource_type) index key."""
        return (self.provider, self.service, self.resource_type)

    def to_dict(self) -> dict[str, Any]:
        """Describe the rule without its predicate."""
        return {
            "id": self.id,
            "provider": self.provider,
            "service": self.service,
            "resourceType": self.resource_type,
            "severity": self.severity.value,
            "description": self.description,
            "remediation": self.remediation,
        }
