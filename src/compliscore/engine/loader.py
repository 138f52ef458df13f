"""
Framework catalog loader for compliscore.

Loads compliance framework definitions (framework, controls and rule
mappings) from YAML or JSON files. Each file describes one framework:

    framework:
      id: cis-aws-1.5.0
      name: CIS AWS Foundations Benchmark
      version: 1.5.0
    controls:
      - id: cis-aws-1.2
        controlId: "1.2"
        title: Ensure MFA is enabled for all IAM users with console access
        severity: high
    mappings:
      - ruleId: aws-iam-user-mfa-enabled
        controlId: cis-aws-1.2
        mappingType: direct

Any malformed file aborts loading with CatalogLoadError.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import yaml

from compliscore.errors import CatalogLoadError
from compliscore.frameworks import BUNDLED_FRAMEWORKS_DIR
from compliscore.models import (
    ComplianceControl,
    ComplianceFramework,
    MappingType,
    RuleComplianceMapping,
    Severity,
)

logger = logging.getLogger(__name__)

CatalogData = tuple[
    list[ComplianceFramework],
    list[ComplianceControl],
    list[RuleComplianceMapping],
]

_EXTENSIONS = (".yaml", ".yml", ".json")


class CatalogLoader:
    """
    Loads framework definition files from configured directories.

    The bundled frameworks shipped with the package are included unless
    include_bundled is False.
    """

    def __init__(
        self,
        catalog_dirs: list[str] | None = None,
        include_bundled: bool = True,
    ):
        """
        Initialize the catalog loader.

        Args:
            catalog_dirs: Extra directories to search for framework files
            include_bundled: Whether to load the bundled frameworks
        """
        self._catalog_dirs = list(catalog_dirs or [])
        if include_bundled:
            self._catalog_dirs.insert(0, BUNDLED_FRAMEWORKS_DIR)

    def load_all(self) -> CatalogData:
        """
        Load every framework file from the configured directories.

        Returns:
            Tuple of (frameworks, controls, mappings)

        Raises:
            CatalogLoadError: If any file cannot be loaded
        """
        frameworks: list[ComplianceFramework] = []
        controls: list[ComplianceControl] = []
        mappings: list[RuleComplianceMapping] = []

        paths = self.discover()
        if not paths:
            logger.warning("No framework files found in configured directories")

        for path in paths:
            framework, file_controls, file_mappings = self.load_file(path)
            frameworks.append(framework)
            controls.extend(file_controls)
            mappings.extend(file_mappings)

        logger.info(
            f"Loaded {len(frameworks)} frameworks, {len(controls)} controls and "
            f"{len(mappings)} mappings from {len(paths)} files"
        )

        return frameworks, controls, mappings

    def discover(self) -> list[str]:
        """
        Find all framework files in the configured directories.

        Returns:
            Sorted list of file paths
        """
        paths: list[str] = []

        for dir_path in self._catalog_dirs:
            dir_path = os.path.expanduser(dir_path)

            if not os.path.isdir(dir_path):
                logger.debug(f"Catalog directory not found: {dir_path}")
                continue

            for root, _, files in os.walk(dir_path):
                for file in files:
                    if file.endswith(_EXTENSIONS):
                        paths.append(os.path.join(root, file))

        return sorted(paths)

    def load_file(
        self, path: str
    ) -> tuple[ComplianceFramework, list[ComplianceControl], list[RuleComplianceMapping]]:
        """
        Load a single framework definition file.

        Args:
            path: Path to a YAML or JSON file

        Returns:
            Tuple of (framework, controls, mappings)

        Raises:
            CatalogLoadError: If the file is missing or malformed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise CatalogLoadError(f"Cannot read file: {e}", path) from e

        try:
            if path.endswith(".json"):
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (ValueError, yaml.YAMLError) as e:
            raise CatalogLoadError(f"Cannot parse file: {e}", path) from e

        if not isinstance(data, dict):
            raise CatalogLoadError("Top level must be a mapping", path)

        try:
            return parse_framework_document(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogLoadError(f"Invalid framework definition: {e}", path) from e


def parse_framework_document(
    data: dict[str, Any],
) -> tuple[ComplianceFramework, list[ComplianceControl], list[RuleComplianceMapping]]:
    """
    Convert one parsed framework document into catalog entities.

    Control entries without an explicit catalog id get one derived from
    the framework id and control code.

    Raises:
        KeyError: If a required field is missing
        ValueError: If an enum field has an invalid value
    """
    fw = data["framework"]
    if not isinstance(fw, dict):
        raise TypeError("'framework' must be a mapping")

    framework = ComplianceFramework(
        id=_require_str(fw, "id"),
        name=_require_str(fw, "name"),
        version=str(fw["version"]),
        description=fw.get("description", ""),
    )

    controls = [_parse_control(framework.id, item) for item in data.get("controls") or []]
    mappings = [_parse_mapping(item) for item in data.get("mappings") or []]

    return framework, controls, mappings


def _parse_control(framework_id: str, item: dict[str, Any]) -> ComplianceControl:
    control_code = str(_get(item, "controlId", "control_id"))
    severity = item.get("severity")

    return ComplianceControl(
        id=item.get("id") or f"{framework_id}-{control_code}",
        framework_id=framework_id,
        control_id=control_code,
        title=_require_str(item, "title"),
        description=item.get("description", ""),
        category=item.get("category", ""),
        severity=Severity.from_string(severity) if severity else None,
        implementation_guidance=_get(
            item, "implementationGuidance", "implementation_guidance", default=""
        ),
        audit_guidance=_get(item, "auditGuidance", "audit_guidance", default=""),
        references=tuple(item.get("references") or ()),
    )


def _parse_mapping(item: dict[str, Any]) -> RuleComplianceMapping:
    mapping_type = _get(item, "mappingType", "mapping_type", default="direct")

    return RuleComplianceMapping(
        rule_id=str(_get(item, "ruleId", "rule_id")),
        control_id=str(_get(item, "controlId", "control_id")),
        mapping_type=MappingType(str(mapping_type).lower()),
        evidence_requirements=tuple(
            _get(item, "evidenceRequirements", "evidence_requirements", default=()) or ()
        ),
    )


_MISSING = object()


def _get(item: dict[str, Any], camel: str, snake: str, default: Any = _MISSING) -> Any:
    """Read a field by its camelCase or snake_case name."""
    if camel in item:
        return item[camel]
    if snake in item:
        return item[snake]
    if default is _MISSING:
        raise KeyError(camel)
    return default


def _require_str(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    if not value:
        raise KeyError(key)
    return str(value)
