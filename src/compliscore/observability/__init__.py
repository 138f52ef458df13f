"""
Observability for compliscore.

- configure_logging: install a human-readable or JSON handler
- get_logger: ComplianceLogger with context fields and typed events
"""

from compliscore.observability.logging import (
    ComplianceLogger,
    HumanReadableFormatter,
    StructuredFormatter,
    configure_logging,
    get_logger,
)

__all__ = [
    "ComplianceLogger",
    "HumanReadableFormatter",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
]
