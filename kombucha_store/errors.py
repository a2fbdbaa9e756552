"""Error types for the kombucha record store.

Validation and not-found conditions are always surfaced to the immediate
caller. Driver failures surface as TransportError and are never retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


class KombuchaStoreError(Exception):
    """Base class for record store errors."""


@dataclass(frozen=True)
class SchemaViolation:
    path: str
    message: str


class SchemaValidationError(KombuchaStoreError):
    def __init__(self, kind: str, violations: Iterable[SchemaViolation]):
        self.kind = kind
        self.violations = list(violations)
        super().__init__(f"{kind} failed schema validation ({len(self.violations)} violation(s))")

    @property
    def paths(self) -> list[str]:
        return [v.path for v in self.violations]


class NotFoundError(KombuchaStoreError):
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")


class ConflictError(KombuchaStoreError):
    def __init__(self, message: str, details: Any | None = None):
        self.details = details
        super().__init__(message)


class TransportError(KombuchaStoreError):
    """Raised by tree store drivers when the backing store fails."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class ConfigurationError(KombuchaStoreError):
    def __init__(self, message: str, details: Any | None = None):
        self.details = details
        super().__init__(message)


class ContractViolationError(KombuchaStoreError):
    def __init__(self, message: str, code: str = "CONTRACT_VIOLATION", details: Any | None = None):
        self.code = code
        self.details = details
        super().__init__(message)
