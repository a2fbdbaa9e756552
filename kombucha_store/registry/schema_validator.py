"""JSON Schema validation for stored records.

Record schemas live in the package under `schemas/` and are expressed as YAML
but are valid JSON Schema Draft 2020-12 documents. There is exactly one pinned
schema per record kind.

Validation errors are surfaced with stable JSON Pointer-like paths so callers
can tell which fields failed.

Schema resolution never touches the network: the Draft 2020-12 meta-schema is
pre-registered locally.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml
from jsonschema import Draft202012Validator, FormatChecker
from jsonschema.exceptions import SchemaError
from referencing import Registry, Resource

from kombucha_store.errors import ConfigurationError, SchemaValidationError, SchemaViolation

_KIND_TO_SCHEMA_FILENAME: dict[str, str] = {
    "Batch": "batch.schema.yaml",
    "Stage": "stage.schema.yaml",
    "Measurement": "measurement.schema.yaml",
    "Equipment": "equipment.schema.yaml",
    "Container": "container.schema.yaml",
    "UserProfile": "user_profile.schema.yaml",
    "AuditEvent": "audit_event.schema.yaml",
    "QualityCheck": "quality_check.schema.yaml",
}

BUNDLED_SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"


def _load_yaml_object(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Expected YAML object at root: {path}")
    _normalize_regex_patterns(raw)
    return raw


def _escape_json_pointer_token(token: str) -> str:
    # RFC 6901 escaping.
    return token.replace("~", "~0").replace("/", "~1")


def _json_pointer(path: Iterable[Any]) -> str:
    parts: list[str] = []
    for p in path:
        if isinstance(p, int):
            parts.append(str(p))
        else:
            parts.append(_escape_json_pointer_token(str(p)))
    return "/" + "/".join(parts) if parts else "/"


def _normalize_regex_patterns(obj: Any) -> None:
    """Unescape one layer of backslashes in `pattern` strings.

    Patterns are authored JSON-style (e.g. `\\d`) inside YAML single-quoted
    strings, which keep both backslashes literally.
    """
    if isinstance(obj, dict):
        for k, v in list(obj.items()):
            if k == "pattern" and isinstance(v, str):
                obj[k] = v.replace("\\\\", "\\")
                continue
            _normalize_regex_patterns(v)
        return
    if isinstance(obj, list):
        for item in obj:
            _normalize_regex_patterns(item)


@dataclass(frozen=True)
class SchemaBundle:
    kind: str
    schema: dict[str, Any]
    source_path: Path


class SchemaValidator:
    """Loads record schemas and validates documents by kind."""

    def __init__(self, bundles: dict[str, SchemaBundle], *, strict_formats: bool = True):
        self._bundles = dict(bundles)
        self._strict_formats = strict_formats
        self._validators: dict[str, Draft202012Validator] = {}

    @classmethod
    def load_from_dir(cls, schemas_dir: Path = BUNDLED_SCHEMAS_DIR, *, strict_formats: bool = True) -> "SchemaValidator":
        schemas_dir = schemas_dir.resolve()
        if not schemas_dir.exists():
            raise ConfigurationError(f"Schemas directory not found: {schemas_dir}")

        bundles: dict[str, SchemaBundle] = {}
        for kind, filename in _KIND_TO_SCHEMA_FILENAME.items():
            path = (schemas_dir / filename).resolve()
            if not path.exists():
                raise ConfigurationError(f"Missing required schema file for {kind}: {path}")
            bundles[kind] = SchemaBundle(kind=kind, schema=_load_yaml_object(path), source_path=path)

        return cls(bundles, strict_formats=strict_formats)

    def has_kind(self, kind: str) -> bool:
        return kind in self._bundles

    def violations(self, kind: str, document: Any) -> list[SchemaViolation]:
        """Return every violation of the schema for kind, in stable order."""
        validator = self._get_or_build_validator(kind)
        found = [SchemaViolation(path=_json_pointer(err.absolute_path), message=err.message) for err in validator.iter_errors(document)]
        found.sort(key=lambda v: (v.path, v.message))
        return found

    def validate(self, kind: str, document: Any) -> None:
        """Validate a document against the pinned schema for its kind."""
        violations = self.violations(kind, document)
        if violations:
            raise SchemaValidationError(kind=kind, violations=violations)

    def _require_bundle(self, kind: str) -> SchemaBundle:
        if kind not in self._bundles:
            raise ConfigurationError(f"Unknown schema kind: {kind}")
        return self._bundles[kind]

    def _get_or_build_validator(self, kind: str) -> Draft202012Validator:
        if kind in self._validators:
            return self._validators[kind]

        bundle = self._require_bundle(kind)
        schema = bundle.schema

        meta = Draft202012Validator.META_SCHEMA
        meta_id = str(meta.get("$id", "https://json-schema.org/draft/2020-12/schema"))
        registry = Registry().with_resource(meta_id, Resource.from_contents(meta))

        try:
            # Ensure the schema itself is sane.
            Draft202012Validator.check_schema(schema)
        except SchemaError as e:
            raise ConfigurationError(f"Invalid schema for {kind} in {bundle.source_path}: {e.message}") from e

        format_checker = FormatChecker() if self._strict_formats else None
        validator = Draft202012Validator(schema, format_checker=format_checker, registry=registry)

        self._validators[kind] = validator
        return validator
