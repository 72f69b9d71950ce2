"""Custom validation predicates for the asset creation workflow.

These back the ``custom`` rules declared in the step registry. They are not
registered on the default validation engine: a client-side engine leaves
custom rules to the step components, while reference backends build their
engine with ``BUILTIN_CHECKS`` so that the same rules are enforced on the
server side.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from .constants import VALID_SECURITY_CLASSIFICATIONS
from .contracts import ValidationIssue, ValidationResults
from .registry import ASSET_CREATION_REGISTRY, StepRegistry, ValidationRule
from .validation import CustomCheck, ValidationEngine

VALID_ASSET_TYPES = ("Folder", "Device")

_PROHIBITED_CHARS = re.compile(r'[<>:"/\\|?*]')
_RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)
MAX_NAME_LENGTH = 100


def _issue(field: str, message: str, code: str) -> ValidationIssue:
    return ValidationIssue(field=field, message=message, code=code)


def naming_compliance_results(name: str) -> ValidationResults:
    """Check an asset name against the security naming standard."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    if _PROHIBITED_CHARS.search(name):
        errors.append(
            _issue(
                "asset_name",
                'Asset name contains prohibited characters: < > : " / \\ | ? *',
                "PROHIBITED_CHARACTERS",
            )
        )
    if name.upper() in _RESERVED_NAMES:
        errors.append(
            _issue("asset_name", f"Asset name '{name}' is a reserved system name", "RESERVED_NAME")
        )
    if len(name) > MAX_NAME_LENGTH:
        errors.append(
            _issue(
                "asset_name",
                f"Asset name cannot exceed {MAX_NAME_LENGTH} characters",
                "NAME_TOO_LONG",
            )
        )
    if not name.strip():
        errors.append(_issue("asset_name", "Asset name cannot be empty", "NAME_EMPTY"))
    elif name != name.strip():
        errors.append(
            _issue(
                "asset_name",
                "Asset name cannot have leading or trailing whitespace",
                "INVALID_WHITESPACE",
            )
        )

    if "  " in name:
        warnings.append(
            _issue("asset_name", "Asset name contains consecutive spaces", "CONSECUTIVE_SPACES")
        )
    lowered = name.lower()
    if "password" in lowered or "secret" in lowered:
        warnings.append(
            _issue(
                "asset_name",
                "Avoid including sensitive terms in asset names",
                "SENSITIVE_TERMS",
            )
        )

    return ValidationResults(is_valid=not errors, errors=errors, warnings=warnings)


def security_classification_results(name: str, classification: str) -> ValidationResults:
    """Validate a classification and the naming rules that depend on it."""
    results = naming_compliance_results(name)
    errors = list(results.errors)
    warnings = list(results.warnings)

    if classification not in VALID_SECURITY_CLASSIFICATIONS:
        errors.append(
            _issue(
                "security_classification",
                f"Invalid security classification: {classification}",
                "INVALID_CLASSIFICATION",
            )
        )

    lowered = classification.lower()
    if lowered == "restricted" and len(name) > 50:
        warnings.append(
            _issue(
                "asset_name",
                "Restricted assets should have shorter names for security",
                "RESTRICTED_NAMING",
            )
        )
    elif lowered == "confidential" and ("test" in name.lower() or "demo" in name.lower()):
        warnings.append(
            _issue(
                "asset_name",
                "Confidential assets should not contain 'test' or 'demo' in name",
                "CONFIDENTIAL_NAMING",
            )
        )

    return ValidationResults(is_valid=not errors, errors=errors, warnings=warnings)


# ----------------------------------------------------------------------
# Custom rule predicates


def device_requires_parent(
    data: Mapping[str, Any], rule: ValidationRule
) -> Optional[ValidationIssue]:
    if data.get("asset_type") == "Device" and data.get("parent_id") is None:
        return _issue(rule.field, "Devices must be placed inside a folder", "DEVICE_PARENT_REQUIRED")
    return None


def naming_compliance(
    data: Mapping[str, Any], rule: ValidationRule
) -> Optional[ValidationIssue]:
    name = data.get("asset_name")
    if not isinstance(name, str):
        return None
    classification = data.get("security_classification")
    if isinstance(classification, str):
        results = security_classification_results(name, classification)
    else:
        results = naming_compliance_results(name)
    return results.errors[0] if results.errors else None


BUILTIN_CHECKS: dict[str, CustomCheck] = {
    "device_requires_parent": device_requires_parent,
    "naming_compliance": naming_compliance,
}


def server_engine(registry: StepRegistry = ASSET_CREATION_REGISTRY) -> ValidationEngine:
    """Validation engine with every builtin custom predicate registered."""
    return ValidationEngine(registry, custom_checks=BUILTIN_CHECKS)


def validate_complete(data: Mapping[str, Any]) -> ValidationResults:
    """Validate the whole workflow data before the asset is created."""
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    if not data.get("asset_name"):
        errors.append(_issue("asset_name", "Asset name is required", "REQUIRED_FIELD"))
    if not data.get("asset_type"):
        errors.append(_issue("asset_type", "Asset type is required", "REQUIRED_FIELD"))
    elif data["asset_type"] not in VALID_ASSET_TYPES:
        errors.append(
            _issue("asset_type", f"Invalid asset type: {data['asset_type']}", "INVALID_ASSET_TYPE")
        )
    elif data["asset_type"] == "Device" and data.get("parent_id") is None:
        errors.append(
            _issue("parent_id", "Devices must be placed in a folder", "DEVICE_PARENT_REQUIRED")
        )
    if not data.get("security_classification"):
        errors.append(
            _issue(
                "security_classification",
                "Security classification is required",
                "REQUIRED_FIELD",
            )
        )
    elif isinstance(data.get("asset_name"), str):
        security = security_classification_results(
            data["asset_name"], data["security_classification"]
        )
        errors.extend(security.errors)
        warnings.extend(security.warnings)

    return ValidationResults(is_valid=not errors, errors=errors, warnings=warnings)
