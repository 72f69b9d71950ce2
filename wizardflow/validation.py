"""Structural validation of workflow steps."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional

from .contracts import StepName, ValidationIssue, ValidationResults
from .registry import ASSET_CREATION_REGISTRY, RuleType, StepRegistry, ValidationRule

logger = logging.getLogger(__name__)

# A custom check returns an issue when the rule is violated, ``None`` otherwise.
CustomCheck = Callable[[Mapping[str, Any], ValidationRule], Optional[ValidationIssue]]


class ValidationEngine:
    """Evaluates a step's rules against accumulated workflow data.

    ``required`` and ``pattern`` rules are evaluated here. ``custom`` rules are
    evaluated only when a predicate is registered under the rule's check name;
    unregistered custom rules are skipped and left to the step itself, which
    reports its verdict through the validation override channel.
    """

    def __init__(
        self,
        registry: StepRegistry = ASSET_CREATION_REGISTRY,
        custom_checks: Optional[Mapping[str, CustomCheck]] = None,
    ) -> None:
        self.registry = registry
        self._custom_checks: Dict[str, CustomCheck] = dict(custom_checks or {})
        self._patterns: Dict[str, re.Pattern[str]] = {}

    def register_check(self, name: str, check: CustomCheck) -> None:
        self._custom_checks[name] = check

    def has_check(self, name: str) -> bool:
        return name in self._custom_checks

    def validate(self, step_name: StepName, data: Mapping[str, Any]) -> ValidationResults:
        config = self.registry.get(step_name)
        if config is None:
            return ValidationResults.failure(
                "step", "Invalid workflow step", "INVALID_STEP"
            )

        errors: list[ValidationIssue] = []
        for field in config.required_fields:
            if not data.get(field):
                errors.append(
                    ValidationIssue(
                        field=field, message=f"{field} is required", code="REQUIRED_FIELD"
                    )
                )

        for rule in config.validation_rules:
            issue = self._apply_rule(rule, data)
            if issue is not None:
                errors.append(issue)

        return ValidationResults(is_valid=not errors, errors=errors)

    def _apply_rule(
        self, rule: ValidationRule, data: Mapping[str, Any]
    ) -> Optional[ValidationIssue]:
        value = data.get(rule.field)
        if rule.rule_type == RuleType.REQUIRED:
            if not value:
                return ValidationIssue(field=rule.field, message=rule.message, code="REQUIRED")
            return None

        if rule.rule_type == RuleType.PATTERN:
            if value and isinstance(value, str) and not self._pattern(rule).search(value):
                return ValidationIssue(
                    field=rule.field, message=rule.message, code="PATTERN_MISMATCH"
                )
            return None

        check = self._custom_checks.get(rule.check_name)
        if check is None:
            return None
        issue = check(data, rule)
        if issue is not None and not issue.message:
            issue = issue.model_copy(update={"message": rule.message})
        return issue

    def _pattern(self, rule: ValidationRule) -> re.Pattern[str]:
        assert rule.pattern is not None
        compiled = self._patterns.get(rule.pattern)
        if compiled is None:
            compiled = re.compile(rule.pattern)
            self._patterns[rule.pattern] = compiled
        return compiled


_default_engine = ValidationEngine()


def validate(step_name: StepName, data: Mapping[str, Any]) -> ValidationResults:
    """Validate ``step_name`` with the default asset-creation engine."""
    return _default_engine.validate(step_name, data)
