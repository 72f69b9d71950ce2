"""Pydantic models describing registry entities."""

from __future__ import annotations

import re
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..contracts import StepName


class RuleType(str, Enum):
    REQUIRED = "required"
    PATTERN = "pattern"
    CUSTOM = "custom"


class ValidationRule(BaseModel):
    """A single structural rule attached to a step field."""

    model_config = ConfigDict(frozen=True)

    field: str
    rule_type: RuleType
    pattern: Optional[str] = None
    check: Optional[str] = Field(
        default=None, description="Name of the custom predicate for custom rules"
    )
    message: str

    @field_validator("pattern")
    @classmethod
    def _ensure_compiles(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def _ensure_pattern_present(self) -> "ValidationRule":
        if self.rule_type == RuleType.PATTERN and not self.pattern:
            raise ValueError("pattern rules need a pattern")
        return self

    @property
    def check_name(self) -> str:
        """Predicate name for custom rules, defaulting to the field name."""
        return self.check or self.field


class StepConfig(BaseModel):
    """Immutable definition of one workflow step."""

    model_config = ConfigDict(frozen=True)

    name: StepName
    title: str
    description: Optional[str] = None
    component: str = ""
    validation_rules: List[ValidationRule] = Field(default_factory=list)
    required_fields: List[str] = Field(default_factory=list)
    optional_fields: List[str] = Field(default_factory=list)

    @property
    def fields(self) -> List[str]:
        return [*self.required_fields, *self.optional_fields]
