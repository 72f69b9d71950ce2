"""Ordered step registries for guided workflows."""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence

from ..contracts import StepName, WorkflowType
from .models import RuleType, StepConfig, ValidationRule


class StepRegistry:
    """Ordered catalog of step definitions.

    Position in the sequence defines step order; there is no branching.
    Lookups go through a name index built once at construction.
    """

    def __init__(self, steps: Sequence[StepConfig]) -> None:
        if not steps:
            raise ValueError("A step registry needs at least one step")
        self._steps: List[StepConfig] = list(steps)
        self._index: Dict[StepName, int] = {}
        for position, step in enumerate(self._steps):
            if step.name in self._index:
                raise ValueError(f"Duplicate step in registry: {step.name.value}")
            self._index[step.name] = position

    def __iter__(self) -> Iterator[StepConfig]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    @property
    def names(self) -> List[StepName]:
        return [s.name for s in self._steps]

    @property
    def first(self) -> StepConfig:
        return self._steps[0]

    @property
    def last(self) -> StepConfig:
        return self._steps[-1]

    def get(self, name: StepName) -> Optional[StepConfig]:
        position = self._index.get(name)
        return None if position is None else self._steps[position]

    def index(self, name: StepName) -> int:
        """Return the position of ``name``, or ``-1`` if it is not registered."""
        return self._index.get(name, -1)

    def next_step(self, name: StepName) -> Optional[StepName]:
        position = self.index(name)
        if 0 <= position < len(self._steps) - 1:
            return self._steps[position + 1].name
        return None

    def previous_step(self, name: StepName) -> Optional[StepName]:
        position = self.index(name)
        if position > 0:
            return self._steps[position - 1].name
        return None


ASSET_NAME_PATTERN = r"^[a-zA-Z0-9\s\-_\.]+$"

ASSET_CREATION_STEPS: List[StepConfig] = [
    StepConfig(
        name=StepName.ASSET_TYPE_SELECTION,
        title="Asset Type",
        description="Choose the type of asset to create",
        component="AssetTypeSelectionStep",
        validation_rules=[
            ValidationRule(
                field="asset_type",
                rule_type=RuleType.REQUIRED,
                message="Asset type is required",
            ),
            ValidationRule(
                field="asset_name",
                rule_type=RuleType.REQUIRED,
                message="Asset name is required",
            ),
            ValidationRule(
                field="asset_name",
                rule_type=RuleType.PATTERN,
                pattern=ASSET_NAME_PATTERN,
                message="Invalid asset name format",
            ),
        ],
        required_fields=["asset_type", "asset_name"],
        optional_fields=["asset_description"],
    ),
    StepConfig(
        name=StepName.HIERARCHY_SELECTION,
        title="Location",
        description="Select where to place this asset in the hierarchy",
        component="HierarchySelectionStep",
        validation_rules=[
            ValidationRule(
                field="parent_id",
                rule_type=RuleType.CUSTOM,
                check="device_requires_parent",
                message="Valid parent folder required for devices",
            ),
        ],
        optional_fields=["parent_id", "parent_path"],
    ),
    StepConfig(
        name=StepName.METADATA_CONFIGURATION,
        title="Metadata",
        description="Configure asset metadata and properties",
        component="MetadataConfigurationStep",
        validation_rules=[
            ValidationRule(
                field="metadata_schema_id",
                rule_type=RuleType.REQUIRED,
                message="Metadata schema is required",
            ),
        ],
        required_fields=["metadata_schema_id"],
        optional_fields=["metadata_values"],
    ),
    StepConfig(
        name=StepName.SECURITY_VALIDATION,
        title="Security",
        description="Set security classification and validate compliance",
        component="SecurityValidationStep",
        validation_rules=[
            ValidationRule(
                field="security_classification",
                rule_type=RuleType.REQUIRED,
                message="Security classification is required",
            ),
            ValidationRule(
                field="naming_compliance",
                rule_type=RuleType.CUSTOM,
                check="naming_compliance",
                message="Asset name must comply with security standards",
            ),
        ],
        required_fields=["security_classification"],
    ),
    StepConfig(
        name=StepName.REVIEW_CONFIRMATION,
        title="Review",
        description="Review and confirm asset creation",
        component="ReviewConfirmationStep",
    ),
]

ASSET_CREATION_REGISTRY = StepRegistry(ASSET_CREATION_STEPS)

_REGISTRIES: Dict[WorkflowType, StepRegistry] = {
    WorkflowType.ASSET_CREATION: ASSET_CREATION_REGISTRY,
}


def get_registry(workflow_type: WorkflowType = WorkflowType.ASSET_CREATION) -> StepRegistry:
    """Return the step registry that applies to ``workflow_type``."""
    try:
        return _REGISTRIES[WorkflowType(workflow_type)]
    except (KeyError, ValueError):
        raise ValueError(f"No step registry for workflow type: {workflow_type}")


__all__ = [
    "ASSET_CREATION_REGISTRY",
    "ASSET_CREATION_STEPS",
    "ASSET_NAME_PATTERN",
    "RuleType",
    "StepConfig",
    "StepRegistry",
    "ValidationRule",
    "get_registry",
]
