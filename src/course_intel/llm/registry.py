"""Model catalog: models and actions with capability requirements.

Loaded from config/models.yaml, validated by Pydantic. Model choice per
run comes from the user's profile; the catalog decides whether that
choice is known and supplies pricing for cost accounting.
"""

from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, model_validator


class Capability(StrEnum):
    """Capabilities a model can have."""

    STRUCTURED_OUTPUT = "structured_output"
    LONG_CONTEXT = "long_context"
    WEB_SEARCH = "web_search"


class CostPer1K(BaseModel):
    """Cost per 1000 tokens in USD."""

    input: float
    output: float


class ModelConfig(BaseModel):
    """Single model configuration."""

    model_id: str = ""  # populated from dict key during validation
    provider: str
    capabilities: list[Capability]
    max_context: int
    cost_per_1k: CostPer1K

    def estimate_cost(self, tokens_in: int, tokens_out: int) -> float:
        """Calculate cost in USD for given token counts."""
        return (
            tokens_in * self.cost_per_1k.input / 1000
            + tokens_out * self.cost_per_1k.output / 1000
        )


class ActionConfig(BaseModel):
    """Action (task type) with capability requirements."""

    description: str = ""
    requires: list[Capability] = []


class ModelRegistryConfig(BaseModel):
    """Top-level catalog: models + actions.

    Validates that every action's required capabilities are offered by
    at least one catalog model.
    """

    models: dict[str, ModelConfig]
    actions: dict[str, ActionConfig]

    @model_validator(mode="after")
    def validate_actions(self) -> "ModelRegistryConfig":
        """Populate model_id fields and check actions are servable."""
        for model_id, model in self.models.items():
            model.model_id = model_id

        errors: list[str] = []
        for action_name, action in self.actions.items():
            capable = [
                m for m in self.models.values() if set(action.requires) <= set(m.capabilities)
            ]
            if not capable:
                errors.append(
                    f"Action '{action_name}' requires {sorted(action.requires)} "
                    f"but no model offers them"
                )

        if errors:
            raise ValueError(
                "Model registry validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )
        return self

    def models_for(self, provider: str, action: str | None = None) -> list[ModelConfig]:
        """Catalog models of a provider, in file order.

        When ``action`` is given, only models with its required capabilities.

        Raises:
            KeyError: if action is not in the catalog.
        """
        required: set[Capability] = set()
        if action is not None:
            if action not in self.actions:
                raise KeyError(f"Unknown action: '{action}'")
            required = set(self.actions[action].requires)
        return [
            m
            for m in self.models.values()
            if m.provider == provider and required <= set(m.capabilities)
        ]

    def resolve_model(
        self,
        provider: str,
        preferred: str | None = None,
        action: str | None = None,
    ) -> str | None:
        """Preferred model if the catalog lists it for provider, else the first.

        Returns None when the provider has no catalog models.
        """
        candidates = self.models_for(provider, action)
        if preferred and any(m.model_id == preferred for m in candidates):
            return preferred
        return candidates[0].model_id if candidates else None


def load_registry(config_path: Path) -> ModelRegistryConfig:
    """Load and validate model catalog from YAML.

    Args:
        config_path: Path to models.yaml. Typically comes from
            Settings.model_registry_path.

    Raises:
        FileNotFoundError: if YAML file doesn't exist.
        ValueError: if YAML parsing or validation fails.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Registry config not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse registry config '{config_path}': {e}") from e
    return ModelRegistryConfig.model_validate(raw)
