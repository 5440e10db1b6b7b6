"""Catalog of selectable AI models per provider."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Stored as ai_selected_model_id to disable categorization explicitly
NO_MODEL_SENTINEL = "__none__"


class ModelProvider(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    GOOGLE = "google"
    ANTHROPIC = "anthropic"


@dataclass(frozen=True)
class ModelDefinition:
    id: str
    name: str
    provider: ModelProvider


ALL_MODELS: tuple[ModelDefinition, ...] = (
    ModelDefinition("gpt-4o", "GPT-4o", ModelProvider.OPENAI),
    ModelDefinition("gpt-4o-mini", "GPT-4o mini", ModelProvider.OPENAI),
    ModelDefinition("gpt-4-turbo", "GPT-4 Turbo", ModelProvider.OPENAI),
    ModelDefinition("gemini-2.0-flash", "Gemini 2.0 Flash", ModelProvider.GOOGLE),
    ModelDefinition("gemini-2.5-pro", "Gemini 2.5 Pro", ModelProvider.GOOGLE),
    ModelDefinition("claude-3-5-sonnet-20240620", "Claude 3.5 Sonnet", ModelProvider.ANTHROPIC),
    ModelDefinition("claude-3-haiku-20240307", "Claude 3 Haiku", ModelProvider.ANTHROPIC),
    ModelDefinition("claude-sonnet-4-20250514", "Claude Sonnet 4", ModelProvider.ANTHROPIC),
)


def find_model(model_id: str) -> Optional[ModelDefinition]:
    for model in ALL_MODELS:
        if model.id == model_id:
            return model
    return None
