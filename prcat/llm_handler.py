"""LLM handler: one text-generation capability over several LangChain providers."""

import logging
import re
from typing import Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from .ai_models import ModelProvider
from .config import CategorizationConfig

logger = logging.getLogger(__name__)


class UnsupportedProviderError(ValueError):
    """Raised when the stored provider has no chat model implementation."""


def _create_openai(model_id: str, api_key: str, config: CategorizationConfig) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=model_id,
        api_key=api_key,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
    )


def _create_anthropic(model_id: str, api_key: str, config: CategorizationConfig) -> BaseChatModel:
    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=model_id,
        api_key=api_key,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
    )


def _create_google(model_id: str, api_key: str, config: CategorizationConfig) -> BaseChatModel:
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=model_id,
        google_api_key=api_key,
        max_output_tokens=config.max_tokens,
        temperature=config.temperature,
    )


# New providers are added here, not as branches at call sites
PROVIDER_FACTORIES: dict[str, Callable[[str, str, CategorizationConfig], BaseChatModel]] = {
    ModelProvider.OPENAI.value: _create_openai,
    ModelProvider.ANTHROPIC.value: _create_anthropic,
    ModelProvider.GOOGLE.value: _create_google,
}


def create_chat_model(
    provider: str, model_id: str, api_key: str, config: CategorizationConfig
) -> BaseChatModel:
    """Instantiate the LangChain chat model for a provider.

    Raises:
        UnsupportedProviderError: If no factory is registered for provider.
    """
    factory = PROVIDER_FACTORIES.get(provider)
    if factory is None:
        raise UnsupportedProviderError(f"Unsupported AI provider: {provider}")
    return factory(model_id, api_key, config)


def sanitize_text(text: str) -> str:
    """Strip control and zero-width characters from untrusted text."""
    # Keep tabs and newlines; diffs depend on them
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    for char in ("\u200b", "\u200c", "\u200d", "\ufeff"):
        text = text.replace(char, "")
    return text.strip()


def message_text(message: BaseMessage) -> str:
    """Flatten a chat response to plain text.

    Some providers return a list of content blocks instead of a string.
    """
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class LLMHandler:
    """Generates text from a system prompt and a user prompt."""

    def __init__(self, llm: BaseChatModel) -> None:
        self.llm = llm

    @classmethod
    def for_provider(
        cls, provider: str, model_id: str, api_key: str, config: CategorizationConfig
    ) -> "LLMHandler":
        return cls(create_chat_model(provider, model_id, api_key, config))

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        logger.debug("Sending prompt to LLM (%d chars)", len(user_prompt))
        response = await self.llm.ainvoke(messages)
        return message_text(response)
