"""Tests for provider selection and the LLM handler."""

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage

from prcat.config import CategorizationConfig
from prcat.llm_handler import (
    LLMHandler,
    UnsupportedProviderError,
    create_chat_model,
    message_text,
    sanitize_text,
)


class TestCreateChatModel:
    """Test the provider factory."""

    def test_openai(self):
        from langchain_openai import ChatOpenAI

        model = create_chat_model("openai", "gpt-4o-mini", "sk-test", CategorizationConfig())
        assert isinstance(model, ChatOpenAI)
        assert model.model_name == "gpt-4o-mini"

    def test_anthropic(self):
        from langchain_anthropic import ChatAnthropic

        model = create_chat_model(
            "anthropic", "claude-3-haiku-20240307", "sk-ant-test", CategorizationConfig()
        )
        assert isinstance(model, ChatAnthropic)

    def test_google(self):
        from langchain_google_genai import ChatGoogleGenerativeAI

        model = create_chat_model("google", "gemini-2.0-flash", "g-test", CategorizationConfig())
        assert isinstance(model, ChatGoogleGenerativeAI)

    def test_unsupported_provider(self):
        with pytest.raises(UnsupportedProviderError, match="mistral"):
            create_chat_model("mistral", "mistral-large", "key", CategorizationConfig())

    def test_unsupported_provider_is_value_error(self):
        with pytest.raises(ValueError):
            LLMHandler.for_provider("", "model", "key", CategorizationConfig())


class TestLLMHandler:
    """Test text generation through a chat model."""

    async def test_generate_returns_text(self):
        handler = LLMHandler(FakeListChatModel(responses=["Category: Feature, Confidence: 0.8"]))
        text = await handler.generate("system", "user")
        assert text == "Category: Feature, Confidence: 0.8"

    def test_message_text_from_content_blocks(self):
        message = AIMessage(
            content=[
                {"type": "text", "text": "Category: Feature, "},
                {"type": "tool_use", "id": "x", "name": "noop", "input": {}},
                {"type": "text", "text": "Confidence: 0.8"},
            ]
        )
        assert message_text(message) == "Category: Feature, Confidence: 0.8"


class TestSanitizeText:
    """Test prompt input cleanup."""

    def test_keeps_newlines_and_tabs(self):
        assert sanitize_text("a\n\tb") == "a\n\tb"

    def test_strips_control_and_zero_width(self):
        assert sanitize_text("\ufeffhel\x07lo\u200b ") == "hello"
