"""Tests for organization AI settings."""

import pytest

from prcat.ai_models import NO_MODEL_SENTINEL


class TestAiSettings:
    """Test reading and updating AI settings."""

    async def test_empty_settings(self, settings, org):
        ai = await settings.get_ai_settings(org.id)

        assert ai.provider is None
        assert ai.selected_model_id is None
        assert ai.model_selected is False
        assert ai.is_openai_key_set is False

    async def test_model_sets_provider(self, settings, org):
        ai = await settings.update_ai_settings(
            org.id, selected_model_id="claude-3-haiku-20240307", api_keys={"anthropic": "sk-ant"}
        )

        assert ai.provider == "anthropic"
        assert ai.model_selected is True
        assert ai.is_anthropic_key_set is True
        assert ai.is_openai_key_set is False
        assert await settings.get_api_key(org.id, "anthropic") == "sk-ant"

    async def test_sentinel_disables(self, settings, org, ai_configured):
        ai = await settings.update_ai_settings(org.id, selected_model_id=NO_MODEL_SENTINEL)
        assert ai.model_selected is False
        assert ai.provider == "openai"

    async def test_clearing_key(self, settings, org, ai_configured):
        await settings.update_ai_settings(org.id, api_keys={"openai": None})
        assert await settings.get_api_key(org.id, "openai") is None

    async def test_unknown_model_rejected(self, settings, org):
        with pytest.raises(ValueError, match="Unknown model"):
            await settings.update_ai_settings(org.id, selected_model_id="gpt-99")

    async def test_provider_model_mismatch_rejected(self, settings, org):
        with pytest.raises(ValueError):
            await settings.update_ai_settings(
                org.id, provider="google", selected_model_id="gpt-4o"
            )

    async def test_unknown_provider_rejected(self, settings, org):
        with pytest.raises(ValueError):
            await settings.update_ai_settings(org.id, provider="mistral")

    async def test_settings_are_per_organization(self, settings, organizations, org, ai_configured):
        other = await organizations.find_or_create(github_id=101, name="globex")
        assert (await settings.get_ai_settings(other.id)).provider is None
