"""Service for per-organization AI settings stored as key/value rows."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select

from ..ai_models import NO_MODEL_SENTINEL, ModelProvider, find_model
from ..orm.setting import Setting
from .database import DatabaseService

logger = logging.getLogger(__name__)

AI_PROVIDER_KEY = "ai_provider"
AI_SELECTED_MODEL_ID_KEY = "ai_selected_model_id"

_UNSET = object()


def api_key_setting_name(provider: str) -> str:
    return f"ai_{provider}_api_key"


@dataclass
class AiSettings:
    """AI settings as seen by callers; API key values are never included."""

    provider: Optional[str]
    selected_model_id: Optional[str]
    is_openai_key_set: bool = False
    is_google_key_set: bool = False
    is_anthropic_key_set: bool = False

    @property
    def model_selected(self) -> bool:
        return bool(self.selected_model_id) and self.selected_model_id != NO_MODEL_SENTINEL


class SettingsService:
    """Read and write organization AI settings."""

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    async def get_setting(self, organization_id: str, key: str) -> Optional[str]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Setting.value).where(
                    Setting.organization_id == organization_id,
                    Setting.key == key,
                )
            )
            return result.scalar_one_or_none()

    async def set_setting(self, organization_id: str, key: str, value: Optional[str]) -> None:
        """Upsert a setting. NULL is stored, not deleted, to mark a cleared key."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Setting).where(
                    Setting.organization_id == organization_id,
                    Setting.key == key,
                )
            )
            setting = result.scalar_one_or_none()
            if setting is None:
                session.add(Setting(organization_id=organization_id, key=key, value=value))
            else:
                setting.value = value

    async def get_ai_settings(self, organization_id: str) -> AiSettings:
        async with self.db.session() as session:
            result = await session.execute(
                select(Setting.key, Setting.value).where(
                    Setting.organization_id == organization_id
                )
            )
            values = {key: value for key, value in result.all()}

        return AiSettings(
            provider=values.get(AI_PROVIDER_KEY) or None,
            selected_model_id=values.get(AI_SELECTED_MODEL_ID_KEY),
            is_openai_key_set=bool(values.get(api_key_setting_name(ModelProvider.OPENAI.value))),
            is_google_key_set=bool(values.get(api_key_setting_name(ModelProvider.GOOGLE.value))),
            is_anthropic_key_set=bool(
                values.get(api_key_setting_name(ModelProvider.ANTHROPIC.value))
            ),
        )

    async def get_api_key(self, organization_id: str, provider: Optional[str]) -> Optional[str]:
        """Return the stored API key for a provider, or None."""
        if not provider:
            return None
        value = await self.get_setting(organization_id, api_key_setting_name(provider))
        return value or None

    async def update_ai_settings(
        self,
        organization_id: str,
        provider=_UNSET,
        selected_model_id=_UNSET,
        api_keys: Optional[dict[str, Optional[str]]] = None,
    ) -> AiSettings:
        """Update AI settings. Omitted arguments are left unchanged.

        Args:
            organization_id: Organization to update.
            provider: Provider name, or None to clear.
            selected_model_id: A catalog model id, the "__none__" sentinel, or
                None. A known model with no explicit provider also sets the
                provider from the catalog.
            api_keys: Mapping of provider name to API key (None clears it).

        Raises:
            ValueError: If the provider or model id is not supported.
        """
        if provider is not _UNSET and provider is not None:
            provider = ModelProvider(provider).value

        if selected_model_id is not _UNSET and selected_model_id not in (None, NO_MODEL_SENTINEL):
            model = find_model(selected_model_id)
            if model is None:
                raise ValueError(f"Unknown model id: {selected_model_id}")
            if provider is _UNSET:
                provider = model.provider.value
            elif provider != model.provider.value:
                raise ValueError(
                    f"Model {selected_model_id} belongs to {model.provider.value}, not {provider}"
                )

        if provider is not _UNSET:
            await self.set_setting(organization_id, AI_PROVIDER_KEY, provider)
        if selected_model_id is not _UNSET:
            await self.set_setting(organization_id, AI_SELECTED_MODEL_ID_KEY, selected_model_id)
        for key_provider, api_key in (api_keys or {}).items():
            name = ModelProvider(key_provider).value
            await self.set_setting(organization_id, api_key_setting_name(name), api_key)

        logger.info("Updated AI settings for organization %s", organization_id)
        return await self.get_ai_settings(organization_id)
