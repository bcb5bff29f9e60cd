"""
AI provider settings persisted in ai-settings.json.
"""

import logging
import os
from typing import Optional

from .errors import ValidationError
from .models import (
    API_KEY_PROVIDERS,
    MASK_PREFIX,
    MODEL_PROVIDERS,
    AIProvider,
    AISettings,
    utc_now_iso,
)
from .storage import AI_SETTINGS, JSONStore

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "gemini": "gemini-1.5-flash",
    "openai": "gpt-3.5-turbo",
    "huggingface": "mistralai/Mistral-7B-Instruct-v0.2",
    "ollama": "llama2",
    "anthropic": "claude-sonnet-4-20250514",
}
DEFAULT_OLLAMA_URL = "http://localhost:11434"

API_KEY_ENV_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def default_settings(environ: Optional[dict] = None) -> AISettings:
    """Settings used before anything has been saved, seeded from the environment."""
    env = os.environ if environ is None else environ
    return AISettings(
        provider=AIProvider.GEMINI,
        api_keys={name: env.get(var, "") for name, var in API_KEY_ENV_VARS.items()},
        models=dict(DEFAULT_MODELS),
        ollama_url=env.get("OLLAMA_URL") or DEFAULT_OLLAMA_URL,
        updated_at=utc_now_iso(),
    )


def _merge(current: dict[str, str], incoming: Optional[dict], names: tuple) -> dict[str, str]:
    """Take incoming values where given; blanks and masked keys keep the current value."""
    incoming = incoming or {}
    merged = {}
    for name in names:
        value = (incoming.get(name) or "").strip()
        if not value or value.startswith(MASK_PREFIX):
            value = current.get(name, "")
        merged[name] = value
    return merged


class AISettingsStore:
    """Load and save the AI settings document."""

    def __init__(self, store: JSONStore, environ: Optional[dict] = None):
        self.store = store
        self.environ = environ

    def read(self) -> AISettings:
        data = self.store.read_object(AI_SETTINGS)
        if data is None:
            return default_settings(self.environ)
        settings = AISettings.from_dict(data)
        # Fill models added after the file was written
        for name, model in DEFAULT_MODELS.items():
            settings.models.setdefault(name, model)
            if not settings.models[name]:
                settings.models[name] = model
        return settings

    def masked(self) -> dict:
        return self.read().masked()

    def resolve_api_key(self, provider: Optional[str], api_key: Optional[str]) -> str:
        """The key as typed, or the saved key when the form echoed it back masked or blank."""
        return _merge(self.read().api_keys, {provider: api_key}, (provider,))[provider]

    def save(
        self,
        provider: Optional[str],
        api_keys: Optional[dict] = None,
        models: Optional[dict] = None,
        ollama_url: Optional[str] = None,
    ) -> AISettings:
        """
        Save settings for the selected provider.

        Raises:
            ValidationError: If the provider is not supported.
        """
        if provider not in AIProvider.values():
            raise ValidationError("Invalid AI provider")

        current = self.read()
        settings = AISettings(
            provider=AIProvider(provider),
            api_keys=_merge(current.api_keys, api_keys, API_KEY_PROVIDERS),
            models=_merge(current.models, models, MODEL_PROVIDERS),
            ollama_url=(ollama_url or "").strip() or current.ollama_url,
            updated_at=utc_now_iso(),
        )
        self.store.write_object(AI_SETTINGS, settings.to_dict())
        logger.info(f"AI settings saved (provider: {provider})")
        return settings
