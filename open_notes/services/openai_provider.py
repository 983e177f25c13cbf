"""
OpenAI client construction from the language model settings.

Model credentials live in the settings document (not the environment), so a
client is built per request from the current ``ModelConfiguration``.
"""

from __future__ import annotations

from openai import OpenAI

from ..exceptions import ConfigurationError
from .models import AIProvider, ModelConfiguration, ServerConfig

SETTINGS_HINT = "Please configure it in Settings > AI Models > Language Model section."


def require_language_model(config: ServerConfig) -> ModelConfiguration:
    """
    Return the language model configuration, or raise if it is incomplete.

    Raises:
        ConfigurationError: If api key, model name or provider is missing
    """
    model = config.language_model
    if model is None or not model.api_key:
        raise ConfigurationError(
            f"API key is not configured for the Language Model. {SETTINGS_HINT}",
            details={"reason": "MISSING_API_KEY"},
        )
    if not model.model_name:
        raise ConfigurationError(
            f"Model name is not configured. {SETTINGS_HINT}",
            details={"reason": "MISSING_MODEL_NAME"},
        )
    if not model.provider:
        raise ConfigurationError(
            f"Provider is not configured. {SETTINGS_HINT}",
            details={"reason": "MISSING_PROVIDER"},
        )
    return model


def create_chat_client(model: ModelConfiguration) -> OpenAI:
    """
    Build an OpenAI client for ``model``.

    Only the OpenAI provider is wired up; ``base_url`` lets it point at any
    OpenAI-compatible endpoint.
    """
    if model.provider != AIProvider.OPENAI.value:
        raise ConfigurationError(
            f"Unsupported provider: {model.provider}",
            details={"reason": "UNSUPPORTED_PROVIDER"},
        )
    base_url = model.base_url.strip() if model.base_url and model.base_url.strip() else None
    return OpenAI(api_key=model.api_key, base_url=base_url)
