"""
AI Categorization Service using the configured OpenAI chat model

Picks categories (from the caller's list) and extracts tags for a note.
Uses structured outputs with Pydantic models for reliable JSON responses.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment
from openai import OpenAI, OpenAIError
from pydantic import BaseModel, Field

from ..exceptions import ConfigurationError
from ..tag_utils import to_kebab_case
from .models import CategorizationResult, CategorizeRequest, ModelConfiguration, ServerConfig
from .openai_provider import create_chat_client, require_language_model

logger = logging.getLogger(__name__)

CATEGORIES_PLACEHOLDER = "{{ categories }}"


class CategorySuggestion(BaseModel):
    """Structured output for note categorization"""
    category: List[str] = Field(
        description="IDs (not names) of the available categories that best fit the note, best match first"
    )
    tags: List[str] = Field(
        description="Relevant keywords extracted from the content (lowercase, kebab-case)"
    )


def _iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


class AICategorizationService:
    """
    AI-powered note categorization.

    The system prompt is the user's category recognition prompt: a
    ``{{ categories }}`` placeholder is replaced with the ``id: name`` list,
    and the rest is rendered as a sandboxed Jinja2 template with
    ``categories`` bound to the full category records.
    """

    def __init__(
        self,
        client_factory: Callable[[ModelConfiguration], OpenAI] = create_chat_client,
        temperature: float = 0.3,
    ):
        self._client_factory = client_factory
        self.temperature = temperature
        self._jinja = SandboxedEnvironment(autoescape=False)

    def categorize(self, config: ServerConfig, request: CategorizeRequest) -> CategorizationResult:
        """
        Categorize a note.

        Args:
            config: Current server configuration (model settings, prompts, categories)
            request: The note and the categories it may be assigned to

        Returns:
            CategorizationResult with known category ids and kebab-case tags

        Raises:
            ConfigurationError: If the model or prompt is not configured
            OpenAIError: If the API call fails
            ValueError: If the model returns no parsable result
        """
        model = require_language_model(config)
        if not config.category_recognition_prompt or not config.category_recognition_prompt.strip():
            raise ConfigurationError(
                "Category Recognition prompt is not configured. Please configure it in "
                "Settings > AI Prompts > Category Recognition Prompt section.",
                details={"reason": "MISSING_PROMPT_CONFIG"},
            )

        system_prompt = self._build_system_prompt(config, request)
        client = self._client_factory(model)

        logger.debug(
            "Categorizing note %s with %s/%s (%d categories)",
            request.note_id, model.provider, model.model_name, len(request.categories),
        )
        try:
            completion = client.chat.completions.parse(
                model=model.model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": self._build_prompt(request)},
                ],
                response_format=CategorySuggestion,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            logger.error("OpenAI API error while categorizing note %s: %s", request.note_id, e)
            raise

        suggestion = completion.choices[0].message.parsed
        if not suggestion:
            raise ValueError("OpenAI returned empty response")

        known = {c.id for c in request.categories}
        category_ids = []
        for category_id in suggestion.category:
            if category_id in known:
                category_ids.append(category_id)
            else:
                logger.debug("Model returned unknown category id %s, skipping", category_id)

        tags = [t for t in (to_kebab_case(tag) for tag in suggestion.tags) if t]
        return CategorizationResult(category=category_ids, tags=tags)

    def _build_system_prompt(self, config: ServerConfig, request: CategorizeRequest) -> str:
        category_list = "\n".join(f"- {c.id}: {c.name}" for c in request.categories)
        template = config.category_recognition_prompt.replace(CATEGORIES_PLACEHOLDER, category_list)

        by_id = {c.id: c for c in config.categories}
        categories: List[Dict[str, Any]] = []
        for ref in request.categories:
            stored = by_id.get(ref.id)
            record = stored.to_json_dict() if stored else {"enrichmentPrompt": ""}
            record.update(id=ref.id, name=ref.name)
            categories.append(record)

        try:
            return self._jinja.from_string(template).render(categories=categories)
        except TemplateError as e:
            raise ConfigurationError(
                f"Category Recognition prompt is not a valid template: {e}",
                details={"reason": "INVALID_PROMPT_TEMPLATE"},
            ) from e

    def _build_prompt(self, request: CategorizeRequest) -> str:
        return f"""Analyze the following note and categorize it. Return your response as a JSON object with two fields:
- "category": an array of category IDs (not names) from the available categories that best fit this note. Use the ID from the list above (e.g., if category is listed as "cat-123: Project Documentation", return "cat-123")
- "tags": an array of relevant tags (keywords) extracted from the content

Note Title: {request.title}

Note Created: {_iso(request.created_at)}
Note Last Updated: {_iso(request.updated_at)}

Note Content:
{request.content}"""
