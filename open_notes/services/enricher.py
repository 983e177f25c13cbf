"""
AI Enrichment Service

Generates enrichment sections for a single note: context and insights that
sit alongside the user's content and never rewrite it.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, Field

from ..ids import enrichment_block_id, now_ms
from .models import Block, EnrichmentResult, EnrichRequest, ModelConfiguration, ServerConfig
from .openai_provider import create_chat_client, require_language_model

logger = logging.getLogger(__name__)


class EnrichmentSections(BaseModel):
    """Structured output for enrichment generation"""
    sections: List[str] = Field(
        description="1-3 short markdown sections adding context, insights or connections to the note."
    )


class AIEnrichmentService:
    """
    AI-powered note enrichment.
    """

    def __init__(
        self,
        client_factory: Callable[[ModelConfiguration], OpenAI] = create_chat_client,
        temperature: float = 0.3,
    ):
        self._client_factory = client_factory
        self.temperature = temperature

    def enrich(self, config: ServerConfig, request: EnrichRequest) -> EnrichmentResult:
        """
        Generate enrichment blocks for a note.

        The request's ``enrichment_prompt`` wins; without one the category's
        stored prompt and then the generic prompt are used.

        Returns:
            EnrichmentResult with one paragraph block per section
        """
        model = require_language_model(config)
        if not request.content.strip() and not request.title.strip():
            return EnrichmentResult()

        instructions = self._instructions(config, request)
        client = self._client_factory(model)

        try:
            completion = client.chat.completions.parse(
                model=model.model_name,
                messages=[
                    {
                        "role": "system",
                        "content": "You are a thoughtful research assistant. You add context to notes without changing them.",
                    },
                    {"role": "user", "content": self._build_prompt(request, instructions)},
                ],
                response_format=EnrichmentSections,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            logger.error("OpenAI API error while enriching note %s: %s", request.note_id, e)
            raise

        result = completion.choices[0].message.parsed
        if not result:
            raise ValueError("OpenAI returned empty response")

        blocks = []
        for section in result.sections:
            if not section.strip():
                continue
            ts = now_ms()
            blocks.append(Block(id=enrichment_block_id(ts), type="paragraph", content=section.strip(), created_at=ts))
        return EnrichmentResult(enrichment_blocks=blocks)

    @staticmethod
    def _instructions(config: ServerConfig, request: EnrichRequest) -> str:
        if request.enrichment_prompt and request.enrichment_prompt.strip():
            return request.enrichment_prompt
        category = next((c for c in config.categories if c.id == request.category_id), None)
        if category and category.enrichment_prompt.strip():
            return category.enrichment_prompt
        return config.generic_enrichment_prompt

    @staticmethod
    def _build_prompt(request: EnrichRequest, instructions: str) -> str:
        return f"""Enrich the following note.

INSTRUCTIONS:
{instructions}

NOTE TITLE: {request.title}

NOTE CONTENT:
\"\"\"
{request.content}
\"\"\"

FORMAT:
- Return 1-3 concise sections.
- Use Markdown (bold key terms, bullet points where useful).
- Do not repeat the note back; add what it is missing.
"""
