"""
Data models shared by the client stores and the server.

Uses Pydantic for validation and serialization. Python attributes are
snake_case; JSON (persisted documents and HTTP bodies) uses camelCase aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..ids import now_ms
from ..tag_utils import PALETTE, random_color

DEFAULT_NOTE_TITLE = "Untitled Note"
DEFAULT_CATEGORY_PROMPT = "Provide insights and context relevant to this category."

DEFAULT_GENERIC_ENRICHMENT_PROMPT = (
    "Enhance the note with relevant context, insights, and connections. "
    "Never modify the original intent or meaning, only add valuable insights."
)

DEFAULT_CATEGORY_RECOGNITION_PROMPT = """Analyze the note and determine which category it belongs to. Consider:
- Main topic and subject matter
- Keywords and terminology
- Context and purpose
- Related concepts

Return the category ID that best matches the note's content.

Available categories:
{% for category in categories %}
- {{ category.name }} ({{ category.id }}): {{ category.enrichmentPrompt }}
{% endfor %}"""


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Block(CamelModel):
    """Opaque unit of note content (editor block or AI enrichment)."""
    id: str
    type: str = "paragraph"
    content: Any = None
    created_at: int = Field(default_factory=now_ms)


class NoteTags(CamelModel):
    user: List[str] = Field(default_factory=list, description="User-applied tags")
    system: List[str] = Field(default_factory=list, description="AI-inferred tags")


class Note(CamelModel):
    """Complete note aggregate"""
    id: str
    title: str = DEFAULT_NOTE_TITLE
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)
    content_blocks: List[Block] = Field(default_factory=list)
    enrichment_blocks: List[Block] = Field(default_factory=list)
    category: Optional[str] = None
    tags: NoteTags = Field(default_factory=NoteTags)
    embeddings: Optional[List[List[float]]] = None

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        legacy_categories = data.pop("categories", None)
        if data.get("category") is None and legacy_categories:
            data["category"] = legacy_categories[0]
        tags = data.get("tags")
        if isinstance(tags, list):
            data["tags"] = {"user": tags, "system": []}
        elif tags is None:
            data.pop("tags", None)
        return data

    def all_tags(self) -> List[str]:
        return [*self.tags.user, *self.tags.system]


class ColorName(str, Enum):
    ROSE = "rose"
    PINK = "pink"
    FUCHSIA = "fuchsia"
    PURPLE = "purple"
    VIOLET = "violet"
    INDIGO = "indigo"
    BLUE = "blue"
    SKY = "sky"
    CYAN = "cyan"
    TEAL = "teal"
    EMERALD = "emerald"
    GREEN = "green"
    LIME = "lime"
    YELLOW = "yellow"
    AMBER = "amber"
    ORANGE = "orange"
    RED = "red"
    WARM_GRAY = "warmGray"
    COOL_GRAY = "coolGray"
    SLATE = "slate"


class Category(CamelModel):
    """User-defined category with its enrichment prompt"""
    model_config = ConfigDict(use_enum_values=True)

    id: str
    name: str
    color: ColorName = Field(default_factory=lambda: ColorName(random_color()))
    enrichment_prompt: str = DEFAULT_CATEGORY_PROMPT
    no_enrichment: bool = Field(
        default=False,
        description="Manual category: notes in it are never sent for enrichment",
    )

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        legacy_prompt = data.pop("aiPrompt", None) or data.pop("ai_prompt", None)
        if not data.get("enrichmentPrompt") and not data.get("enrichment_prompt") and legacy_prompt:
            data["enrichmentPrompt"] = legacy_prompt
        if data.get("noEnrichment") is None and data.get("no_enrichment") is None:
            data["noEnrichment"] = False
        return data

    @field_validator("color", mode="before")
    @classmethod
    def _known_color(cls, value: Any) -> Any:
        if isinstance(value, ColorName):
            return value
        if value not in PALETTE:
            return random_color()
        return value


class CategoryRef(CamelModel):
    id: str
    name: str


class Tag(CamelModel):
    """Display view of a tag; the normalized name is its identity."""
    name: str
    color: str


class AIProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    CUSTOM = "custom"


class ModelConfiguration(CamelModel):
    model_config = ConfigDict(use_enum_values=True)

    provider: Optional[AIProvider] = None
    model_name: Optional[str] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None


class EditorSettings(CamelModel):
    auto_save: bool = True
    auto_save_interval: int = Field(default=10, ge=0, description="Seconds after last keystroke")


class ServerConfig(CamelModel):
    """Subset of settings the server needs to run the AI endpoints."""
    language_model: Optional[ModelConfiguration] = None
    embedding_model: Optional[ModelConfiguration] = None
    categories: List[Category] = Field(default_factory=list)
    generic_enrichment_prompt: str = DEFAULT_GENERIC_ENRICHMENT_PROMPT
    category_recognition_prompt: str = DEFAULT_CATEGORY_RECOGNITION_PROMPT


class Settings(ServerConfig):
    """Full settings document (client and server fields)."""
    model_config = ConfigDict(extra="allow")

    theme: str = "system"
    font_size: str = "md"
    editor_settings: EditorSettings = Field(default_factory=EditorSettings)
    last_saved_at: Optional[int] = None

    def server_config(self) -> ServerConfig:
        return ServerConfig(
            language_model=self.language_model,
            embedding_model=self.embedding_model,
            categories=self.categories,
            generic_enrichment_prompt=self.generic_enrichment_prompt,
            category_recognition_prompt=self.category_recognition_prompt,
        )


class GeneratedNoteId(CamelModel):
    temporary_id: str
    permanent_id: str


class CategorizeRequest(CamelModel):
    note_id: str
    title: str = ""
    content: str = ""
    created_at: int
    updated_at: int
    categories: List[CategoryRef] = Field(default_factory=list)


class CategorizationResult(CamelModel):
    """Structured categorization response: candidate category ids (best first) and tags."""
    category: List[str] = Field(
        default_factory=list,
        description="Category IDs from the provided list, best match first",
    )
    tags: List[str] = Field(
        default_factory=list,
        description="Relevant tags extracted from the content (lowercase, kebab-case)",
    )


class EnrichRequest(CamelModel):
    note_id: str
    title: str = ""
    content: str = ""
    category_id: Optional[str] = None
    enrichment_prompt: Optional[str] = None


class EnrichmentResult(CamelModel):
    enrichment_blocks: List[Block] = Field(default_factory=list)


class NoteUpdates(CamelModel):
    """Partial update produced by one AI processing run."""
    category: Optional[str] = None
    tags: Optional[NoteTags] = None
    enrichment_blocks: Optional[List[Block]] = None

    def is_empty(self) -> bool:
        return self.category is None and self.tags is None and self.enrichment_blocks is None

    def apply_to(self, note: Note) -> Note:
        """Fold the updates onto ``note``, keeping its current user tags."""
        changes: Dict[str, Any] = {}
        if self.category is not None:
            changes["category"] = self.category
        if self.tags is not None:
            changes["tags"] = NoteTags(user=list(note.tags.user), system=list(self.tags.system))
        if self.enrichment_blocks is not None:
            changes["enrichment_blocks"] = list(self.enrichment_blocks)
        return note.model_copy(update=changes)
