"""
Best-effort markdown rendering of content blocks.

Block content is opaque editor JSON; this only knows enough of the common
shapes (plain strings, ``{"text": ...}`` leaves, ``children`` lists) to give
the AI endpoints readable text.
"""

from __future__ import annotations

from typing import Any, Iterable, List

from ..services.models import Block

_HEADING_LEVELS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6, "heading": 1}


def _text_of(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (int, float)):
        return str(content)
    if isinstance(content, list):
        return "".join(_text_of(item) for item in content)
    if isinstance(content, dict):
        if "text" in content:
            return _text_of(content["text"])
        if "children" in content:
            return _text_of(content["children"])
        if "content" in content:
            return _text_of(content["content"])
    return ""


def block_to_markdown(block: Block) -> str:
    text = _text_of(block.content).strip()
    kind = block.type.lower()

    if kind in _HEADING_LEVELS:
        return f"{'#' * _HEADING_LEVELS[kind]} {text}"
    if kind in ("ul", "list", "bulleted-list", "li", "list-item"):
        return "\n".join(f"- {line}" for line in text.splitlines() if line.strip())
    if kind in ("ol", "numbered-list"):
        items = [line for line in text.splitlines() if line.strip()]
        return "\n".join(f"{i}. {line}" for i, line in enumerate(items, 1))
    if kind in ("code", "code_block", "code-block"):
        return f"```\n{text}\n```"
    if kind in ("blockquote", "quote"):
        return "\n".join(f"> {line}" for line in text.splitlines())
    return text


def blocks_to_markdown(blocks: Iterable[Block]) -> str:
    parts: List[str] = [block_to_markdown(b) for b in blocks]
    return "\n\n".join(p for p in parts if p)
