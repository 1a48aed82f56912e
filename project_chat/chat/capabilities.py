"""Capability registry for project chat turns.

Capabilities are a closed set of declaration variants. Which ones are active
is a pure function of the turn's web-search flag and the project's document
index; image generation is always offered, and always last.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

IMAGE_TOOL_NAME = "generate_image"
DEFAULT_MAX_RESULTS = 8


class ImageSize(str, Enum):
    """Aspect presets accepted by the image API."""
    SQUARE = "1024x1024"
    LANDSCAPE = "1536x1024"
    PORTRAIT = "1024x1536"

    @classmethod
    def parse(cls, value: Any) -> "ImageSize":
        """Map a model-supplied size to a preset, defaulting to square.

        Accepts the pixel values ("1536x1024") and the preset names ("landscape").
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            candidate = value.strip().lower()
            for size in cls:
                if candidate in (size.value, size.name.lower()):
                    return size
        return cls.SQUARE


IMAGE_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "prompt": {
            "type": "string",
            "description": "Full image description including style and subject.",
        },
        "size": {
            "type": "string",
            "enum": [s.value for s in ImageSize],
            "description": "Optional size; landscape=1536x1024, portrait=1024x1536, square=1024x1024.",
        },
    },
    "required": ["prompt"],
}


@dataclass(frozen=True)
class WebSearch:
    kind: Literal["web_search"] = "web_search"


@dataclass(frozen=True)
class DocumentSearch:
    index_id: str
    max_results: int = DEFAULT_MAX_RESULTS
    kind: Literal["document_search"] = "document_search"


@dataclass(frozen=True)
class ImageGeneration:
    name: str = IMAGE_TOOL_NAME
    description: str = "Generate an image for the project chat request."
    parameters: dict[str, Any] = field(default_factory=lambda: copy.deepcopy(IMAGE_PARAMETERS), compare=False, hash=False)
    kind: Literal["image_generation"] = "image_generation"


CapabilityDeclaration = WebSearch | DocumentSearch | ImageGeneration


def active_capabilities(
    web_search_requested: bool,
    document_index_id: str | None,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> list[CapabilityDeclaration]:
    """Decide which capabilities a turn declares.

    Args:
        web_search_requested: Caller's web-search toggle.
        document_index_id: Project's document index, or None.
        max_results: Result cap for document search.

    Returns:
        Ordered declarations: WebSearch, DocumentSearch, ImageGeneration.
    """
    capabilities: list[CapabilityDeclaration] = []

    if web_search_requested:
        capabilities.append(WebSearch())

    if document_index_id:
        capabilities.append(DocumentSearch(index_id=document_index_id, max_results=max_results))

    capabilities.append(ImageGeneration())
    return capabilities


def to_tool_spec(capability: CapabilityDeclaration) -> dict[str, Any]:
    """Serialize a declaration into the completion API's tool format."""
    if isinstance(capability, WebSearch):
        return {"type": "web_search"}

    if isinstance(capability, DocumentSearch):
        return {
            "type": "file_search",
            "vector_store_ids": [capability.index_id],
            "max_num_results": capability.max_results,
        }

    if isinstance(capability, ImageGeneration):
        return {
            "type": "function",
            "function": {
                "name": capability.name,
                "description": capability.description,
                "parameters": copy.deepcopy(capability.parameters),
            },
        }

    raise TypeError(f"Unknown capability declaration: {capability!r}")
