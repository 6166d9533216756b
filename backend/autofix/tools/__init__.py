"""
Tools for the Build Auto-Fix Engine

Collaborators around the core loop:
- Content generator (LLM + placeholder fallback)
- Context inventory (what the build context contains)
- Image tag derivation
- Build tool status check
"""
from .content_generator import (
    ContentGenerator,
    ContentGenerationError,
    LLMContentGenerator,
    PlaceholderContentGenerator,
    placeholder_content,
    resolve_content,
)
from .context_inventory import ContextInventory, build_project_context
from .image_tag import derive_image_name, normalize_image_tag, is_valid_image_tag
from .build_tool_status import BuildToolStatus, check_build_tool

__all__ = [
    "ContentGenerator",
    "ContentGenerationError",
    "LLMContentGenerator",
    "PlaceholderContentGenerator",
    "placeholder_content",
    "resolve_content",
    "ContextInventory",
    "build_project_context",
    "derive_image_name",
    "normalize_image_tag",
    "is_valid_image_tag",
    "BuildToolStatus",
    "check_build_tool",
]
