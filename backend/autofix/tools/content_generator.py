"""
Content Generator - Uses an LLM to write missing build-context files

The engine only decides that a file must exist and where.
This module decides what goes into it, and falls back to a deterministic
placeholder (keyed by extension) whenever the LLM is unavailable or fails.
"""
import json
import logging
from pathlib import PurePosixPath
from typing import Callable, Optional

from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from autofix.schemas import FileGenerationRequest, GeneratedContent, GeneratedFile

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "Auto-generated placeholder"


class ContentGenerationError(Exception):
    """Raised when a content generator cannot produce content"""
    pass


class ContentGenerator:
    """Interface for missing-file content generation"""

    def generate(self, request: FileGenerationRequest) -> GeneratedContent:
        raise NotImplementedError


class PlaceholderContentGenerator(ContentGenerator):
    """Deterministic generator that only ever returns placeholders"""

    def generate(self, request: FileGenerationRequest) -> GeneratedContent:
        return GeneratedContent(content=placeholder_content(request.path))


class LLMContentGenerator(ContentGenerator):
    """Generates file content with an OpenAI chat model through LangChain"""

    def __init__(
        self,
        llm: Optional[ChatOpenAI] = None,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_tokens: int = 2000,
    ):
        if llm is None:
            llm = ChatOpenAI(
                model=model,
                api_key=api_key,
                temperature=temperature,
                max_tokens=max_tokens,
                max_retries=2,
            )
        self.llm = llm
        self.prompt = ChatPromptTemplate.from_messages([
            (
                "system",
                "You are an expert developer generating a missing file so a container image build can succeed.\n\n"
                "Guidelines:\n"
                "1. Config files (.json, .yml, .yaml, .toml, .ini, .cfg, .conf): minimal but valid configuration "
                "with common settings for the project type.\n"
                "2. Documentation and rule files (.md, .mdc, .txt): a basic template with placeholder sections.\n"
                "3. Source files (.py, .js, .ts, .sh, ...): a safe placeholder with clear comments and basic "
                "structure if it is an entry point. Include an 'Auto-generated placeholder' header.\n"
                "4. Environment files (.env, .env.example): template with common variables, commented.\n"
                "5. Dependency manifests: only dependencies the project files clearly use.\n\n"
                "Return ONLY the file content, no explanations and no markdown fences."
            ),
            (
                "human",
                "File Details:\n"
                "- Name: {path}\n"
                "- Type: {file_type}\n"
                "- Reason: {reason}\n\n"
                "Project Context:\n{project_context}\n\n"
                "Existing Files in Project:\n{existing_files}"
            ),
        ])
        self.chain = self.prompt | self.llm | StrOutputParser()

    def generate(self, request: FileGenerationRequest) -> GeneratedContent:
        logger.info(f"[ContentGenerator] Generating {request.path} ({request.file_type}) with LLM")
        try:
            content = self.chain.invoke({
                "path": request.path,
                "file_type": request.file_type,
                "reason": request.reason,
                "project_context": request.project_context,
                "existing_files": "\n".join(request.existing_files),
            })
        except Exception as e:
            raise ContentGenerationError(f"LLM generation failed for {request.path}: {e}") from e

        content = _strip_code_fences(content)
        if not content.strip():
            raise ContentGenerationError(f"LLM returned empty content for {request.path}")
        if not content.endswith("\n"):
            content += "\n"
        return GeneratedContent(content=content)


def _strip_code_fences(content: str) -> str:
    """Remove a surrounding ```lang ... ``` block if the model added one"""
    stripped = content.strip()
    if stripped.startswith("```") and stripped.endswith("```"):
        lines = stripped.splitlines()
        return "\n".join(lines[1:-1])
    return content


def placeholder_content(path: str) -> str:
    """
    Deterministic minimal content keyed only by file extension

    No network, no project knowledge.
    """
    name = PurePosixPath(path).name
    extension = PurePosixPath(path).suffix.lower()
    reason = "This file was created to resolve container build issues"

    if extension == ".json":
        return json.dumps({}, indent=2) + "\n"
    if extension in (".yml", ".yaml"):
        return f"# {PLACEHOLDER_MARKER} file\n# {reason}\n"
    if extension in (".md", ".mdc"):
        return f"# {PLACEHOLDER_MARKER}\n\n{reason}.\n"
    if extension == ".py":
        return f"# {PLACEHOLDER_MARKER} for {name}\n# {reason}\n\nprint(\"Placeholder file\")\n"
    if extension in (".js", ".ts", ".jsx", ".tsx"):
        return f"// {PLACEHOLDER_MARKER} for {name}\n// {reason}\n\nconsole.log(\"Placeholder file\");\n"
    if extension in (".sh", ".bash"):
        return f"#!/bin/sh\n# {PLACEHOLDER_MARKER} for {name}\n# {reason}\n\necho \"Placeholder file\"\n"
    if extension == ".env" or name.startswith(".env"):
        return f"# {PLACEHOLDER_MARKER} environment file\n# {reason}\n\n# Add your environment variables here\n"
    if extension == ".cmd":
        return f"REM {PLACEHOLDER_MARKER} for {name}\nREM {reason}\n"
    return f"# {PLACEHOLDER_MARKER} for {name}\n# {reason}\n"


def _action_for(path: str, content: str) -> str:
    """created, template or placeholder"""
    lowered = path.lower()
    if PLACEHOLDER_MARKER in content or "placeholder" in lowered:
        return "placeholder"
    if lowered.endswith((".md", ".mdc", ".json", ".yml", ".yaml")):
        return "template"
    return "created"


def resolve_content(
    generator: Optional[ContentGenerator],
    request: FileGenerationRequest,
    log: Optional[Callable[[str], None]] = None,
) -> GeneratedFile:
    """
    Ask the generator for content, falling back to a placeholder on any failure

    Args:
        generator: Content generator, or None for placeholder-only
        request: What to generate
        log: Log sink for user-facing messages

    Returns:
        GeneratedFile ready to be written
    """
    def emit(msg: str):
        if log:
            log(msg)
        logger.info(f"[ContentGenerator] {msg}")

    if generator is not None:
        try:
            generated = generator.generate(request)
            return GeneratedFile(
                path=request.path,
                content=generated.content,
                reason=request.reason,
                action=_action_for(request.path, generated.content),
            )
        except Exception as e:
            emit(f"❌ Failed to generate file {request.path}: {e}")

    content = placeholder_content(request.path)
    emit(f"Using fallback placeholder for {request.path}")
    return GeneratedFile(
        path=request.path,
        content=content,
        reason="Fallback placeholder created due to generation failure" if generator else request.reason,
        action="placeholder",
    )


__all__ = [
    "ContentGenerator",
    "ContentGenerationError",
    "LLMContentGenerator",
    "PlaceholderContentGenerator",
    "placeholder_content",
    "resolve_content",
]
