"""
Generation Schema - Content generator boundary

The core decides THAT a file must be written and WHERE.
The content generator decides WHAT goes into it.
"""
from typing import List
from pydantic import BaseModel, Field


class FileGenerationRequest(BaseModel):
    """Input to a content generator"""
    path: str = Field(..., description="Path of the missing file, relative to the build context")
    file_type: str = Field(..., description="Inferred file type (config, rule, documentation, source, dependency)")
    project_context: str = Field("", description="Human-readable summary of the project")
    existing_files: List[str] = Field(default_factory=list, description="Paths already present in the context")
    reason: str = Field("", description="Why the file is needed")


class GeneratedContent(BaseModel):
    """Output of a content generator"""
    content: str
