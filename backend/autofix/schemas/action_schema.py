"""
Action Schema - Remediation decisions

The planner produces one of these per classified error.
The mutator applies the executable ones to the build context.
"""
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field


class WriteFileAction(BaseModel):
    """Write a file into the build context"""
    kind: Literal["write_file"] = "write_file"
    path: str = Field(..., description="Path relative to the build context")
    file_type: str = Field(..., description="config, rule, documentation, source or dependency")
    content: Optional[str] = Field(None, description="Filled in by the content generator before applying")
    reason: str = ""

    @property
    def key(self) -> str:
        return f"write_file:{self.path}"

    def describe(self) -> str:
        return f"write {self.file_type} file {self.path}"


class ReplaceSupportFileAction(BaseModel):
    """Delete a support file (ignore list, run-control file) and optionally write a minimal one"""
    kind: Literal["replace_support_file"] = "replace_support_file"
    path: str
    replacement: Optional[str] = Field(None, description="Minimal safe content, or None to only delete")

    @property
    def key(self) -> str:
        return f"replace_support_file:{self.path}"

    def describe(self) -> str:
        if self.replacement is None:
            return f"remove support file {self.path}"
        return f"replace support file {self.path} with a minimal version"


class RemoveInstructionAction(BaseModel):
    """Remove every build instruction that copies the given path"""
    kind: Literal["remove_instruction"] = "remove_instruction"
    path: str

    @property
    def key(self) -> str:
        return f"remove_instruction:{self.path}"

    def describe(self) -> str:
        return f"remove instructions referencing {self.path}"


class NoteAction(BaseModel):
    """Informational record only - nothing is changed in the build context"""
    kind: Literal["note"] = "note"
    message: str


class Unfixable(BaseModel):
    """No automatic remediation exists for this error"""
    kind: Literal["abort"] = "abort"
    reason: str


RemediationAction = Union[WriteFileAction, ReplaceSupportFileAction, RemoveInstructionAction]
PlanResult = Union[WriteFileAction, ReplaceSupportFileAction, RemoveInstructionAction, NoteAction, Unfixable]


def is_executable(action: PlanResult) -> bool:
    """True for actions that mutate the build context"""
    return isinstance(action, (WriteFileAction, ReplaceSupportFileAction, RemoveInstructionAction))


class MutationReport(BaseModel):
    """What the mutator did while applying one action"""
    descriptions: List[str] = Field(default_factory=list)
    written_paths: List[str] = Field(default_factory=list)
    removed_instructions: List[str] = Field(default_factory=list)
    build_spec_text: Optional[str] = Field(None, description="New build-instruction text if it changed")
