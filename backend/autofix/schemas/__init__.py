"""
Schemas for the Build Auto-Fix Engine

These schemas define the contracts between engine stages:
- Build: classified errors, attempt records, session result
- Action: remediation decisions and mutation reports
- Generation: content generator request/response
"""
from .build_schema import (
    ErrorKind,
    Severity,
    SuggestedAction,
    SessionStatus,
    TERMINAL_STATUSES,
    BuildError,
    AttemptRecord,
    GeneratedFile,
    RemediationResult,
)
from .action_schema import (
    WriteFileAction,
    ReplaceSupportFileAction,
    RemoveInstructionAction,
    NoteAction,
    Unfixable,
    RemediationAction,
    PlanResult,
    MutationReport,
    is_executable,
)
from .generation_schema import FileGenerationRequest, GeneratedContent

__all__ = [
    # Build (errors and results)
    "ErrorKind",
    "Severity",
    "SuggestedAction",
    "SessionStatus",
    "TERMINAL_STATUSES",
    "BuildError",
    "AttemptRecord",
    "GeneratedFile",
    "RemediationResult",
    # Action (remediation decisions)
    "WriteFileAction",
    "ReplaceSupportFileAction",
    "RemoveInstructionAction",
    "NoteAction",
    "Unfixable",
    "RemediationAction",
    "PlanResult",
    "MutationReport",
    "is_executable",
    # Generation (content generator boundary)
    "FileGenerationRequest",
    "GeneratedContent",
]
