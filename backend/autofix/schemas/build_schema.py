"""
Build Schema - Errors, attempts and session results

These records flow between the auto-fix stages:
- BuildError: one classified failure extracted from build output
- AttemptRecord: what happened during one build attempt
- RemediationResult: the terminal value of a whole session
"""
from typing import List, Optional, Tuple
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, model_validator


class ErrorKind(str, Enum):
    """Build error taxonomy"""
    MISSING_FILE = "MissingFile"
    PERMISSION = "Permission"
    SYNTAX = "Syntax"
    DEPENDENCY = "Dependency"
    TAG_CASE = "TagCase"
    UNKNOWN = "Unknown"


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class SuggestedAction(str, Enum):
    """First-pass fix suggested by the classifier (the planner may override it)"""
    GENERATE_FILE = "GenerateFile"
    REMOVE_INSTRUCTION = "RemoveInstruction"
    STRIP_IGNORE_FILE = "StripIgnoreFile"
    STRIP_CONFIG_FILE = "StripConfigFile"
    FIX_TAG_CASE = "FixTagCase"
    MANUAL_FIX = "ManualFix"


class SessionStatus(str, Enum):
    """Auto-fix session state machine"""
    IDLE = "Idle"
    ATTEMPTING = "Attempting"
    CLASSIFYING = "Classifying"
    REMEDIATING = "Remediating"
    SUCCESS = "Success"
    UNFIXABLE = "Unfixable"
    EXHAUSTED = "Exhausted"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    SessionStatus.SUCCESS,
    SessionStatus.UNFIXABLE,
    SessionStatus.EXHAUSTED,
    SessionStatus.FAILED,
    SessionStatus.CANCELLED,
})


class BuildError(BaseModel):
    """A single classified build failure"""
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind = Field(..., description="Error category")
    missing_path: Optional[str] = Field(None, description="Path the build could not find (MissingFile only)")
    raw_message: str = Field(..., description="Output line(s) the error was extracted from")
    severity: Severity = Field(Severity.HIGH)
    suggested_action: SuggestedAction = Field(SuggestedAction.MANUAL_FIX)

    @model_validator(mode="after")
    def check_missing_path(self) -> "BuildError":
        """missing_path is set exactly when kind is MissingFile"""
        if self.kind == ErrorKind.MISSING_FILE and not self.missing_path:
            raise ValueError("MissingFile errors require missing_path")
        if self.kind != ErrorKind.MISSING_FILE and self.missing_path is not None:
            raise ValueError(f"{self.kind.value} errors cannot carry missing_path")
        return self

    def summary(self) -> str:
        target = f" ({self.missing_path})" if self.missing_path else ""
        return f"{self.kind.value}{target} [{self.severity.value}] -> {self.suggested_action.value}"


class AttemptRecord(BaseModel):
    """Outcome of one build attempt. Immutable once the attempt completes."""
    model_config = ConfigDict(frozen=True)

    attempt_number: int = Field(..., ge=1)
    succeeded: bool
    raw_log_lines: Tuple[str, ...] = Field(default_factory=tuple)
    errors_found: Tuple[BuildError, ...] = Field(default_factory=tuple)


class GeneratedFile(BaseModel):
    """A file written into the build context"""
    path: str
    content: str
    reason: str
    action: str = Field("created", description="created, placeholder or template")


class RemediationResult(BaseModel):
    """
    Session-level result

    Created at session start, mutated only by the RetryController,
    returned as the terminal value.
    """
    succeeded: bool = False
    status: SessionStatus = SessionStatus.IDLE
    max_attempts: int = Field(3, ge=1)
    attempts: List[AttemptRecord] = Field(default_factory=list)
    generated_files: List[GeneratedFile] = Field(default_factory=list)
    removed_instructions: List[str] = Field(default_factory=list)
    mutations: List[str] = Field(default_factory=list, description="Audit trail of every context mutation")
    notes: List[str] = Field(default_factory=list, description="Informational records (no mutation applied)")
    final_build_spec_text: Optional[str] = None
    terminal_reason: Optional[str] = None

    @property
    def build_count(self) -> int:
        return len(self.attempts)

    @property
    def errors(self) -> List[BuildError]:
        """Every error seen across all attempts, in order"""
        return [error for attempt in self.attempts for error in attempt.errors_found]
