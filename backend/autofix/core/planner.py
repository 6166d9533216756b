"""
Remediation Planner - BuildError → RemediationAction

Responsibilities:
- Map each classified error to one executable action, or Unfixable
- Decide "synthesize" vs "excise" for missing files via a policy table
- Pick minimal templates for stripped support files

The Planner is deterministic: a decision table keyed on
(kind, suggested_action) plus the SynthesisPolicy. It never touches disk.
"""
from pathlib import PurePosixPath
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, Field

from autofix.schemas import (
    BuildError,
    ErrorKind,
    SuggestedAction,
    PlanResult,
    WriteFileAction,
    ReplaceSupportFileAction,
    RemoveInstructionAction,
    NoteAction,
    Unfixable,
)
from autofix.core.classifier import normalize_path
from autofix.tools.context_inventory import ContextInventory

IGNORE_FILE = ".dockerignore"

MINIMAL_DOCKERIGNORE = """# Minimal .dockerignore to prevent build issues
node_modules/
npm-debug.log*
yarn-debug.log*
yarn-error.log*
.git/
.gitignore
.env
.env.local
.env.development.local
.env.test.local
.env.production.local
"""

MINIMAL_NPMRC = """# Minimal .npmrc to prevent build issues
fund=false
audit=false
"""

SUPPORT_FILE_TEMPLATES: Dict[str, str] = {
    ".dockerignore": MINIMAL_DOCKERIGNORE,
    ".npmrc": MINIMAL_NPMRC,
}


class SynthesisPolicy(BaseModel):
    """
    Allow/deny table deciding whether a missing path is generated or excised

    Excise markers win over synthesize suffixes. Anything matching neither
    is excised (its COPY instruction is removed).
    """
    excise_markers: Tuple[str, ...] = Field(
        default=(
            "node_modules", ".git", "dist", "build", ".cache", ".tmp", "tmp", "logs",
            ".vscode", ".idea", "__pycache__", ".next", "coverage",
        ),
        description="Path components that mark build output, caches, VCS and IDE folders",
    )
    excise_suffixes: Tuple[str, ...] = Field(
        default=(".log", ".pid", ".DS_Store", "Thumbs.db", ".swp"),
        description="File suffixes for logs, pid files and OS metadata",
    )
    config_suffixes: Tuple[str, ...] = (
        ".json", ".yml", ".yaml", ".toml", ".ini", ".cfg", ".conf", ".env", ".env.example",
        ".gitignore", ".dockerignore", ".editorconfig", ".npmrc",
    )
    rule_suffixes: Tuple[str, ...] = (".mdc",)
    documentation_suffixes: Tuple[str, ...] = (".md", ".txt", ".rst")
    source_suffixes: Tuple[str, ...] = (".py", ".js", ".ts", ".jsx", ".tsx", ".sh", ".bash", ".ps1", ".cmd")
    dependency_files: Tuple[str, ...] = ("go.mod", "requirements.txt", "Pipfile", "Gemfile")

    def should_excise(self, path: str) -> bool:
        rel = PurePosixPath(normalize_path(path))
        parts = [p.lower() for p in rel.parts]
        markers = {m.lower() for m in self.excise_markers}
        if any(part in markers for part in parts):
            return True
        return rel.name.lower().endswith(tuple(s.lower() for s in self.excise_suffixes))

    def file_type(self, path: str) -> Optional[str]:
        """Inferred file type if the path is safe to synthesize, else None"""
        name = PurePosixPath(normalize_path(path)).name
        lowered = name.lower()

        if name in self.dependency_files:
            return "dependency"
        if lowered.endswith(self.rule_suffixes):
            return "rule"
        if "rule" in lowered and lowered.endswith(self.documentation_suffixes + self.config_suffixes):
            return "rule"
        if lowered.endswith(self.config_suffixes) or lowered == ".env":
            return "config"
        if lowered.endswith(self.documentation_suffixes):
            return "documentation"
        if lowered.endswith(self.source_suffixes):
            return "source"
        return None


DEFAULT_POLICY = SynthesisPolicy()


class RemediationPlanner:
    """
    Remediation Planner - Decision table for classified errors

    Decoupled from pattern matching: the planner may override
    the classifier's suggestion (e.g. excise instead of generate).
    """

    def __init__(self, policy: Optional[SynthesisPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def plan(self, error: BuildError, inventory: ContextInventory) -> PlanResult:
        """
        Decide how to remediate one error

        Args:
            error: Classified build error
            inventory: Snapshot of the build context

        Returns:
            An executable action, a NoteAction or Unfixable
        """
        if error.kind == ErrorKind.MISSING_FILE:
            return self._plan_missing_file(error, inventory)

        if error.kind == ErrorKind.TAG_CASE:
            return NoteAction(
                message="Image tag must be lowercase; derive the tag with a lowercase repository name and restart"
            )

        return Unfixable(reason=f"No automatic remediation for {error.kind.value} errors: {_first_line(error.raw_message)}")

    def _plan_missing_file(self, error: BuildError, inventory: ContextInventory) -> PlanResult:
        path = error.missing_path
        action = error.suggested_action

        if action in (SuggestedAction.STRIP_IGNORE_FILE, SuggestedAction.STRIP_CONFIG_FILE):
            rel = normalize_path(path)
            name = PurePosixPath(rel).name
            return ReplaceSupportFileAction(path=rel, replacement=SUPPORT_FILE_TEMPLATES.get(name))

        if action == SuggestedAction.REMOVE_INSTRUCTION:
            return RemoveInstructionAction(path=path)

        if action != SuggestedAction.GENERATE_FILE:
            return Unfixable(reason=f"Unsupported action {action.value} for missing file {path}")

        # Present in the context but still "not found": the ignore list hides it
        if inventory.contains(path):
            if inventory.has_file(IGNORE_FILE):
                return ReplaceSupportFileAction(path=IGNORE_FILE, replacement=MINIMAL_DOCKERIGNORE)
            return RemoveInstructionAction(path=path)

        if self.policy.should_excise(path):
            return RemoveInstructionAction(path=path)

        file_type = self.policy.file_type(path)
        if file_type is None:
            return RemoveInstructionAction(path=path)

        return WriteFileAction(
            path=normalize_path(path),
            file_type=file_type,
            reason=f"Missing file detected during build: {_first_line(error.raw_message)}",
        )


def _first_line(text: str) -> str:
    return text.strip().splitlines()[0] if text.strip() else ""


__all__ = [
    "RemediationPlanner",
    "SynthesisPolicy",
    "DEFAULT_POLICY",
    "SUPPORT_FILE_TEMPLATES",
    "MINIMAL_DOCKERIGNORE",
    "MINIMAL_NPMRC",
]
