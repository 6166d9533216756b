"""
Context Mutator

Responsibilities:
- Apply one remediation action to the build context
- Write files atomically (temp file + rename)
- Delete/replace support files
- Filter build-instruction lines that copy a missing path
- Report every mutation for the audit trail

Every operation is idempotent: deleting an absent file or removing
instructions that no longer exist is a successful no-op.
The build-instruction file is treated as a list of opaque lines.
"""
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from autofix.schemas import (
    MutationReport,
    RemediationAction,
    WriteFileAction,
    ReplaceSupportFileAction,
    RemoveInstructionAction,
)
from autofix.core.classifier import normalize_path

logger = logging.getLogger(__name__)

COPY_INSTRUCTION = re.compile(r"^\s*(COPY|ADD)\s", re.IGNORECASE)
WORKDIR_INSTRUCTION = re.compile(r"^\s*WORKDIR\s", re.IGNORECASE)
FROM_INSTRUCTION = re.compile(r"^\s*FROM\s", re.IGNORECASE)
FALLBACK_COPY = ["", "# Copy application code", "COPY . ."]

# Build-instruction files are not guaranteed to be UTF-8; undecodable bytes round-trip unchanged
BUILD_SPEC_ERRORS = "surrogateescape"


class ContextMutationError(Exception):
    """Raised when the build context cannot be read or written"""
    pass


def copy_arguments(line: str) -> "tuple[List[str], List[str]]":
    """
    Split a COPY/ADD line into (flags, paths)

    Handles both the shell form `COPY src dest` and the exec form
    `COPY ["src", "dest"]`; flags such as --chown come before either.
    """
    rest = COPY_INSTRUCTION.sub("", line, count=1).strip()
    flags: List[str] = []
    while rest.startswith("--"):
        parts = rest.split(None, 1)
        flags.append(parts[0])
        rest = parts[1] if len(parts) > 1 else ""

    if rest.startswith("["):
        try:
            args = json.loads(rest)
        except ValueError:
            args = None
        if isinstance(args, list) and all(isinstance(arg, str) for arg in args):
            return flags, args

    return flags, rest.split()


def is_application_copy(line: str) -> bool:
    """COPY/ADD taking sources from the build context (not from another stage)"""
    if not COPY_INSTRUCTION.match(line):
        return False
    flags, _ = copy_arguments(line)
    return not any(flag.lower().startswith("--from=") for flag in flags)


def references_path(line: str, path: str) -> bool:
    """True if a COPY/ADD line names `path` (or something under it) among its sources"""
    if not COPY_INSTRUCTION.match(line):
        return False
    target = normalize_path(path)
    if not target:
        return False

    _, args = copy_arguments(line)
    # The last argument is the destination inside the image
    for source in args[:-1]:
        source = normalize_path(source)
        if source == target or source.startswith(target + "/"):
            return True
    return False


def displayable(text: str) -> str:
    """Text safe to log and serialize: undecodable bytes become U+FFFD"""
    return text.encode("utf-8", BUILD_SPEC_ERRORS).decode("utf-8", "replace")


def atomic_write(path: Path, content: str, errors: str = "strict"):
    """All-or-nothing write: a crash leaves either the old file or the new one"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors=errors, newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class ContextMutator:
    """
    Context Mutator - The only component that writes into the build context

    Bound to one session's build context and build-instruction file.
    """

    def __init__(self, context_dir: Path, build_spec_path: Path):
        self.context_dir = Path(context_dir).resolve()
        self.build_spec_path = Path(build_spec_path)

    def resolve(self, rel_path: str) -> Path:
        """Resolve a context-relative path, refusing anything outside the context"""
        candidate = (self.context_dir / normalize_path(rel_path)).resolve()
        if candidate != self.context_dir and self.context_dir not in candidate.parents:
            raise ContextMutationError(f"Path escapes the build context: {rel_path}")
        return candidate

    def apply(
        self,
        action: RemediationAction,
        log_sink: Optional[Callable[[str], None]] = None,
    ) -> MutationReport:
        """
        Apply a single remediation action

        Args:
            action: Executable action (WriteFileAction content must be resolved)
            log_sink: Receives user-facing messages

        Returns:
            MutationReport describing what changed

        Raises:
            ContextMutationError: If the filesystem cannot be read or written
        """
        def log(msg: str):
            if log_sink:
                log_sink(msg)
            logger.info(f"[ContextMutator] {msg}")

        try:
            if isinstance(action, WriteFileAction):
                return self._write_file(action, log)
            if isinstance(action, ReplaceSupportFileAction):
                return self._replace_support_file(action, log)
            if isinstance(action, RemoveInstructionAction):
                return self._remove_instruction(action, log)
        except (OSError, UnicodeError) as e:
            raise ContextMutationError(f"Failed to apply '{action.describe()}': {e}") from e

        raise ContextMutationError(f"Unsupported action: {action!r}")

    def _write_file(self, action: WriteFileAction, log) -> MutationReport:
        if action.content is None:
            raise ContextMutationError(f"No content resolved for {action.path}")

        target = self.resolve(action.path)
        if not target.parent.exists():
            log(f"📁 Created directory: {target.parent.relative_to(self.context_dir).as_posix()}")
        atomic_write(target, action.content)

        log(f"✅ Generated missing file: {action.path}")
        return MutationReport(
            descriptions=[f"wrote {action.path} ({len(action.content)} chars)"],
            written_paths=[action.path],
        )

    def _replace_support_file(self, action: ReplaceSupportFileAction, log) -> MutationReport:
        target = self.resolve(action.path)
        report = MutationReport()

        if target.is_file():
            backup = target.read_text(encoding="utf-8", errors="replace")
            target.unlink()
            report.descriptions.append(f"removed {action.path}")
            report.removed_instructions.append(f"{action.path} file removed")
            log(f"🗑️ Removed: {action.path} file")
            log(f"📄 Backup content: {backup[:100]}...")
        else:
            report.descriptions.append(f"{action.path} already absent")
            log(f"ℹ️ {action.path} file not found, nothing to remove")

        if action.replacement is not None:
            atomic_write(target, action.replacement)
            report.descriptions.append(f"wrote minimal {action.path}")
            report.written_paths.append(action.path)
            log(f"✅ Created minimal {action.path} file")

        return report

    def _remove_instruction(self, action: RemoveInstructionAction, log) -> MutationReport:
        if not self.build_spec_path.is_file():
            raise ContextMutationError(f"Build instruction file not found: {self.build_spec_path}")

        original = self.build_spec_path.read_text(encoding="utf-8", errors=BUILD_SPEC_ERRORS)
        new_text, removed, added_fallback = remove_referencing_instructions(original, action.path)

        report = MutationReport(removed_instructions=[displayable(line.strip()) for line in removed])
        for line in report.removed_instructions:
            log(f"🗑️ Removed: {line}")
        if not removed:
            report.descriptions.append(f"no instruction references {action.path}")
            log(f"ℹ️ No instruction references {action.path}")

        if new_text != original:
            atomic_write(self.build_spec_path, new_text, errors=BUILD_SPEC_ERRORS)
            report.build_spec_text = displayable(new_text)
            report.descriptions.append(
                f"updated {self.build_spec_path.name} (removed {len(removed)} lines referencing {action.path})"
            )
            if added_fallback:
                log("✅ Added general COPY . . command to replace removed copy")
            log(f"✅ Updated {self.build_spec_path.name} (removed {len(removed)} lines)")

        return report


def remove_referencing_instructions(text: str, path: str) -> "tuple[str, List[str], bool]":
    """
    Drop COPY/ADD lines that copy `path`, keeping at least one application copy

    Args:
        text: Build-instruction file content
        path: Missing path

    Returns:
        (new text, removed lines, whether the fallback COPY was inserted)
    """
    trailing_newline = text.endswith("\n")
    lines = text.splitlines()

    kept: List[str] = []
    removed: List[str] = []
    for line in lines:
        if references_path(line, path):
            removed.append(line)
        else:
            kept.append(line)

    added_fallback = False
    if not any(is_application_copy(line) for line in kept):
        kept = _insert_fallback_copy(kept)
        added_fallback = True

    new_text = "\n".join(kept)
    if trailing_newline or not text:
        new_text += "\n"
    return new_text, removed, added_fallback


def _insert_fallback_copy(lines: List[str]) -> List[str]:
    """Put `COPY . .` after the final stage's WORKDIR, else after its FROM, else at the end"""
    from_lines = [i for i, line in enumerate(lines) if FROM_INSTRUCTION.match(line)]
    stage_start = from_lines[-1] if from_lines else 0

    index = next(
        (i for i in range(stage_start, len(lines)) if WORKDIR_INSTRUCTION.match(lines[i])),
        None,
    )
    if index is None:
        index = from_lines[-1] if from_lines else len(lines) - 1
    return lines[:index + 1] + FALLBACK_COPY + lines[index + 1:]


__all__ = [
    "ContextMutator",
    "ContextMutationError",
    "atomic_write",
    "copy_arguments",
    "displayable",
    "is_application_copy",
    "references_path",
    "remove_referencing_instructions",
]
