"""
Context Inventory Tool - Snapshot of a build context

Lists what is present in the build context so the planner can tell
"really missing" from "present but hidden by the ignore list", and
summarizes the project for the content generator.
"""
import os
from pathlib import Path, PurePosixPath
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Directories never worth descending into
SKIPPED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", ".pytest_cache"}

# Cap on file listings handed to the content generator
MAX_LISTED_FILES = 200

# Marker files -> language
LANGUAGE_MARKERS = [
    ("package.json", "javascript"),
    ("requirements.txt", "python"),
    ("pyproject.toml", "python"),
    ("Pipfile", "python"),
    ("go.mod", "go"),
    ("Cargo.toml", "rust"),
    ("pom.xml", "java"),
    ("build.gradle", "java"),
    ("Gemfile", "ruby"),
    ("composer.json", "php"),
]


class ContextInventory(BaseModel):
    """Relative POSIX paths (files and directories) present in a build context"""
    model_config = ConfigDict(frozen=True)

    root: str
    files: FrozenSet[str] = Field(default_factory=frozenset)
    directories: FrozenSet[str] = Field(default_factory=frozenset)

    @classmethod
    def scan(cls, context_dir: Path, max_entries: int = 5000) -> "ContextInventory":
        """Walk the context directory (bounded by max_entries)"""
        root = Path(context_dir)
        files = set()
        directories = set()

        for current, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
            rel_dir = Path(current).relative_to(root).as_posix()
            prefix = "" if rel_dir == "." else f"{rel_dir}/"

            for name in dirnames:
                directories.add(prefix + name)
            for name in sorted(filenames):
                files.add(prefix + name)

            if len(files) + len(directories) >= max_entries:
                break

        return cls(root=str(root), files=frozenset(files), directories=frozenset(directories))

    @staticmethod
    def _normalize(path: str) -> str:
        path = path.strip()
        while path.startswith("./"):
            path = path[2:]
        return PurePosixPath(path.strip("/")).as_posix() if path.strip("/") else "."

    def contains(self, path: str) -> bool:
        rel = self._normalize(path)
        return rel in self.files or rel in self.directories

    def has_file(self, path: str) -> bool:
        return self._normalize(path) in self.files

    def detect_language(self) -> Optional[str]:
        for marker, language in LANGUAGE_MARKERS:
            if marker in self.files:
                return language
        return None

    def sorted_files(self) -> List[str]:
        return sorted(self.files)


def build_project_context(inventory: ContextInventory, extra: Optional[str] = None, max_files: int = MAX_LISTED_FILES) -> str:
    """
    Human-readable project summary for the content generator

    Args:
        inventory: Scanned build context
        extra: Additional caller-supplied context
        max_files: Cap on listed files

    Returns:
        Multi-line description
    """
    files = inventory.sorted_files()
    lines = [
        f"Language: {inventory.detect_language() or 'unknown'}",
        f"Has Dockerfile: {'Dockerfile' in inventory.files}",
        "",
        "Files in project:",
    ]
    lines.extend(f"- {path}" for path in files[:max_files])
    if len(files) > max_files:
        lines.append(f"- ... ({len(files) - max_files} more)")

    if extra:
        lines.extend(["", "Additional Context:", extra])

    return "\n".join(lines)


__all__ = ["ContextInventory", "build_project_context", "MAX_LISTED_FILES"]
