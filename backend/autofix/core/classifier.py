"""
Error Classifier

Responsibilities:
- Parse raw build-tool output (stderr)
- Extract typed BuildError records using a pattern taxonomy
- Flag support files (.dockerignore, .npmrc) for stripping instead of generation

Key principle: classification is PURE.
Same text in, same list out. No filesystem, no network, no LLM.
"""
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, List, Optional, Sequence, Tuple

from autofix.schemas import BuildError, ErrorKind, Severity, SuggestedAction

# Support files that are safer to strip and replace than to regenerate
SUPPORT_FILE_ACTIONS = {
    ".dockerignore": SuggestedAction.STRIP_IGNORE_FILE,
    ".npmrc": SuggestedAction.STRIP_CONFIG_FILE,
}

# Dependency manifests named explicitly by the "named module file" pattern
MODULE_FILES = (
    "go.mod", "go.sum", "requirements.txt", "package.json", "package-lock.json",
    "yarn.lock", "pnpm-lock.yaml", "Pipfile", "Pipfile.lock", "pyproject.toml",
    "poetry.lock", "Gemfile", "Gemfile.lock", "Cargo.toml", "Cargo.lock", "pom.xml",
    "build.gradle", "composer.json",
)

# BuildKit reports lstat paths inside its temporary mount of the context
_BUILDKIT_MOUNT = re.compile(r"^.*?/buildkit-mount\d+/")


@dataclass(frozen=True)
class ErrorPattern:
    """One entry in the taxonomy: a regex and how to turn its first match into a BuildError"""
    name: str
    regex: "re.Pattern"
    build: Callable[["re.Match", str], Optional[BuildError]]


def _line_of(text: str, match: "re.Match") -> str:
    """Full output line(s) containing the match"""
    start = text.rfind("\n", 0, match.start()) + 1
    end = text.find("\n", match.end())
    if end == -1:
        end = len(text)
    return text[start:end].strip()


def normalize_path(path: str) -> str:
    """Canonical form used to compare paths reported in different styles"""
    path = path.strip().strip("'\"")
    while path.startswith("./"):
        path = path[2:]
    return path.strip("/")


def suggest_for_path(path: str) -> SuggestedAction:
    name = PurePosixPath(normalize_path(path)).name
    return SUPPORT_FILE_ACTIONS.get(name, SuggestedAction.GENERATE_FILE)


def missing_file(path: str, raw_message: str) -> BuildError:
    """MissingFile record with the support-file action applied"""
    action = suggest_for_path(path)
    severity = Severity.HIGH if action == SuggestedAction.GENERATE_FILE else Severity.MEDIUM
    return BuildError(
        kind=ErrorKind.MISSING_FILE,
        missing_path=path,
        raw_message=raw_message,
        severity=severity,
        suggested_action=action,
    )


def _missing_from_group(match: "re.Match", text: str) -> Optional[BuildError]:
    return missing_file(match.group(1), _line_of(text, match))


def _missing_from_lstat(match: "re.Match", text: str) -> Optional[BuildError]:
    path = _BUILDKIT_MOUNT.sub("", match.group(1))
    return missing_file(path, _line_of(text, match))


def _missing_from_copy_line(match: "re.Match", text: str) -> Optional[BuildError]:
    sources = [arg for arg in match.group(1).split() if not arg.startswith("--")]
    if len(sources) < 2:
        return None
    return missing_file(sources[0], _line_of(text, match))


def _fixed(kind: ErrorKind, severity: Severity, action: SuggestedAction):
    def build(match: "re.Match", text: str) -> Optional[BuildError]:
        return BuildError(kind=kind, raw_message=_line_of(text, match), severity=severity, suggested_action=action)
    return build


_module_names = "|".join(re.escape(name) for name in MODULE_FILES)

# Priority order: specific patterns before generic ones
DEFAULT_PATTERNS: Tuple[ErrorPattern, ...] = (
    ErrorPattern(
        "invalid_file_request",
        re.compile(r"invalid file request\s+([^\s\"']+)"),
        _missing_from_group,
    ),
    ErrorPattern(
        "missing_module_file",
        re.compile(r"\"((?:[^\"\n]*/)?(?:" + _module_names + r"))\":\s*not found"),
        _missing_from_group,
    ),
    ErrorPattern(
        "quoted_path_not_found",
        re.compile(r"\"([^\"\n]+)\":\s*not found"),
        _missing_from_group,
    ),
    ErrorPattern(
        "lstat_no_such_file",
        re.compile(r"lstat\s+([^\s:]+):\s*no such file or directory"),
        _missing_from_lstat,
    ),
    ErrorPattern(
        "copy_failed_stat",
        re.compile(r"(?:COPY|ADD) failed:.*?stat\s+([^\s:]+):\s*file does not exist"),
        _missing_from_lstat,
    ),
    ErrorPattern(
        "copy_directory_not_found",
        re.compile(r"\b(?:COPY|ADD)\s+(?!failed:)((?:--\S+\s+)*[^\s:]+\s+\S+)[^\n]*?not found"),
        _missing_from_copy_line,
    ),
    ErrorPattern(
        "tag_case",
        re.compile(r"repository name must be lowercase|invalid tag|invalid reference format", re.IGNORECASE),
        _fixed(ErrorKind.TAG_CASE, Severity.MEDIUM, SuggestedAction.FIX_TAG_CASE),
    ),
    ErrorPattern(
        "permission_denied",
        re.compile(r"permission denied|EACCES|operation not permitted", re.IGNORECASE),
        _fixed(ErrorKind.PERMISSION, Severity.HIGH, SuggestedAction.MANUAL_FIX),
    ),
    ErrorPattern(
        "daemon_unreachable",
        re.compile(
            r"Cannot connect to the Docker daemon|error during connect|Is the docker daemon running",
            re.IGNORECASE,
        ),
        _fixed(ErrorKind.DEPENDENCY, Severity.CRITICAL, SuggestedAction.MANUAL_FIX),
    ),
    ErrorPattern(
        "dependency_resolution",
        re.compile(
            r"pull access denied|manifest unknown|manifest for \S+ not found"
            r"|No matching distribution found|Could not find a version that satisfies"
            r"|npm ERR! (?:code E404|404)|Unable to locate package|go: module \S+: .*not found",
            re.IGNORECASE,
        ),
        _fixed(ErrorKind.DEPENDENCY, Severity.HIGH, SuggestedAction.MANUAL_FIX),
    ),
    ErrorPattern(
        "build_spec_syntax",
        re.compile(r"dockerfile parse error|unknown instruction:|failed to parse dockerfile", re.IGNORECASE),
        _fixed(ErrorKind.SYNTAX, Severity.HIGH, SuggestedAction.MANUAL_FIX),
    ),
)


class ErrorClassifier:
    """
    Error Classifier - Deterministic error taxonomy

    Each pattern contributes at most one record (its first match).
    Records come back in pattern priority order.
    """

    def __init__(self, patterns: Optional[Sequence[ErrorPattern]] = None):
        self.patterns: Tuple[ErrorPattern, ...] = tuple(patterns) if patterns is not None else DEFAULT_PATTERNS

    def classify(self, error_text: str) -> List[BuildError]:
        """
        Classify build error output

        Args:
            error_text: stderr of the failed build

        Returns:
            Ordered list of BuildError records, never empty
        """
        errors: List[BuildError] = []
        seen = set()

        for pattern in self.patterns:
            match = pattern.regex.search(error_text)
            if not match:
                continue
            error = pattern.build(match, error_text)
            if error is None:
                continue

            key = (error.kind, normalize_path(error.missing_path) if error.missing_path else None)
            if key in seen:
                continue
            seen.add(key)
            errors.append(error)

        if not errors:
            errors.append(BuildError(
                kind=ErrorKind.UNKNOWN,
                raw_message=error_text.strip(),
                severity=Severity.CRITICAL,
                suggested_action=SuggestedAction.MANUAL_FIX,
            ))

        return errors


_default_classifier = ErrorClassifier()


def classify(error_text: str) -> List[BuildError]:
    """Classify with the default pattern taxonomy"""
    return _default_classifier.classify(error_text)


__all__ = [
    "ErrorClassifier",
    "ErrorPattern",
    "DEFAULT_PATTERNS",
    "SUPPORT_FILE_ACTIONS",
    "classify",
    "missing_file",
    "normalize_path",
    "suggest_for_path",
]
