"""
Image Tag Tool - Derives registry-safe image references

TagCase build failures cannot be fixed inside the build context;
the tag has to be derived correctly before the session starts.
"""
import re
from typing import Optional

_GITHUB_REPO = re.compile(r"github\.com[/:]([^/]+)/([^/#?]+)", re.IGNORECASE)
_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9._-]+")
_INVALID_TAG_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_name_component(value: str) -> str:
    """Lowercase one repository path component and drop characters the registry rejects"""
    cleaned = _INVALID_NAME_CHARS.sub("-", value.lower())
    cleaned = re.sub(r"[-._]{2,}", "-", cleaned).strip("-._")
    return cleaned or "project"


def sanitize_tag(tag: str) -> str:
    cleaned = _INVALID_TAG_CHARS.sub("-", tag).lstrip(".-")[:128]
    return cleaned or "latest"


def derive_image_name(repo_url_or_folder: str, docker_user: str = "anonymous", tag: str = "latest") -> str:
    """
    Derive `<user>/<repo>:<tag>` from a GitHub URL or a local folder path

    Args:
        repo_url_or_folder: e.g. "https://github.com/Owner/My-App.git" or "/tmp/builds/MyApp"
        docker_user: Registry namespace
        tag: Image tag

    Returns:
        Lowercase image reference
    """
    match = _GITHUB_REPO.search(repo_url_or_folder)
    if match:
        repo_name = re.sub(r"\.git$", "", match.group(2))
    else:
        parts = [p for p in re.split(r"[\\/]", repo_url_or_folder) if p]
        repo_name = parts[-1] if parts else "project"

    return f"{sanitize_name_component(docker_user)}/{sanitize_name_component(repo_name)}:{sanitize_tag(tag)}"


def normalize_image_tag(image_tag: str) -> str:
    """Lowercase the repository part of an existing reference, keeping the tag"""
    name, tag = _split_reference(image_tag)
    parts = [c for c in name.split("/") if c]
    host = None
    if len(parts) > 1 and ("." in parts[0] or ":" in parts[0] or parts[0] == "localhost"):
        host = parts.pop(0).lower()
    components = [sanitize_name_component(c) for c in parts]
    if host:
        components.insert(0, host)
    normalized = "/".join(components) or "project"
    return f"{normalized}:{sanitize_tag(tag)}" if tag else normalized


def _split_reference(image_tag: str) -> "tuple[str, Optional[str]]":
    # The tag separator is the last ':' after the last '/' (a ':' before it belongs to a registry port)
    slash = image_tag.rfind("/")
    colon = image_tag.rfind(":")
    if colon > slash:
        return image_tag[:colon], image_tag[colon + 1:]
    return image_tag, None


def is_valid_image_tag(image_tag: str) -> bool:
    return normalize_image_tag(image_tag) == image_tag


__all__ = ["derive_image_name", "normalize_image_tag", "is_valid_image_tag", "sanitize_name_component"]
