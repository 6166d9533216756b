"""
Build Tool Status - Checks the external build tool before building

Reports whether the build tool is installed on PATH and whether
its daemon answers. Used by the API to surface "Docker is not running"
up front instead of after a failed build.
"""
import logging
import shutil
import subprocess
from typing import List, Optional

from pydantic import BaseModel, computed_field

logger = logging.getLogger(__name__)


class BuildToolStatus(BaseModel):
    """Availability of the build tool"""
    tool: str
    is_installed: bool
    is_running: bool
    version: Optional[str] = None
    error: Optional[str] = None

    @computed_field
    @property
    def can_build(self) -> bool:
        return self.is_installed and self.is_running


def _run_check(cmd: List[str], timeout: float) -> "tuple[bool, str]":
    """Run a short check command; returns (ok, output or error text)"""
    try:
        result = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return False, f"'{' '.join(cmd)}' timed out after {timeout:g}s"
    except OSError as e:
        return False, str(e)

    if result.returncode != 0:
        return False, (result.stderr or result.stdout).strip() or f"exit code {result.returncode}"
    return True, result.stdout.strip()


def check_build_tool(tool: str = "docker", timeout: float = 8.0) -> BuildToolStatus:
    """
    Check build tool installation and daemon status

    Args:
        tool: Executable name
        timeout: Seconds allowed per check

    Returns:
        BuildToolStatus
    """
    if shutil.which(tool) is None:
        logger.warning(f"[BuildToolStatus] {tool} not found on PATH")
        return BuildToolStatus(
            tool=tool,
            is_installed=False,
            is_running=False,
            error=f"{tool} is not installed or not in PATH",
        )

    ok, version = _run_check([tool, "--version"], timeout)
    if not ok:
        logger.warning(f"[BuildToolStatus] {tool} --version failed: {version}")
        return BuildToolStatus(tool=tool, is_installed=False, is_running=False, error=version)

    # `docker info` fails fast when the daemon is down
    ok, output = _run_check([tool, "info", "--format", "{{.ServerVersion}}"], timeout)
    if not ok:
        logger.warning(f"[BuildToolStatus] {tool} daemon not reachable: {output}")
        return BuildToolStatus(
            tool=tool,
            is_installed=True,
            is_running=False,
            version=version,
            error=output or f"The {tool} daemon is not running",
        )

    return BuildToolStatus(tool=tool, is_installed=True, is_running=True, version=version)


__all__ = ["BuildToolStatus", "check_build_tool"]
