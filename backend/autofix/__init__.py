"""
Build Auto-Fix Engine

Runs a container build, classifies failures, repairs the build context
and retries until the build succeeds or the attempt budget runs out.
"""
from .core import RetryController

__all__ = ["RetryController"]
