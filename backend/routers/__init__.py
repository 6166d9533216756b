"""
Routers package
FastAPI route handlers organized by domain
"""
from . import autofix

__all__ = [
    "autofix",
]
