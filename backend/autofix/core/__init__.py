"""
Core Auto-Fix Components

These components form the build → classify → remediate → retry loop:
1. Builder - Runs one build attempt, streaming output
2. Error Classifier - Build output → classified BuildErrors
3. Remediation Planner - BuildError → RemediationAction
4. Context Mutator - Applies actions to the build context
5. Retry Controller - Bounded attempt loop and session state machine
"""
from .builder import Builder, BuildOutcome
from .classifier import ErrorClassifier, ErrorPattern, DEFAULT_PATTERNS
from .planner import RemediationPlanner, SynthesisPolicy
from .mutator import ContextMutator, ContextMutationError
from .controller import RetryController, SessionState

__all__ = [
    "Builder",
    "BuildOutcome",
    "ErrorClassifier",
    "ErrorPattern",
    "DEFAULT_PATTERNS",
    "RemediationPlanner",
    "SynthesisPolicy",
    "ContextMutator",
    "ContextMutationError",
    "RetryController",
    "SessionState",
]
