"""
Retry Controller - Build → Classify → Remediate → Retry

Responsibilities:
- Run the bounded attempt loop for one session
- Route failures through Classifier → Planner → Mutator
- Resolve missing-file content through the content generator
- Report progress and stream every decision to the log sink
- Return a RemediationResult explaining why the session stopped

WORKFLOW STATE MACHINE:
=======================
[Idle] → [Attempting] → build ok → [Success]
              ↓ build failed
        [Classifying] → no viable action → [Unfixable]
              ↓
        [Remediating] → attempt += 1 → attempt > max → [Exhausted]
              ↓
        [Attempting] ...

Hard failures (launch failure, attempt timeout, filesystem errors) end in
[Failed]; a cancellation between or during attempts ends in [Cancelled].

The controller holds no per-session state: everything a session needs
lives in SessionState, so one controller can serve concurrent sessions.
"""
import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from pydantic import BaseModel, Field

from autofix.schemas import (
    AttemptRecord,
    BuildError,
    ErrorKind,
    FileGenerationRequest,
    GeneratedFile,
    MutationReport,
    NoteAction,
    PlanResult,
    RemediationAction,
    RemediationResult,
    SessionStatus,
    Unfixable,
    WriteFileAction,
    is_executable,
)
from autofix.core.builder import Builder, BuildOutcome
from autofix.core.classifier import ErrorClassifier
from autofix.core.planner import RemediationPlanner
from autofix.core.mutator import ContextMutator, ContextMutationError
from autofix.tools.content_generator import ContentGenerator, resolve_content
from autofix.tools.context_inventory import MAX_LISTED_FILES, ContextInventory, build_project_context

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]
ProgressCallback = Callable[[int], None]

CANCELLED = "cancelled"


class SessionState(BaseModel):
    """Explicit per-session state threaded through the loop"""
    status: SessionStatus = SessionStatus.IDLE
    attempt_number: int = 0
    applied_actions: Set[str] = Field(default_factory=set)
    deadline: Optional[float] = Field(None, description="time.monotonic() value ending the session")


class RetryController:
    """
    Retry Controller - Orchestrates the auto-fix loop

    All collaborators are injected so tests can substitute
    deterministic fakes for the build tool and the content generator.
    """

    def __init__(
        self,
        builder: Optional[Builder] = None,
        classifier: Optional[ErrorClassifier] = None,
        planner: Optional[RemediationPlanner] = None,
        content_generator: Optional[ContentGenerator] = None,
        max_attempts: int = 3,
        session_timeout: Optional[float] = None,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be a positive integer, got {max_attempts}")
        self.builder = builder or Builder()
        self.classifier = classifier or ErrorClassifier()
        self.planner = planner or RemediationPlanner()
        self.content_generator = content_generator
        self.max_attempts = max_attempts
        self.session_timeout = session_timeout

    def run(
        self,
        build_spec_path: Path,
        context_dir: Path,
        image_tag: str,
        log_sink: Optional[LogSink] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        project_context: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> RemediationResult:
        """
        Run one auto-fix session

        Args:
            build_spec_path: Build-instruction file (Dockerfile)
            context_dir: Build context directory, owned by this session
            image_tag: Target image tag
            log_sink: Receives every build output line and every decision
            progress_callback: Receives 0-100 progress
            cancel_event: Abandons the session when set
            project_context: Extra context for the content generator
            max_attempts: Overrides the controller default

        Returns:
            Terminal RemediationResult
        """
        if max_attempts is None:
            max_attempts = self.max_attempts
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be a positive integer, got {max_attempts}")

        build_spec_path = Path(build_spec_path)
        context_dir = Path(context_dir)
        mutator = ContextMutator(context_dir, build_spec_path)

        def log(msg: str):
            if log_sink:
                log_sink(msg)
            logger.info(f"[RetryController] {msg}")

        def progress(percent: int):
            if progress_callback:
                progress_callback(max(0, min(100, percent)))

        result = RemediationResult(max_attempts=max_attempts)
        state = SessionState(
            attempt_number=1,
            deadline=time.monotonic() + self.session_timeout if self.session_timeout else None,
        )

        log("🚀 Starting build auto-fix session...")
        progress(0)

        while True:
            # Top of Attempting: cancellation and session timeout
            if cancel_event is not None and cancel_event.is_set():
                return self._finish(result, state, SessionStatus.CANCELLED, CANCELLED, log)
            if state.deadline is not None and time.monotonic() > state.deadline:
                return self._finish(
                    result, state, SessionStatus.EXHAUSTED,
                    f"exhausted: session timeout of {self.session_timeout:g}s reached "
                    f"after {result.build_count} attempt(s)",
                    log,
                )

            state.status = SessionStatus.ATTEMPTING
            log(f"🔄 Attempt {state.attempt_number}/{max_attempts}")
            progress(state.attempt_number * 100 // max_attempts)

            outcome = self.builder.run(build_spec_path, context_dir, image_tag, log_sink, cancel_event)

            if outcome.cancelled:
                result.attempts.append(self._record(state, outcome, []))
                return self._finish(result, state, SessionStatus.CANCELLED, CANCELLED, log)

            if outcome.succeeded:
                result.attempts.append(self._record(state, outcome, []))
                result.succeeded = True
                progress(100)
                return self._finish(result, state, SessionStatus.SUCCESS, None, log)

            if outcome.fatal_error is not None:
                result.attempts.append(self._record(state, outcome, [outcome.fatal_error]))
                return self._finish(
                    result, state, SessionStatus.FAILED,
                    f"build could not run: {outcome.fatal_error.raw_message}",
                    log,
                )

            # Classifying
            state.status = SessionStatus.CLASSIFYING
            log("🔍 Analyzing build error...")
            errors = self.classifier.classify(outcome.error_text)
            result.attempts.append(self._record(state, outcome, errors))
            for error in errors:
                log(f"📊 Classified as {error.summary()}")

            try:
                inventory = ContextInventory.scan(context_dir)
            except OSError as e:
                return self._finish(result, state, SessionStatus.FAILED, f"build context unreadable: {e}", log)

            action = self._choose_action(errors, inventory, state, result, log)
            if action is None:
                kinds = ", ".join(sorted({e.kind.value for e in errors}))
                return self._finish(
                    result, state, SessionStatus.UNFIXABLE,
                    f"unfixable: no viable remediation for {kinds}",
                    log,
                )

            # Remediating
            state.status = SessionStatus.REMEDIATING
            log(f"🔧 Applying remediation: {action.describe()}")
            try:
                self._remediate(action, inventory, mutator, result, log, project_context)
            except ContextMutationError as e:
                return self._finish(result, state, SessionStatus.FAILED, f"context mutation failed: {e}", log)
            state.applied_actions.add(action.key)

            state.attempt_number += 1
            if state.attempt_number > max_attempts:
                return self._finish(
                    result, state, SessionStatus.EXHAUSTED,
                    f"exhausted: reached maximum of {max_attempts} attempt(s)",
                    log,
                )

    def _record(self, state: SessionState, outcome: BuildOutcome, errors: List[BuildError]) -> AttemptRecord:
        return AttemptRecord(
            attempt_number=state.attempt_number,
            succeeded=outcome.succeeded,
            raw_log_lines=tuple(outcome.lines),
            errors_found=tuple(errors),
        )

    def _choose_action(
        self,
        errors: List[BuildError],
        inventory: ContextInventory,
        state: SessionState,
        result: RemediationResult,
        log: LogSink,
    ) -> Optional[RemediationAction]:
        """First viable action across errors, in classification order"""
        for error in errors:
            planned: PlanResult = self.planner.plan(error, inventory)

            if isinstance(planned, NoteAction):
                result.notes.append(planned.message)
                log(f"ℹ️ {planned.message}")
                continue
            if isinstance(planned, Unfixable):
                log(f"❌ Cannot auto-fix: {planned.reason}")
                continue
            if not is_executable(planned):
                continue
            if planned.key in state.applied_actions:
                log(f"⏭️ Already applied earlier in this session: {planned.describe()}")
                continue
            return planned

        return None

    def _remediate(
        self,
        action: RemediationAction,
        inventory: ContextInventory,
        mutator: ContextMutator,
        result: RemediationResult,
        log: LogSink,
        project_context: Optional[str],
    ):
        generated: Optional[GeneratedFile] = None

        if isinstance(action, WriteFileAction) and action.content is None:
            log(f"🧠 Generating content for missing file: {action.path}")
            request = FileGenerationRequest(
                path=action.path,
                file_type=action.file_type,
                project_context=build_project_context(inventory, project_context),
                existing_files=inventory.sorted_files()[:MAX_LISTED_FILES],
                reason=action.reason,
            )
            generated = resolve_content(self.content_generator, request, log)
            action = action.model_copy(update={"content": generated.content})

        report: MutationReport = mutator.apply(action, log)
        self._merge(report, action, generated, result, log)

    def _merge(
        self,
        report: MutationReport,
        action: RemediationAction,
        generated: Optional[GeneratedFile],
        result: RemediationResult,
        log: LogSink,
    ):
        """Record the mutation into the session result"""
        result.mutations.extend(report.descriptions)
        result.removed_instructions.extend(report.removed_instructions)
        if report.build_spec_text is not None:
            result.final_build_spec_text = report.build_spec_text

        if generated is not None:
            result.generated_files.append(generated)
            log(f"📝 Action: {generated.action}")
        elif isinstance(action, WriteFileAction):
            result.generated_files.append(GeneratedFile(
                path=action.path, content=action.content or "", reason=action.reason,
            ))
        elif report.written_paths and getattr(action, "replacement", None) is not None:
            result.generated_files.append(GeneratedFile(
                path=action.path,
                content=action.replacement,
                reason=f"Minimal replacement for problematic {action.path}",
                action="template",
            ))

    def _finish(
        self,
        result: RemediationResult,
        state: SessionState,
        status: SessionStatus,
        reason: Optional[str],
        log: LogSink,
    ) -> RemediationResult:
        state.status = status
        result.status = status
        result.terminal_reason = reason

        if status == SessionStatus.SUCCESS:
            log(f"✅ Build succeeded on attempt {state.attempt_number}")
        elif status == SessionStatus.CANCELLED:
            log("⏹️ Session cancelled")
        else:
            log(f"❌ Auto-fix stopped after {result.build_count} attempt(s): {reason}")
        return result


def error_kinds(result: RemediationResult) -> List[ErrorKind]:
    """Kinds of every error seen in a session, in order"""
    return [error.kind for error in result.errors]


__all__ = ["RetryController", "SessionState", "CANCELLED", "error_kinds"]
