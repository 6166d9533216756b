"""
Builder - Container Image Build

Responsibilities:
- Run one build attempt with the external build tool
- Stream stdout/stderr line by line to the caller's log sink
- Report pass/fail with stderr captured for classification
- Kill the build on timeout or cancellation

The Builder never writes into the build context.
"""
import logging
import queue
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from autofix.schemas import BuildError, ErrorKind, Severity, SuggestedAction

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]

STDOUT = "stdout"
STDERR = "stderr"
_EOF = None


class BuildOutcome(BaseModel):
    """Result of a single build attempt"""
    succeeded: bool
    lines: List[str] = Field(default_factory=list, description="stdout and stderr interleaved in arrival order")
    error_text: str = Field("", description="stderr only")
    exit_code: Optional[int] = None
    fatal_error: Optional[BuildError] = Field(None, description="Set when the build could not run at all")
    timed_out: bool = False
    cancelled: bool = False


def build_tool_unavailable(message: str) -> BuildError:
    """Error record for a build tool that cannot be launched or reached"""
    return BuildError(
        kind=ErrorKind.DEPENDENCY,
        raw_message=message,
        severity=Severity.CRITICAL,
        suggested_action=SuggestedAction.MANUAL_FIX,
    )


class Builder:
    """
    Builder - Runs the container build tool

    Wraps one `<tool> build` invocation.
    """

    def __init__(
        self,
        build_tool: str = "docker",
        timeout: Optional[float] = 600,
        kill_grace_seconds: float = 5.0,
        poll_interval: float = 0.1,
    ):
        self.build_tool = build_tool
        self.timeout = timeout
        self.kill_grace_seconds = kill_grace_seconds
        self.poll_interval = poll_interval

    def build_command(self, build_spec_path: Path, context_dir: Path, image_tag: str) -> List[str]:
        return [
            self.build_tool, "build",
            "-f", str(build_spec_path),
            "-t", image_tag,
            str(context_dir),
        ]

    def run(
        self,
        build_spec_path: Path,
        context_dir: Path,
        image_tag: str,
        log_sink: Optional[LogSink] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BuildOutcome:
        """
        Run one build attempt

        Args:
            build_spec_path: Build-instruction file (Dockerfile)
            context_dir: Build context directory
            image_tag: Target image tag
            log_sink: Receives every output line as it arrives
            cancel_event: Terminates the build when set

        Returns:
            BuildOutcome. Launch failures and timeouts are reported through
            `fatal_error` rather than raised.
        """
        def log(msg: str):
            if log_sink:
                log_sink(msg)
            logger.info(f"[Builder] {msg}")

        cmd = self.build_command(build_spec_path, context_dir, image_tag)
        log(f"Running: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                errors="replace",
            )
        except (FileNotFoundError, PermissionError) as e:
            message = f"Build tool '{self.build_tool}' could not be launched: {e}"
            log(f"✗ {message}")
            return BuildOutcome(succeeded=False, fatal_error=build_tool_unavailable(message))

        lines: List[str] = []
        stderr_lines: List[str] = []
        timed_out = False
        cancelled = False

        # One reader thread per pipe so neither OS buffer can fill up and block the build
        line_queue: "queue.Queue" = queue.Queue()
        readers = [
            threading.Thread(target=_pump_stream, args=(process.stdout, STDOUT, line_queue), daemon=True),
            threading.Thread(target=_pump_stream, args=(process.stderr, STDERR, line_queue), daemon=True),
        ]
        for reader in readers:
            reader.start()

        deadline = time.monotonic() + self.timeout if self.timeout else None
        open_streams = len(readers)

        while open_streams:
            try:
                stream, line = line_queue.get(timeout=self.poll_interval)
            except queue.Empty:
                stream, line = None, None

            if stream is not None:
                if line is _EOF:
                    open_streams -= 1
                else:
                    # Forward before buffering
                    if log_sink:
                        log_sink(line)
                    lines.append(line)
                    if stream == STDERR:
                        stderr_lines.append(line)

            if not (timed_out or cancelled):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    self._stop(process)
                elif deadline is not None and time.monotonic() > deadline:
                    timed_out = True
                    self._stop(process)

        exit_code = process.wait()
        for reader in readers:
            reader.join(timeout=2)

        error_text = "\n".join(stderr_lines)

        if cancelled:
            log("✗ Build cancelled")
            return BuildOutcome(
                succeeded=False, lines=lines, error_text=error_text,
                exit_code=exit_code, cancelled=True,
            )

        if timed_out:
            message = f"Build timeout after {self.timeout:g} seconds"
            log(f"✗ {message}")
            return BuildOutcome(
                succeeded=False, lines=lines, error_text=error_text, exit_code=exit_code,
                timed_out=True, fatal_error=build_tool_unavailable(message),
            )

        if exit_code != 0:
            log(f"✗ Build failed with exit code {exit_code}")
            return BuildOutcome(succeeded=False, lines=lines, error_text=error_text, exit_code=exit_code)

        log("✓ Build successful")
        return BuildOutcome(succeeded=True, lines=lines, error_text=error_text, exit_code=exit_code)

    def _stop(self, process: subprocess.Popen):
        """Terminate the child, escalating to kill if it ignores the signal"""
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self.kill_grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(f"[Builder] Build process {process.pid} ignored terminate, killing")
            process.kill()


def _pump_stream(stream, name: str, line_queue: "queue.Queue"):
    """Push every line of a pipe onto the queue, then an EOF marker"""
    try:
        for line in iter(stream.readline, ""):
            line_queue.put((name, line.rstrip("\r\n")))
    finally:
        stream.close()
        line_queue.put((name, _EOF))


__all__ = ["Builder", "BuildOutcome", "build_tool_unavailable", "LogSink"]
