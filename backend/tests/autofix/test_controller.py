"""
Tests for Retry Controller

The build tool and content generator are replaced with scripted fakes,
so every session here is deterministic and runs without Docker.
"""
import pytest
import tempfile
import shutil
import threading
import time
from pathlib import Path
from typing import List

from autofix.core.builder import BuildOutcome, build_tool_unavailable
from autofix.core.controller import RetryController, error_kinds
from autofix.core.planner import MINIMAL_DOCKERIGNORE
from autofix.schemas import (
    ErrorKind,
    FileGenerationRequest,
    GeneratedContent,
    SessionStatus,
)
from autofix.tools.content_generator import ContentGenerator, ContentGenerationError
from autofix.tools.context_inventory import MAX_LISTED_FILES


DOCKERFILE = """FROM python:3.12-slim
WORKDIR /app
COPY requirements.txt .
COPY app ./app
CMD ["python", "-m", "app"]
"""


def failed(stderr: str) -> BuildOutcome:
    return BuildOutcome(succeeded=False, lines=stderr.splitlines(), error_text=stderr, exit_code=1)


def succeeded() -> BuildOutcome:
    return BuildOutcome(succeeded=True, lines=["Successfully built abc123"], exit_code=0)


class FakeBuilder:
    """Returns scripted outcomes; repeats the last one when the script runs out"""

    def __init__(self, outcomes: List[BuildOutcome]):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.dockerfiles: List[str] = []

    def run(self, build_spec_path, context_dir, image_tag, log_sink=None, cancel_event=None):
        self.dockerfiles.append(Path(build_spec_path).read_bytes().decode("utf-8", "replace"))
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        for line in outcome.lines:
            if log_sink:
                log_sink(line)
        return outcome


class SlowBuilder(FakeBuilder):
    """Each build outlasts a very short session timeout"""

    def run(self, *args, **kwargs):
        time.sleep(0.05)
        return super().run(*args, **kwargs)


class FakeContentGenerator(ContentGenerator):
    def __init__(self, content: str = "key: value\n"):
        self.content = content
        self.requests: List[FileGenerationRequest] = []

    def generate(self, request: FileGenerationRequest) -> GeneratedContent:
        self.requests.append(request)
        return GeneratedContent(content=self.content)


class FailingContentGenerator(ContentGenerator):
    def generate(self, request: FileGenerationRequest) -> GeneratedContent:
        raise ContentGenerationError("model unavailable")


class TestRetryController:
    """Test the attempt loop end to end"""

    @pytest.fixture
    def context_dir(self):
        """Create temporary build context"""
        temp = Path(tempfile.mkdtemp())
        (temp / "Dockerfile").write_text(DOCKERFILE)
        (temp / "requirements.txt").write_text("fastapi\n")
        (temp / "app").mkdir()
        (temp / "app" / "__main__.py").write_text("print('hi')\n")
        yield temp
        if temp.exists():
            shutil.rmtree(temp)

    def run_session(self, controller, context_dir, **kwargs):
        return controller.run(context_dir / "Dockerfile", context_dir, "anonymous/app:latest", **kwargs)

    def test_ignore_file_stripped_then_succeeds(self, context_dir):
        """Missing .dockerignore is replaced with a minimal template and the retry succeeds"""
        builder = FakeBuilder([failed("ERROR: invalid file request .dockerignore"), succeeded()])
        result = self.run_session(RetryController(builder=builder), context_dir)

        assert result.status == SessionStatus.SUCCESS
        assert result.succeeded
        assert result.build_count == 2
        assert (context_dir / ".dockerignore").read_text() == MINIMAL_DOCKERIGNORE
        assert result.generated_files[0].path == ".dockerignore"
        assert result.generated_files[0].action == "template"
        assert result.terminal_reason is None

    def test_generated_content_written_exactly(self, context_dir):
        """Generator output lands in the context byte for byte"""
        builder = FakeBuilder([failed('ERROR: "app/config.yaml": not found'), succeeded()])
        generator = FakeContentGenerator("key: value\n")
        result = self.run_session(
            RetryController(builder=builder, content_generator=generator),
            context_dir,
            project_context="Python web service",
        )

        assert result.status == SessionStatus.SUCCESS
        assert (context_dir / "app" / "config.yaml").read_text() == "key: value\n"
        assert result.generated_files[0].content == "key: value\n"

        request = generator.requests[0]
        assert request.path == "app/config.yaml"
        assert request.file_type == "config"
        assert "requirements.txt" in request.existing_files
        assert "Python web service" in request.project_context

    def test_unknown_error_is_unfixable_after_one_attempt(self, context_dir):
        builder = FakeBuilder([failed("something exploded")] * 3)
        result = self.run_session(RetryController(builder=builder, max_attempts=3), context_dir)

        assert result.status == SessionStatus.UNFIXABLE
        assert builder.calls == 1
        assert result.build_count == 1
        assert error_kinds(result) == [ErrorKind.UNKNOWN]
        assert result.terminal_reason.startswith("unfixable")

    def test_exhausted_after_single_attempt_keeps_remediation(self, context_dir):
        builder = FakeBuilder([failed("invalid file request .dockerignore"), succeeded()])
        result = self.run_session(RetryController(builder=builder), context_dir, max_attempts=1)

        assert result.status == SessionStatus.EXHAUSTED
        assert builder.calls == 1
        assert len(result.attempts) == 1
        assert result.mutations
        assert (context_dir / ".dockerignore").exists()

    def test_never_exceeds_max_attempts(self, context_dir):
        builder = FakeBuilder([
            failed('"docs/one.md": not found'),
            failed('"docs/two.md": not found'),
            failed('"docs/three.md": not found'),
            failed('"docs/four.md": not found'),
        ])
        result = self.run_session(RetryController(builder=builder, max_attempts=3), context_dir)

        assert result.status == SessionStatus.EXHAUSTED
        assert builder.calls == 3
        assert [a.attempt_number for a in result.attempts] == [1, 2, 3]

    def test_generator_failure_falls_back_to_placeholder(self, context_dir):
        builder = FakeBuilder([failed('"settings.json": not found'), succeeded()])
        result = self.run_session(
            RetryController(builder=builder, content_generator=FailingContentGenerator()),
            context_dir,
        )

        assert result.status == SessionStatus.SUCCESS
        assert (context_dir / "settings.json").read_text() == "{}\n"
        assert result.generated_files[0].action == "placeholder"

    def test_remove_instruction_keeps_a_copy(self, context_dir):
        builder = FakeBuilder([failed('"/dist": not found'), succeeded()])
        (context_dir / "Dockerfile").write_text("FROM nginx\nWORKDIR /srv\nCOPY dist .\n")
        result = self.run_session(RetryController(builder=builder), context_dir)

        assert result.status == SessionStatus.SUCCESS
        assert result.removed_instructions == ["COPY dist ."]
        assert "COPY . ." in result.final_build_spec_text
        assert builder.dockerfiles[1] == result.final_build_spec_text

    def test_non_utf8_build_spec_is_remediated(self, context_dir):
        """A Latin-1 comment does not stop instruction removal"""
        dockerfile = context_dir / "Dockerfile"
        dockerfile.write_bytes(b"FROM nginx\n# caf\xe9\nWORKDIR /srv\nCOPY dist .\n")
        builder = FakeBuilder([failed('"/dist": not found'), succeeded()])
        result = self.run_session(RetryController(builder=builder), context_dir)

        assert result.status == SessionStatus.SUCCESS
        assert result.removed_instructions == ["COPY dist ."]
        assert b"# caf\xe9\n" in dockerfile.read_bytes()
        assert b"COPY dist" not in dockerfile.read_bytes()
        assert builder.dockerfiles[1] == result.final_build_spec_text

    def test_existing_files_listing_is_capped(self, context_dir):
        (context_dir / "data").mkdir()
        for i in range(250):
            (context_dir / "data" / f"row{i:03d}.csv").write_text("a,b\n")
        builder = FakeBuilder([failed('"app/config.yaml": not found'), succeeded()])
        generator = FakeContentGenerator()
        self.run_session(RetryController(builder=builder, content_generator=generator), context_dir)

        assert len(generator.requests[0].existing_files) == MAX_LISTED_FILES

    def test_same_remediation_is_not_repeated(self, context_dir):
        builder = FakeBuilder([failed("invalid file request .dockerignore")] * 3)
        messages = []
        result = self.run_session(RetryController(builder=builder), context_dir, log_sink=messages.append)

        assert result.status == SessionStatus.UNFIXABLE
        assert builder.calls == 2
        assert len(result.mutations) >= 1
        assert any("Already applied" in m for m in messages)

    def test_launch_failure_fails_session(self, context_dir):
        outcome = BuildOutcome(
            succeeded=False,
            fatal_error=build_tool_unavailable("Build tool 'docker' could not be launched"),
        )
        result = self.run_session(RetryController(builder=FakeBuilder([outcome])), context_dir)

        assert result.status == SessionStatus.FAILED
        assert result.build_count == 1
        assert result.attempts[0].errors_found[0].kind == ErrorKind.DEPENDENCY
        assert "could not be launched" in result.terminal_reason

    def test_cancel_before_first_attempt(self, context_dir):
        builder = FakeBuilder([succeeded()])
        cancel = threading.Event()
        cancel.set()
        result = self.run_session(RetryController(builder=builder), context_dir, cancel_event=cancel)

        assert result.status == SessionStatus.CANCELLED
        assert result.terminal_reason == "cancelled"
        assert builder.calls == 0
        assert result.attempts == []

    def test_cancelled_build(self, context_dir):
        builder = FakeBuilder([BuildOutcome(succeeded=False, cancelled=True, exit_code=-15)])
        result = self.run_session(RetryController(builder=builder), context_dir)

        assert result.status == SessionStatus.CANCELLED
        assert result.build_count == 1

    def test_tag_case_is_noted_and_unfixable(self, context_dir):
        builder = FakeBuilder([failed("invalid reference format: repository name must be lowercase")])
        result = self.run_session(RetryController(builder=builder), context_dir)

        assert result.status == SessionStatus.UNFIXABLE
        assert result.notes
        assert "lowercase" in result.notes[0]

    def test_progress_and_log_stream(self, context_dir):
        builder = FakeBuilder([failed("invalid file request .dockerignore"), succeeded()])
        progress, messages = [], []
        self.run_session(
            RetryController(builder=builder, max_attempts=4),
            context_dir,
            log_sink=messages.append,
            progress_callback=progress.append,
        )

        assert progress == [0, 25, 50, 100]
        assert "invalid file request .dockerignore" in messages
        assert any("Classified as MissingFile" in m for m in messages)
        assert any("Applying remediation" in m for m in messages)

    def test_session_timeout(self, context_dir):
        builder = SlowBuilder([failed('"a.md": not found'), failed('"b.md": not found')])
        result = self.run_session(
            RetryController(builder=builder, session_timeout=0.01),
            context_dir,
        )

        assert result.status == SessionStatus.EXHAUSTED
        assert "timeout" in result.terminal_reason
        assert builder.calls == 1

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            RetryController(builder=FakeBuilder([succeeded()]), max_attempts=0)

    def test_explicit_zero_max_attempts_is_rejected(self, context_dir):
        builder = FakeBuilder([succeeded()])
        with pytest.raises(ValueError):
            self.run_session(RetryController(builder=builder), context_dir, max_attempts=0)
        assert builder.calls == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
