"""
Tests for Error Classifier

Classification must be pure: same text in, same records out.
"""
import pytest

from autofix.core.classifier import ErrorClassifier, classify, normalize_path
from autofix.schemas import ErrorKind, Severity, SuggestedAction


class TestMissingFileExtraction:
    """Test missing-path extraction from build output"""

    @pytest.fixture
    def classifier(self):
        return ErrorClassifier()

    def test_invalid_file_request_ignore_file(self, classifier):
        """Ignore file is flagged for stripping, not generation"""
        errors = classifier.classify("ERROR: invalid file request .dockerignore")

        assert len(errors) == 1
        assert errors[0].kind == ErrorKind.MISSING_FILE
        assert errors[0].missing_path == ".dockerignore"
        assert errors[0].suggested_action == SuggestedAction.STRIP_IGNORE_FILE
        assert errors[0].severity == Severity.MEDIUM

    def test_npmrc_is_stripped(self, classifier):
        errors = classifier.classify("invalid file request .npmrc")

        assert errors[0].missing_path == ".npmrc"
        assert errors[0].suggested_action == SuggestedAction.STRIP_CONFIG_FILE

    def test_quoted_path_not_found(self, classifier):
        errors = classifier.classify('ERROR: failed to compute cache key: "app/config.yaml": not found')

        assert len(errors) == 1
        assert errors[0].missing_path == "app/config.yaml"
        assert errors[0].suggested_action == SuggestedAction.GENERATE_FILE
        assert errors[0].severity == Severity.HIGH

    def test_named_module_file_reported_once(self, classifier):
        """Module file and generic not-found patterns both match; one record survives"""
        errors = classifier.classify('failed to compute cache key: "/go.mod": not found')

        assert len(errors) == 1
        assert errors[0].missing_path == "/go.mod"

    def test_lstat_strips_buildkit_mount(self, classifier):
        text = (
            "failed to compute cache key: lstat "
            "/var/lib/docker/tmp/buildkit-mount123/config/settings.json: no such file or directory"
        )
        errors = classifier.classify(text)

        assert errors[0].missing_path == "config/settings.json"

    def test_copy_failed_stat(self, classifier):
        text = (
            "COPY failed: file not found in build context or excluded by .dockerignore: "
            "stat app.py: file does not exist"
        )
        errors = classifier.classify(text)

        assert len(errors) == 1
        assert errors[0].missing_path == "app.py"

    def test_raw_message_is_the_matching_line(self, classifier):
        text = 'Step 3/5 : COPY . .\n"app/config.yaml": not found\nexit status 1'
        errors = classifier.classify(text)

        assert errors[0].raw_message == '"app/config.yaml": not found'


class TestOtherErrorKinds:
    """Test non-file error categories"""

    def test_tag_case(self):
        errors = classify(
            'invalid argument "MyUser/App:latest" for "-t, --tag" flag: '
            "invalid reference format: repository name must be lowercase"
        )

        assert [e.kind for e in errors] == [ErrorKind.TAG_CASE]
        assert errors[0].suggested_action == SuggestedAction.FIX_TAG_CASE
        assert errors[0].missing_path is None

    def test_daemon_unreachable(self):
        errors = classify(
            "Cannot connect to the Docker daemon at unix:///var/run/docker.sock. Is the docker daemon running?"
        )

        assert errors[0].kind == ErrorKind.DEPENDENCY
        assert errors[0].severity == Severity.CRITICAL

    def test_permission(self):
        errors = classify("open /etc/shadow: permission denied")

        assert errors[0].kind == ErrorKind.PERMISSION

    def test_syntax(self):
        errors = classify("dockerfile parse error line 3: unknown instruction: RUNN")

        assert errors[0].kind == ErrorKind.SYNTAX
        assert errors[0].suggested_action == SuggestedAction.MANUAL_FIX

    def test_unknown_is_synthesized(self):
        errors = classify("something exploded")

        assert len(errors) == 1
        assert errors[0].kind == ErrorKind.UNKNOWN
        assert errors[0].severity == Severity.CRITICAL
        assert errors[0].suggested_action == SuggestedAction.MANUAL_FIX

    def test_multiple_patterns_in_priority_order(self):
        text = 'open /data: permission denied\n"app/config.yaml": not found'
        errors = classify(text)

        assert [e.kind for e in errors] == [ErrorKind.MISSING_FILE, ErrorKind.PERMISSION]

    def test_deterministic(self):
        text = 'invalid file request .dockerignore\n"app/main.py": not found\npermission denied'

        assert classify(text) == classify(text)


class TestNormalizePath:
    """Test path canonicalization"""

    @pytest.mark.parametrize("raw,expected", [
        ("./app/config.yaml", "app/config.yaml"),
        ("/app/config.yaml", "app/config.yaml"),
        ('"dist/"', "dist"),
        (".dockerignore", ".dockerignore"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
