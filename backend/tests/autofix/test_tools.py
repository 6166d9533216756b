"""
Tests for Tools

Content generation fallback, context inventory, image tags and build tool status.
"""
import json
import pytest
import tempfile
import shutil
from pathlib import Path

from autofix.schemas import FileGenerationRequest, GeneratedContent
from autofix.tools import (
    ContentGenerator,
    ContentGenerationError,
    PlaceholderContentGenerator,
    placeholder_content,
    resolve_content,
    ContextInventory,
    build_project_context,
    derive_image_name,
    normalize_image_tag,
    is_valid_image_tag,
    check_build_tool,
)


class TestPlaceholderContent:
    """Test deterministic placeholders keyed by extension"""

    def test_json_is_valid(self):
        assert json.loads(placeholder_content("config/settings.json")) == {}

    @pytest.mark.parametrize("path,marker", [
        ("app/config.yaml", "# Auto-generated placeholder"),
        ("docs/guide.md", "# Auto-generated placeholder"),
        ("src/index.ts", "// Auto-generated placeholder"),
        ("main.py", "# Auto-generated placeholder"),
        (".env.local", "# Auto-generated placeholder environment file"),
        ("run.cmd", "REM Auto-generated placeholder"),
    ])
    def test_extension_templates(self, path, marker):
        assert placeholder_content(path).startswith(marker)

    def test_shell_script_has_shebang(self):
        assert placeholder_content("scripts/start.sh").startswith("#!/bin/sh\n")

    def test_deterministic(self):
        assert placeholder_content("a/b.yml") == placeholder_content("a/b.yml")


class TestResolveContent:
    """Test generator resolution and fallback"""

    def request(self, path="app/config.yaml"):
        return FileGenerationRequest(path=path, file_type="config", reason="missing")

    def test_without_generator_uses_placeholder(self):
        generated = resolve_content(None, self.request())

        assert generated.action == "placeholder"
        assert generated.content == placeholder_content("app/config.yaml")

    def test_generator_content_is_kept(self):
        class Fixed(ContentGenerator):
            def generate(self, request):
                return GeneratedContent(content="port: 8080\n")

        generated = resolve_content(Fixed(), self.request())

        assert generated.content == "port: 8080\n"
        assert generated.action == "template"

    def test_generator_failure_logs_and_falls_back(self):
        class Broken(ContentGenerator):
            def generate(self, request):
                raise ContentGenerationError("quota exceeded")

        messages = []
        generated = resolve_content(Broken(), self.request("a.py"), messages.append)

        assert generated.action == "placeholder"
        assert generated.content == placeholder_content("a.py")
        assert any("quota exceeded" in m for m in messages)

    def test_placeholder_generator(self):
        content = PlaceholderContentGenerator().generate(self.request("x.json")).content

        assert content == placeholder_content("x.json")


class TestContextInventory:
    """Test build context scanning"""

    @pytest.fixture
    def temp_dir(self):
        """Create temporary build context"""
        temp = Path(tempfile.mkdtemp())
        (temp / "Dockerfile").write_text("FROM node:18\n")
        (temp / "package.json").write_text("{}\n")
        (temp / "src").mkdir()
        (temp / "src" / "index.js").write_text("\n")
        (temp / "node_modules" / "left-pad").mkdir(parents=True)
        (temp / "node_modules" / "left-pad" / "index.js").write_text("\n")
        yield temp
        if temp.exists():
            shutil.rmtree(temp)

    def test_scan(self, temp_dir):
        inventory = ContextInventory.scan(temp_dir)

        assert inventory.has_file("Dockerfile")
        assert inventory.has_file("./src/index.js")
        assert inventory.contains("src")
        assert inventory.contains("/src/")
        assert not inventory.has_file("src")
        assert not inventory.contains("node_modules/left-pad/index.js")

    def test_project_context(self, temp_dir):
        inventory = ContextInventory.scan(temp_dir)
        context = build_project_context(inventory, "Express API")

        assert "Language: javascript" in context
        assert "Has Dockerfile: True" in context
        assert "- src/index.js" in context
        assert context.endswith("Express API")


class TestImageTag:
    """Test registry-safe image names"""

    def test_github_url(self):
        assert derive_image_name("https://github.com/Owner/My-App.git", "Alice") == "alice/my-app:latest"

    def test_local_folder(self):
        assert derive_image_name("/tmp/builds/MyService", tag="v1") == "anonymous/myservice:v1"

    def test_normalize_keeps_registry_and_tag(self):
        assert normalize_image_tag("localhost:5000/Team/App:Dev") == "localhost:5000/team/app:Dev"

    def test_is_valid(self):
        assert is_valid_image_tag("anonymous/app:latest")
        assert not is_valid_image_tag("Anonymous/App:latest")


class TestBuildToolStatus:
    """Test the build tool preflight"""

    def test_missing_tool(self):
        status = check_build_tool("definitely-not-a-build-tool-xyz")

        assert not status.is_installed
        assert not status.is_running
        assert not status.can_build
        assert "not installed" in status.error


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
