"""Tests for project detection and server probing."""

import sys

import pytest

from editorbridge.backend.exception import NotFoundError, ProjectUnknownError
from editorbridge.backend.lsp.detect import detect_project, probe_language_server
from editorbridge.backend.lsp.language import DEFAULT_SERVERS, LanguageServerSpec, manifest_table

MANIFESTS = manifest_table(DEFAULT_SERVERS)


class TestDetectProject:
    """Tests for detect_project."""

    def test_file_in_nested_directory(self, tmp_path):
        (tmp_path / "go.mod").write_text("module example.com/demo\n")
        source = tmp_path / "cmd" / "demo" / "main.go"
        source.parent.mkdir(parents=True)
        source.write_text("package main\n")

        info = detect_project(source, MANIFESTS)
        assert info.project_type == "go"
        assert info.root_path == str(tmp_path)

    def test_directory_itself_is_checked(self, tmp_path):
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        info = detect_project(tmp_path, MANIFESTS)
        assert info.project_type == "rust"
        assert info.root_path == str(tmp_path)

    def test_closest_manifest_wins(self, tmp_path):
        (tmp_path / "go.mod").write_text("module outer\n")
        inner = tmp_path / "tools" / "helper"
        (inner / "src").mkdir(parents=True)
        (inner / "Cargo.toml").write_text("[package]\n")
        source = inner / "src" / "lib.rs"
        source.write_text("")

        info = detect_project(source, MANIFESTS)
        assert info.project_type == "rust"
        assert info.root_path == str(inner)

    def test_table_order_within_one_directory(self, tmp_path):
        (tmp_path / "go.mod").write_text("module both\n")
        (tmp_path / "Cargo.toml").write_text("[package]\n")

        assert detect_project(tmp_path, MANIFESTS).project_type == "rust"

    def test_manifest_directory_is_not_a_match(self, tmp_path):
        (tmp_path / "go.mod").mkdir()
        with pytest.raises(ProjectUnknownError):
            detect_project(tmp_path, {"go.mod": "go"})

    def test_unknown(self, tmp_path):
        source = tmp_path / "notes.txt"
        source.write_text("")

        with pytest.raises(ProjectUnknownError) as exc_info:
            detect_project(source, {"definitely-absent.manifest": "x"})
        assert exc_info.value.message == "unknown"

    def test_nonexistent_path(self, tmp_path):
        with pytest.raises(NotFoundError):
            detect_project(tmp_path / "missing" / "main.go", MANIFESTS)


class TestLanguageServerAvailability:
    """Tests for probe_language_server."""

    def _spec(self, *version_args):
        return LanguageServerSpec(
            language="fake", command=sys.executable, version_args=list(version_args)
        )

    def test_healthy(self):
        assert probe_language_server(self._spec("-c", "print('fake 1.0')")) is True

    def test_nonzero_exit(self):
        assert probe_language_server(self._spec("-c", "raise SystemExit(3)")) is False

    def test_error_on_stderr(self):
        spec = self._spec("-c", "import sys; sys.stderr.write('ERROR: toolchain missing')")
        assert probe_language_server(spec) is False

    def test_missing_binary(self):
        spec = LanguageServerSpec(language="fake", command="definitely-not-a-real-binary-xyz")
        assert probe_language_server(spec) is False
