"""Unit tests for journeyqa.credentials — password resolution and masking."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from journeyqa.credentials import (
    _parse_env_file,
    _parse_yaml_key,
    expand_env_ref,
    mask_secret,
    resolve_password,
)


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.delenv("SAUCE_PASSWORD", raising=False)
    monkeypatch.chdir(tmp_path)


# ---------------------------------------------------------------------------
# 1. resolve_password(): resolution order
# ---------------------------------------------------------------------------

class TestResolvePassword:
    """Env var, then .env, then config.yaml, then the demo password."""

    def test_env_var_wins(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("SAUCE_PASSWORD", "from-env")
        (tmp_path / ".env").write_text("SAUCE_PASSWORD=from-dotenv\n", encoding="utf-8")
        (tmp_path / "config.yaml").write_text(yaml.dump({"sauce_password": "from-yaml"}), encoding="utf-8")

        assert resolve_password(project_dir=tmp_path) == "from-env"

    def test_dotenv_before_config(self, tmp_path: Path):
        (tmp_path / ".env").write_text("SAUCE_PASSWORD='from-dotenv'\n", encoding="utf-8")
        (tmp_path / "config.yaml").write_text(yaml.dump({"sauce_password": "from-yaml"}), encoding="utf-8")

        assert resolve_password(project_dir=tmp_path) == "from-dotenv"

    def test_project_config(self, tmp_path: Path):
        project_dir = tmp_path / ".journeyqa"
        project_dir.mkdir()
        (project_dir / "config.yaml").write_text(yaml.dump({"sauce_password": "from-yaml"}), encoding="utf-8")

        assert resolve_password(project_dir=project_dir) == "from-yaml"

    def test_falls_back_to_demo_password(self):
        assert resolve_password() == "secret_sauce"


# ---------------------------------------------------------------------------
# 2. Helpers
# ---------------------------------------------------------------------------

class TestExpandEnvRef:
    def test_expands_reference(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("QA_PASS", "hunter22")
        assert expand_env_ref("${QA_PASS}") == "hunter22"

    def test_unset_reference_is_empty(self):
        assert expand_env_ref("${SURELY_NOT_SET_ANYWHERE}") == ""

    def test_literal_passes_through(self):
        assert expand_env_ref("plain-value") == "plain-value"
        assert expand_env_ref("prefix-${X}") == "prefix-${X}"


class TestMaskSecret:
    def test_short_secret_is_fully_masked(self):
        assert mask_secret("") == "***"
        assert mask_secret("abcdef") == "***"

    def test_long_secret_shows_edges(self):
        assert mask_secret("secret_sauce") == "se...ce"


class TestParsers:
    def test_env_file_ignores_comments(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text("# SAUCE_PASSWORD=nope\nOTHER=x\nSAUCE_PASSWORD=\"yes\"\n", encoding="utf-8")
        assert _parse_env_file(env_file, "SAUCE_PASSWORD") == "yes"

    def test_env_file_missing_key(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text("OTHER=x\n", encoding="utf-8")
        assert _parse_env_file(env_file, "SAUCE_PASSWORD") is None

    def test_yaml_key_on_broken_yaml(self, tmp_path: Path):
        config = tmp_path / "config.yaml"
        config.write_text("sauce_password: [unclosed\n", encoding="utf-8")
        assert _parse_yaml_key(config) is None

    def test_yaml_key_on_list_document(self, tmp_path: Path):
        config = tmp_path / "config.yaml"
        config.write_text("- a\n- b\n", encoding="utf-8")
        assert _parse_yaml_key(config) is None
