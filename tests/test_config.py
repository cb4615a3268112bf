"""
Tests for config loader — YAML file, environment overrides, and defaults.
"""

import textwrap
from pathlib import Path

import pytest

from stackwatch.core.config.loader import (
    ConfigError,
    Settings,
    extract_repo_name,
    find_config_file,
    load_settings,
)


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "stackwatch.yml"
    path.write_text(textwrap.dedent(content))
    return path


class TestExtractRepoName:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("git@github.com:org/homelab.git", "homelab"),
            ("https://github.com/org/homelab", "homelab"),
            ("https://github.com/org/homelab.git/", "homelab"),
            ("ssh://git@host:2222/org/stacks.git", "stacks"),
            ("/srv/git/infra.git", "infra"),
        ],
    )
    def test_names(self, url, expected):
        assert extract_repo_name(url) == expected


class TestSettings:
    def test_defaults(self):
        settings = Settings(repo_url="git@github.com:org/homelab.git")
        assert settings.repo_path == Path("/opt/homelab")
        assert settings.branch == "main"
        assert settings.poll_interval == 30
        assert settings.retry_failed is True
        assert settings.state_file == Path("/opt/.stackwatch/state.json")
        assert settings.stacks_root == Path("/opt/homelab")
        assert settings.ledger_file == Path("/opt/.stackwatch/cycles.ndjson")

    def test_stacks_dir(self, tmp_path: Path):
        settings = Settings(repo_url="x/repo.git", repo_path=tmp_path, stacks_dir="stacks")
        assert settings.stacks_root == tmp_path / "stacks"

    def test_stacks_dir_escape_rejected(self):
        with pytest.raises(ValueError, match="inside the repository"):
            Settings(repo_url="x/repo.git", stacks_dir="../elsewhere")

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(repo_url="x/repo.git", poll_interval=0)

    def test_blank_webhook_is_none(self):
        assert Settings(repo_url="x/repo.git", webhook_url="").webhook_url is None

    def test_to_dict_masks_webhook(self):
        data = Settings(repo_url="x/repo.git", webhook_url="https://discord.com/api/webhooks/1/secret").to_dict()
        assert data["webhook_url"] == "***"
        assert data["repo_url"] == "x/repo.git"


class TestLoadSettings:
    def test_from_env_only(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings(
            env={
                "STACKWATCH_REPO_URL": "https://github.com/org/homelab",
                "STACKWATCH_BRANCH": "prod",
                "STACKWATCH_POLL_INTERVAL": "15",
                "STACKWATCH_RETRY_FAILED": "false",
            }
        )
        assert settings.branch == "prod"
        assert settings.poll_interval == 15
        assert settings.retry_failed is False

    def test_from_file(self, tmp_path: Path):
        path = _write(tmp_path, f"""\
            repo_url: git@github.com:org/homelab.git
            repo_path: {tmp_path / 'checkout'}
            stacks_dir: stacks
            webhook_url: https://example.com/hook
        """)
        settings = load_settings(path, env={})
        assert settings.repo_path == tmp_path / "checkout"
        assert settings.stacks_root == tmp_path / "checkout" / "stacks"
        assert settings.webhook_url == "https://example.com/hook"

    def test_nested_section(self, tmp_path: Path):
        path = _write(tmp_path, """\
            stackwatch:
              repo_url: git@github.com:org/homelab.git
              branch: develop
        """)
        assert load_settings(path, env={}).branch == "develop"

    def test_env_overrides_file(self, tmp_path: Path):
        path = _write(tmp_path, """\
            repo_url: git@github.com:org/homelab.git
            branch: develop
        """)
        settings = load_settings(path, env={"STACKWATCH_BRANCH": "main", "STACKWATCH_WEBHOOK_URL": ""})
        assert settings.branch == "main"

    def test_auto_detect_in_cwd(self, tmp_path: Path, monkeypatch):
        _write(tmp_path, "repo_url: git@github.com:org/found.git\n")
        monkeypatch.chdir(tmp_path)
        assert find_config_file() == tmp_path / "stackwatch.yml"
        assert load_settings(env={}).repo_path == Path("/opt/found")

    def test_missing_repo_url(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="No repository configured"):
            load_settings(env={})

    def test_empty_file(self, tmp_path: Path):
        path = _write(tmp_path, "")
        with pytest.raises(ConfigError, match="No repository configured"):
            load_settings(path, env={})

    def test_invalid_yaml(self, tmp_path: Path):
        path = _write(tmp_path, "repo_url: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path, env={})

    def test_not_a_mapping(self, tmp_path: Path):
        path = _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_settings(path, env={})

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml", env={})

    def test_invalid_value(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(env={"STACKWATCH_REPO_URL": "x/r.git", "STACKWATCH_POLL_INTERVAL": "soon"})
