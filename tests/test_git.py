"""
Tests for the git collaborator — clone, sync, and diff against a local
bare remote.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from stackwatch.adapters.vcs.git import GitRepository, RepositoryError, SyncResult

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

_IDENTITY = ["-c", "user.name=Test", "-c", "user.email=test@example.com", "-c", "commit.gpgsign=false"]


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *_IDENTITY, *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


class _Upstream:
    """A bare remote plus a working clone used to push commits to it."""

    def __init__(self, root: Path):
        self.bare = root / "remote.git"
        self.work = root / "upstream"
        self.bare.mkdir()
        _git(self.bare, "init", "--bare", "-q")
        self.work.mkdir()
        _git(self.work, "init", "-q")
        _git(self.work, "checkout", "-q", "-b", "main")
        _git(self.work, "remote", "add", "origin", str(self.bare))

    @property
    def url(self) -> str:
        return str(self.bare)

    def write(self, rel: str, content: str = "x\n") -> None:
        target = self.work / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def remove(self, rel: str) -> None:
        _git(self.work, "rm", "-r", "-q", rel)

    def push(self, message: str = "change") -> str:
        _git(self.work, "add", "-A")
        _git(self.work, "commit", "-q", "-m", message)
        _git(self.work, "push", "-q", "origin", "main")
        return _git(self.work, "rev-parse", "HEAD")


@pytest.fixture
def upstream(tmp_path: Path) -> _Upstream:
    return _Upstream(tmp_path)


@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    return tmp_path / "checkouts" / "homelab"


class TestAcquire:
    def test_empty_remote_returns_false(self, upstream, checkout):
        repo = GitRepository(checkout, upstream.url)
        assert repo.acquire() is False

    def test_content_pushed_after_empty_clone(self, upstream, checkout):
        repo = GitRepository(checkout, upstream.url)
        assert repo.acquire() is False
        assert repo.acquire() is False

        upstream.write("web/docker-compose.yml")
        rev = upstream.push()

        assert repo.acquire() is True
        assert repo.head() == rev
        assert (checkout / "web" / "docker-compose.yml").is_file()

    def test_clone(self, upstream, checkout):
        upstream.write("web/docker-compose.yml")
        rev = upstream.push()

        repo = GitRepository(checkout, upstream.url)
        assert repo.acquire() is True
        assert repo.exists()
        assert repo.head() == rev
        assert (checkout / "web" / "docker-compose.yml").is_file()

    def test_existing_checkout_reused(self, upstream, checkout):
        upstream.write("web/docker-compose.yml")
        upstream.push()
        repo = GitRepository(checkout, upstream.url)
        repo.acquire()
        assert GitRepository(checkout, "https://unreachable.invalid/x.git").acquire() is True

    def test_missing_branch_waits(self, upstream, checkout):
        upstream.write("web/docker-compose.yml")
        upstream.push()
        assert GitRepository(checkout, upstream.url, branch="release").acquire() is False

    def test_bad_url_raises(self, tmp_path, checkout):
        repo = GitRepository(checkout, str(tmp_path / "does-not-exist.git"))
        with pytest.raises(RepositoryError, match="Failed to clone"):
            repo.acquire()

    def test_missing_deploy_key_raises(self, upstream, checkout, tmp_path):
        repo = GitRepository(checkout, upstream.url, deploy_key=tmp_path / "id_ed25519")
        with pytest.raises(RepositoryError, match="deploy key not found"):
            repo.acquire()


class TestSync:
    def _cloned(self, upstream, checkout) -> GitRepository:
        upstream.write("web/docker-compose.yml")
        upstream.write("db/compose.yaml")
        upstream.push("initial")
        repo = GitRepository(checkout, upstream.url)
        assert repo.acquire()
        return repo

    def test_no_change(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        result = repo.sync()
        assert result.updated is False
        assert result.old_revision == result.new_revision
        assert result.changed_paths == []

    def test_update_reports_paths(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        before = repo.head()
        upstream.write("web/docker-compose.yml", "changed\n")
        upstream.write("README.md")
        after = upstream.push()

        result = repo.sync()
        assert result.updated is True
        assert result.old_revision == before
        assert result.new_revision == after
        assert sorted(result.changed_paths) == ["README.md", "web/docker-compose.yml"]
        assert repo.head() == after

    def test_deletion_listed(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        upstream.remove("db")
        upstream.push("drop db")

        result = repo.sync()
        assert result.changed_paths == ["db/compose.yaml"]
        assert not (checkout / "db").exists()

    def test_rename_lists_both_paths(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        _git(upstream.work, "mv", "db", "database")
        upstream.push("rename")

        result = repo.sync()
        assert sorted(result.changed_paths) == ["database/compose.yaml", "db/compose.yaml"]

    def test_local_edits_discarded(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        (checkout / "web" / "docker-compose.yml").write_text("local hack\n")
        upstream.write("db/compose.yaml", "new\n")
        upstream.push()

        repo.sync()
        assert (checkout / "web" / "docker-compose.yml").read_text() == "x\n"

    def test_since_reports_move_already_checked_out(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        acted_on = repo.head()
        upstream.write("web/docker-compose.yml", "changed\n")
        upstream.push()
        repo.sync()

        result = repo.sync(since=acted_on)
        assert result.updated is True
        assert result.old_revision == acted_on
        assert result.changed_paths == ["web/docker-compose.yml"]

    def test_since_spans_several_pushes(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        acted_on = repo.head()
        upstream.write("web/docker-compose.yml", "changed\n")
        upstream.push("one")
        upstream.write("db/compose.yaml", "changed\n")
        after = upstream.push("two")

        result = repo.sync(since=acted_on)
        assert result.new_revision == after
        assert sorted(result.changed_paths) == ["db/compose.yaml", "web/docker-compose.yml"]

    def test_since_equal_to_remote_is_unchanged(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        result = repo.sync(since=repo.head())
        assert result.updated is False

    def test_fetch_failure_raises(self, upstream, checkout):
        repo = self._cloned(upstream, checkout)
        shutil.rmtree(upstream.bare)
        with pytest.raises(RepositoryError):
            repo.sync()


class TestChangedPaths:
    def test_unknown_revision_returns_none(self, upstream, checkout):
        upstream.write("web/docker-compose.yml")
        upstream.push()
        repo = GitRepository(checkout, upstream.url)
        repo.acquire()
        assert repo.changed_paths("0" * 40, repo.head()) is None


class TestHelpers:
    def test_short_range(self):
        result = SyncResult(updated=True, old_revision="a" * 40, new_revision="b" * 40)
        assert result.short_range == "aaaaaaa..bbbbbbb"

    def test_ssh_command_uses_deploy_key(self, tmp_path):
        key = tmp_path / "id_ed25519"
        key.write_text("key")
        env = GitRepository(tmp_path / "r", "git@github.com:o/r.git", deploy_key=key)._env()
        assert f"-i {key}" in env["GIT_SSH_COMMAND"]
        assert "IdentitiesOnly=yes" in env["GIT_SSH_COMMAND"]
        assert env["GIT_TERMINAL_PROMPT"] == "0"

    def test_no_ssh_command_without_key(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GIT_SSH_COMMAND", raising=False)
        env = GitRepository(tmp_path / "r", "https://example.com/r.git")._env()
        assert "GIT_SSH_COMMAND" not in env
