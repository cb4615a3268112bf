"""
Git collaborator — keep a local checkout in step with a remote branch.

Uses the git CLI. The reconciler needs only four things from it: an
initial clone (which may legitimately find an empty remote), the current
revision, a sync that reports whether the revision moved, and the list
of paths changed between two revisions.

The local checkout is treated as disposable: every sync discards local
edits and hard-resets to the remote branch.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120

# Clone failures that mean "nothing pushed yet", not "broken".
_EMPTY_REMOTE_MARKERS = (
    "remote repository is empty",
    "cloned an empty repository",
    "not found in upstream origin",
    "couldn't find remote ref",
)


def _is_empty_remote(stderr: str) -> bool:
    return any(marker in stderr for marker in _EMPTY_REMOTE_MARKERS)


class RepositoryError(Exception):
    """Raised when a git operation (or its credentials) fails."""


@dataclass
class SyncResult:
    """What a sync did to the local checkout."""

    updated: bool
    old_revision: str
    new_revision: str
    changed_paths: list[str] | None = None     # None: diff unavailable

    @property
    def short_range(self) -> str:
        return f"{self.old_revision[:7]}..{self.new_revision[:7]}"


class GitRepository:
    """A local clone of one branch of a remote repository."""

    def __init__(
        self,
        path: Path,
        url: str,
        branch: str = "main",
        deploy_key: Path | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.path = Path(path)
        self.url = url
        self.branch = branch
        self.deploy_key = Path(deploy_key) if deploy_key else None
        self.timeout = timeout

    @property
    def remote_ref(self) -> str:
        return f"refs/remotes/origin/{self.branch}"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def exists(self) -> bool:
        """Whether a checkout is already present at ``path``."""
        return (self.path / ".git").exists()

    # ── Operations ──────────────────────────────────────────────

    def acquire(self) -> bool:
        """Open the existing checkout or clone it.

        Returns:
            True when the checkout has content, False when the remote is
            empty (or the branch has not been pushed yet).

        Raises:
            RepositoryError: On credential or clone failures.
        """
        self._check_credentials()

        if self.exists():
            if self._has_commits():
                logger.info("Repository already exists, using existing clone")
                return True
            return self._fetch_first_content()

        logger.info("Cloning %s (branch %s) into %s", self.url, self.branch, self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        result = self._git(
            "clone", "--branch", self.branch, "--single-branch", self.url, str(self.path),
            cwd=self.path.parent,
            check=False,
        )
        if result.returncode != 0:
            stderr = result.stderr.strip()
            if _is_empty_remote(stderr):
                logger.info("Repository is empty, will wait for content to be pushed")
                return False
            raise RepositoryError(f"Failed to clone {self.url}: {stderr}")

        # Some git versions clone an empty remote successfully.
        if not self._has_commits():
            logger.info("Repository is empty, will wait for content to be pushed")
            return False

        logger.info("Repository cloned successfully")
        return True

    def _fetch_first_content(self) -> bool:
        """Populate a checkout that was cloned while the remote was empty."""
        result = self._git(
            "fetch", "origin", f"+refs/heads/{self.branch}:{self.remote_ref}",
            check=False,
        )
        if result.returncode != 0:
            stderr = result.stderr.strip()
            if _is_empty_remote(stderr):
                return False
            raise RepositoryError(f"Failed to fetch {self.url}: {stderr}")

        self._git("checkout", "-q", "-B", self.branch, self.remote_ref)
        logger.info("Repository received its first content")
        return True

    def head(self) -> str:
        """Current revision of the checkout."""
        return self._git("rev-parse", "HEAD").stdout.strip()

    def sync(self, since: str | None = None) -> SyncResult:
        """Discard local edits, fetch, and move to the remote branch head.

        Args:
            since: Revision the caller last acted on. The result compares
                the remote head against it rather than against the checkout,
                so a move the caller never acted on is still reported.
                Defaults to the checkout's HEAD before the fetch.

        Raises:
            RepositoryError: If any step other than the diff fails.
        """
        self._check_credentials()
        before = self.head()

        self._git("reset", "--hard")
        self._git("fetch", "origin", f"+refs/heads/{self.branch}:{self.remote_ref}")
        remote = self._git("rev-parse", self.remote_ref).stdout.strip()

        if remote != before:
            self._git("reset", "--hard", remote)
            logger.info("Updated from %s to %s", before[:7], remote[:7])

        base = since or before
        if remote == base:
            return SyncResult(updated=False, old_revision=base, new_revision=remote, changed_paths=[])

        return SyncResult(
            updated=True,
            old_revision=base,
            new_revision=remote,
            changed_paths=self.changed_paths(base, remote),
        )

    def changed_paths(self, old: str, new: str) -> list[str] | None:
        """Paths changed between two revisions, relative to the repo root.

        Renames are reported as a deletion plus an addition, so both the
        old and the new location appear. Returns None (and logs) when the
        diff cannot be computed.
        """
        try:
            result = self._git("diff", "--name-only", "--no-renames", "-z", old, new)
        except RepositoryError as e:
            logger.warning("Failed to get changed files: %s", e)
            return None
        return [p for p in result.stdout.split("\0") if p]

    # ── Helpers ─────────────────────────────────────────────────

    def _has_commits(self) -> bool:
        return self._git("rev-parse", "--verify", "-q", "HEAD", check=False).returncode == 0

    def _check_credentials(self) -> None:
        if self.deploy_key is not None and not self.deploy_key.is_file():
            raise RepositoryError(f"Failed to setup SSH auth: deploy key not found at {self.deploy_key}")

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        if self.deploy_key is not None:
            env["GIT_SSH_COMMAND"] = (
                f"ssh -i {shlex.quote(str(self.deploy_key))} "
                "-o IdentitiesOnly=yes -o StrictHostKeyChecking=accept-new"
            )
        return env

    def _git(
        self,
        *args: str,
        cwd: Path | None = None,
        check: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command; raise RepositoryError on failure when ``check``."""
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(cwd or self.path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._env(),
            )
        except subprocess.TimeoutExpired as e:
            raise RepositoryError(f"git {args[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise RepositoryError(f"Cannot run git: {e}") from e

        if check and result.returncode != 0:
            raise RepositoryError(result.stderr.strip() or f"git {args[0]} failed")
        return result
