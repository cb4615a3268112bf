"""
Reconcile use case — the polling loop and one cycle of it.

A cycle is: sync repository → scan → plan → execute → persist → notify.
The first cycle after the repository has content deploys every stack;
later cycles only act when the branch moved, and then only on the stacks
the change touched.

Only repository and inventory-root failures abort a cycle. Anything
else that goes wrong is logged and the cycle completes. The next tick
is the retry.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from stackwatch.adapters.registry import AdapterRegistry
from stackwatch.adapters.vcs.git import GitRepository, RepositoryError
from stackwatch.core.config.loader import Settings
from stackwatch.core.engine.executor import CycleReport, apply_plan, generate_operation_id
from stackwatch.core.models.state import InventoryState
from stackwatch.core.persistence.audit import AuditEntry, AuditWriter
from stackwatch.core.persistence.state_file import load_state, save_state
from stackwatch.core.services.change_set import rebase_paths
from stackwatch.core.services.notifier import Notifier, NullNotifier, make_notifier
from stackwatch.core.services.planner import ReconciliationPlan, build_plan
from stackwatch.core.services.scanner import InventoryScanError, scan_inventory

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """What one cycle did."""

    operation_id: str = ""
    status: str = ""            # waiting, unchanged, ok, partial, failed, error
    revision: str | None = None
    changed_paths: list[str] | None = None
    plan: ReconciliationPlan | None = None
    report: CycleReport | None = None
    state_saved: bool = False
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        result: dict = {
            "operation_id": self.operation_id,
            "status": self.status,
            "revision": self.revision,
        }
        if self.error:
            result["error"] = self.error
        if self.changed_paths is not None:
            result["changed_paths"] = self.changed_paths
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        if self.report is not None:
            result["report"] = self.report.to_dict()
        result["state_saved"] = self.state_saved
        if self.warnings:
            result["warnings"] = self.warnings
        return result


class Reconciler:
    """Owns the baseline and runs reconciliation cycles.

    The reconciler is the only writer of the baseline; it replaces
    ``self.state`` with a new value at the end of every executed cycle.
    """

    def __init__(
        self,
        settings: Settings,
        repo: GitRepository,
        registry: AdapterRegistry,
        notifier: Notifier | None = None,
        state: InventoryState | None = None,
        ledger: AuditWriter | None = None,
        dry_run: bool = False,
    ):
        assert settings.state_file is not None
        self.settings = settings
        self.repo = repo
        self.registry = registry
        self.notifier = notifier or NullNotifier()
        self.state = state if state is not None else load_state(settings.state_file)
        self.ledger = ledger
        self.dry_run = dry_run
        self._has_content = False
        self._initial_done = False

    # ── One cycle ───────────────────────────────────────────────

    def run_cycle(self) -> CycleResult:
        """Run one full cycle. Never raises for cycle-level failures."""
        logger.info("Checking for updates...")
        try:
            return self._cycle()
        except (RepositoryError, InventoryScanError) as e:
            logger.error("Cycle aborted: %s", e)
            return CycleResult(status="error", error=str(e))

    def _cycle(self) -> CycleResult:
        if not self._has_content:
            if not self.repo.acquire():
                logger.info("Skipping deployment, waiting for repository content...")
                return CycleResult(status="waiting")
            self._has_content = True

        if not self._initial_done:
            logger.info("Repository has content, performing initial deployment...")
            result = self._reconcile(None, revision=self.repo.head(), force_full=True)
            self._initial_done = True
            return result

        # Compare against the last reconciled revision, not the checkout:
        # an aborted cycle or another process may already have moved HEAD.
        sync = self.repo.sync(since=self.state.last_revision)
        if not sync.updated:
            logger.info("No updates found")
            return CycleResult(status="unchanged", revision=sync.new_revision)

        logger.info("Repository updated (%s), deploying changed stacks...", sync.short_range)
        if not self.dry_run:
            self._notify("changes", self.notifier.notify_changes, sync.changed_paths or [])

        # An empty diff is treated like an unavailable one.
        changed = sync.changed_paths or None
        if changed is not None and self.settings.stacks_dir:
            changed = rebase_paths(changed, self.settings.stacks_dir)

        result = self._reconcile(changed, revision=sync.new_revision)
        result.changed_paths = sync.changed_paths
        return result

    def _reconcile(
        self,
        changed_paths: list[str] | None,
        revision: str | None,
        force_full: bool = False,
    ) -> CycleResult:
        stacks_root = self.settings.stacks_root
        current = scan_inventory(stacks_root)

        retry = self.state.units_to_retry() if self.settings.retry_failed else frozenset()
        plan = build_plan(
            changed_paths,
            current,
            self.state.baseline,
            force_full=force_full,
            retry_units=retry,
        )

        operation_id = generate_operation_id()
        report = apply_plan(
            plan,
            self.registry,
            stacks_root=str(stacks_root),
            operation_id=operation_id,
            dry_run=self.dry_run,
        )
        result = CycleResult(
            operation_id=operation_id,
            status=report.status,
            revision=revision,
            plan=plan,
            report=report,
        )

        if self.dry_run:
            logger.info("Dry run: %d action(s) planned, baseline unchanged", plan.total_actions)
            return result

        self.state = self.state.advance(
            current,
            report,
            revision=revision,
            retry_failed=self.settings.retry_failed,
        )
        self._persist(result)
        self._write_ledger(report, revision, result)
        self._notify("outcome", self.notifier.notify_outcome, report)

        logger.info(
            "Deployment complete: %d stack(s) deployed, %d removed, %d failed",
            len(plan.to_deploy),
            len(plan.to_remove),
            report.failed,
        )
        return result

    # ── Non-fatal side effects ──────────────────────────────────

    def _persist(self, result: CycleResult) -> None:
        assert self.settings.state_file is not None
        try:
            save_state(self.state, self.settings.state_file)
            result.state_saved = True
        except OSError as e:
            logger.warning("Failed to save state: %s", e)
            result.warnings.append(f"state not saved: {e}")

    def _write_ledger(self, report: CycleReport, revision: str | None, result: CycleResult) -> None:
        if self.ledger is None:
            return
        try:
            self.ledger.write(AuditEntry.from_report(report, revision=revision))
        except OSError as e:
            logger.warning("Failed to write cycle ledger: %s", e)
            result.warnings.append(f"ledger not written: {e}")

    def _notify(self, event: str, send: Callable, *args: object) -> None:
        try:
            send(*args)
        except Exception as e:
            logger.warning("Failed to send %s notification: %s", event, e)

    # ── Loop ────────────────────────────────────────────────────

    def run_forever(
        self,
        interval: float | None = None,
        max_cycles: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> int:
        """Run a cycle now, then one per ``interval`` seconds.

        Cycles never overlap. Ticks that fall inside a cycle that overran
        the interval are skipped, not queued.

        Returns:
            Number of cycles run (only reached when ``max_cycles`` is set).
        """
        interval = interval or self.settings.poll_interval
        cycles = 0
        while True:
            started = clock()
            self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                return cycles
            elapsed = clock() - started
            sleep(interval - (elapsed % interval))


def build_registry(settings: Settings, mock_mode: bool = False) -> AdapterRegistry:
    """Registry with the compose adapter configured from settings."""
    from stackwatch.adapters.containers.compose import ComposeAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(ComposeAdapter(timeout=settings.action_timeout))
    return registry


def build_reconciler(
    settings: Settings,
    dry_run: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    notifier: Notifier | None = None,
) -> Reconciler:
    """Wire a Reconciler from settings with the real collaborators."""
    assert settings.repo_path is not None and settings.state_file is not None

    if registry is None:
        registry = build_registry(settings, mock_mode=mock_mode)

    repo = GitRepository(
        path=settings.repo_path,
        url=settings.repo_url,
        branch=settings.branch,
        deploy_key=settings.deploy_key,
        timeout=settings.git_timeout,
    )

    logger.info("Repository: %s", settings.repo_url)
    logger.info("Local path: %s", settings.repo_path)
    logger.info("Poll interval: %ss", settings.poll_interval)

    return Reconciler(
        settings=settings,
        repo=repo,
        registry=registry,
        notifier=notifier or make_notifier(settings.webhook_url, timeout=settings.notify_timeout),
        ledger=AuditWriter(settings.ledger_file),
        dry_run=dry_run,
    )
