"""
Notifier — tell a chat channel what the reconciler saw and did.

Two events:
    changes   the repository moved; lists the changed paths
    outcome   a cycle executed; lists per-unit successes and failures

``WebhookNotifier`` posts Discord-style embeds. Delivery problems raise
``NotificationError``; the reconciler logs them and carries on, so a
broken webhook never affects reconciliation.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from stackwatch import __version__
from stackwatch.core.engine.executor import CycleReport
from stackwatch.core.models.action import ActionKind

logger = logging.getLogger(__name__)

FIELD_LIMIT = 1000

COLOR_INFO = 3447003        # blue
COLOR_SUCCESS = 3066993     # green
COLOR_FAILURE = 15158332    # red
COLOR_PARTIAL = 16776960    # yellow


class NotificationError(Exception):
    """Raised when a notification cannot be delivered."""


class Notifier:
    """Base notifier: receives events and does nothing with them."""

    def notify_changes(self, changed_paths: Sequence[str]) -> None:
        """The repository moved; ``changed_paths`` is what the diff listed."""

    def notify_outcome(self, report: CycleReport) -> None:
        """A cycle executed; ``report`` holds one outcome per unit."""


class NullNotifier(Notifier):
    """Used when no notification endpoint is configured."""


def _truncate(text: str, limit: int = FIELD_LIMIT) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def _code_block(lines: Sequence[str]) -> str:
    return "```\n" + _truncate("\n".join(lines)) + "\n```"


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _outcome_label(unit: str, action: ActionKind) -> str:
    return f"{unit} (removed)" if action == ActionKind.REMOVE else unit


def build_changes_embed(changed_paths: Sequence[str]) -> dict[str, Any]:
    """Embed announcing a repository update."""
    return {
        "title": "🔄 Update Detected",
        "description": "New changes detected in repository",
        "color": COLOR_INFO,
        "fields": [
            {
                "name": "Changed Files",
                "value": _code_block(changed_paths or ["(file list unavailable)"]),
            }
        ],
        "timestamp": _timestamp(),
    }


def build_outcome_embed(report: CycleReport) -> dict[str, Any]:
    """Embed summarizing a cycle's per-unit results."""
    successes = []
    failures = []
    for (unit, action), outcome in sorted(report.outcomes.items()):
        label = _outcome_label(unit, action)
        if outcome.ok:
            successes.append(label)
        else:
            failures.append(f"{label}: {outcome.error}")

    if not failures:
        title, color = "✅ Deployment Successful", COLOR_SUCCESS
        description = "All stacks deployed successfully"
    elif not successes:
        title, color = "❌ Deployment Failed", COLOR_FAILURE
        description = "All stacks failed to deploy"
    else:
        title, color = "⚠️ Deployment Partially Successful", COLOR_PARTIAL
        description = "Some stacks failed to deploy"

    fields = []
    if successes:
        fields.append({"name": f"✅ Success ({len(successes)})", "value": _code_block(successes)})
    if failures:
        fields.append({"name": f"❌ Failed ({len(failures)})", "value": _code_block(failures)})

    return {
        "title": title,
        "description": description,
        "color": color,
        "fields": fields,
        "timestamp": _timestamp(),
    }


class WebhookNotifier(Notifier):
    """Posts embeds to a Discord-compatible webhook URL."""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def notify_changes(self, changed_paths: Sequence[str]) -> None:
        self.send({"embeds": [build_changes_embed(changed_paths)]})

    def notify_outcome(self, report: CycleReport) -> None:
        if report.total == 0:
            return
        self.send({"embeds": [build_outcome_embed(report)]})

    def send(self, payload: dict[str, Any]) -> None:
        """POST a JSON payload.

        Raises:
            NotificationError: On network errors, timeouts, or non-2xx
                responses.
        """
        body = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(
            self.url,
            data=body,
            headers={
                "Content-Type": "application/json",
                "User-Agent": f"stackwatch/{__version__}",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status = resp.status
        except urllib.error.HTTPError as e:
            raise NotificationError(f"Webhook returned non-2xx status: {e.code}") from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise NotificationError(f"Failed to send webhook: {e}") from e

        if status < 200 or status >= 300:
            raise NotificationError(f"Webhook returned non-2xx status: {status}")
        logger.debug("Webhook sent successfully")


def make_notifier(url: str | None, timeout: float = 10.0) -> Notifier:
    """WebhookNotifier for ``url``, or a NullNotifier when unset."""
    if url:
        return WebhookNotifier(url, timeout=timeout)
    return NullNotifier()
