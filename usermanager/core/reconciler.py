"""Group membership reconciliation.

Given a user's current groups and the desired target set, compute the
minimal add/remove delta and apply it through the provider one call at a time.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

logger = logging.getLogger(__name__)


class GroupMembership(Protocol):
    def add_user_to_group(self, username: str, group_name: str) -> None: ...

    def remove_user_from_group(self, username: str, group_name: str) -> None: ...


@dataclass(frozen=True)
class GroupDelta:
    """Groups to add and remove to reach a desired membership."""
    to_add: frozenset[str] = frozenset()
    to_remove: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove

    def apply_to(self, current: Iterable[str]) -> frozenset[str]:
        """Return the membership that results from applying this delta."""
        return (frozenset(current) | self.to_add) - self.to_remove


def reconcile_groups(current: Iterable[str], desired: Iterable[str]) -> GroupDelta:
    """Compute the delta that turns ``current`` into ``desired``.

    Inputs are treated as sets; duplicates collapse. The two sides of the
    result are disjoint.

    >>> reconcile_groups({"A", "B"}, {"B", "C"})
    GroupDelta(to_add=frozenset({'C'}), to_remove=frozenset({'A'}))
    """
    current_set = frozenset(current)
    desired_set = frozenset(desired)
    return GroupDelta(
        to_add=desired_set - current_set,
        to_remove=current_set - desired_set,
    )


@dataclass
class GroupDeltaReport:
    """Progress of an applied delta."""
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


class GroupReconciliationError(Exception):
    """A membership call failed part-way through applying a delta.

    Already-applied changes are not rolled back. ``report`` lists what
    succeeded, ``failed`` names the operation that raised and ``pending``
    lists operations that were never attempted.
    """

    def __init__(
        self,
        username: str,
        report: GroupDeltaReport,
        failed: str,
        pending: list[str],
        cause: Optional[BaseException] = None,
    ):
        self.username = username
        self.report = report
        self.failed = failed
        self.pending = pending
        self.cause = cause
        detail = getattr(cause, "message", None) or str(cause or "unknown error")
        super().__init__(f"Failed to {failed} for user {username}: {detail}")

    def to_dict(self) -> dict:
        return {
            "message": str(self),
            "username": self.username,
            "added": list(self.report.added),
            "removed": list(self.report.removed),
            "failed": self.failed,
            "pending": list(self.pending),
        }


def apply_group_delta(username: str, delta: GroupDelta, groups: GroupMembership) -> GroupDeltaReport:
    """Apply ``delta`` for ``username``: adds first, then removes, each sorted.

    Raises:
        GroupReconciliationError: On the first failing call
    """
    operations = [("add", name) for name in sorted(delta.to_add)]
    operations += [("remove", name) for name in sorted(delta.to_remove)]

    report = GroupDeltaReport()
    for index, (action, name) in enumerate(operations):
        try:
            if action == "add":
                groups.add_user_to_group(username, name)
            else:
                groups.remove_user_from_group(username, name)
        except Exception as exc:
            pending = [f"{a} {n}" for a, n in operations[index + 1:]]
            logger.warning(
                "Group reconciliation for %s stopped at '%s %s' (%d pending): %s",
                username, action, name, len(pending), exc,
            )
            raise GroupReconciliationError(username, report, f"{action} {name}", pending, exc) from exc
        if action == "add":
            report.added.append(name)
        else:
            report.removed.append(name)

    if not delta.is_empty:
        logger.info("Reconciled groups for %s: +%s -%s", username, report.added, report.removed)
    return report
