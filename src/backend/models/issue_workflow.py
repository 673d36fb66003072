"""
Issue status workflow.

The transition table is data: adding a status means adding an entry here,
the transition logic in the issue service does not change.
"""

from models.cosmos_documents import IssueStatus

ALLOWED_TRANSITIONS: dict[IssueStatus, frozenset[IssueStatus]] = {
    IssueStatus.PENDING: frozenset({IssueStatus.IN_PROGRESS, IssueStatus.WITHDRAWN}),
    IssueStatus.IN_PROGRESS: frozenset({IssueStatus.RESOLVED, IssueStatus.PENDING}),
    IssueStatus.RESOLVED: frozenset(),
    IssueStatus.WITHDRAWN: frozenset(),
}

INITIAL_STATUS = IssueStatus.PENDING
INITIAL_COMMENT = "Issue reported"
WITHDRAWAL_COMMENT = "Issue withdrawn by reporter"


def allowed_next(current: IssueStatus | str) -> frozenset[IssueStatus]:
    """Statuses reachable from ``current`` in one step."""
    return ALLOWED_TRANSITIONS.get(IssueStatus(current), frozenset())


def can_transition(current: IssueStatus | str, target: IssueStatus | str) -> bool:
    return IssueStatus(target) in allowed_next(current)


def is_terminal(status: IssueStatus | str) -> bool:
    return not allowed_next(status)
