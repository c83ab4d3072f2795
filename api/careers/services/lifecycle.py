"""Status graphs for applications, positions and catalog records.

Every caller that needs to know whether a status change is legal goes through the
tables in this module: the staff quick-action list, the application transition
guard and the position publishing flow.
"""

from __future__ import annotations

APPLICATION_STATUSES = (
    "submitted",
    "reviewing",
    "interview_scheduled",
    "interview_completed",
    "offered",
    "accepted",
    "rejected",
    "withdrawn",
)

APPLICATION_TRANSITIONS: dict[str, frozenset[str]] = {
    "submitted": frozenset({"reviewing", "rejected"}),
    "reviewing": frozenset({"interview_scheduled", "rejected"}),
    "interview_scheduled": frozenset({"rejected"}),
    "interview_completed": frozenset({"offered", "rejected"}),
    "offered": frozenset({"accepted", "rejected"}),
    "accepted": frozenset(),
    "rejected": frozenset(),
    "withdrawn": frozenset(),
}

DELETABLE_APPLICATION_STATUSES = frozenset({"rejected"})

# Quick actions are listed forward-first; rejection is always offered last.
_ACTION_ORDER = {status: index for index, status in enumerate(APPLICATION_STATUSES)}
_ACTION_ORDER["rejected"] = len(APPLICATION_STATUSES)

POSITION_STATUSES = ("draft", "open", "closed", "filled")

POSITION_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"open"}),
    "open": frozenset({"closed", "filled"}),
    "closed": frozenset(),
    "filled": frozenset(),
}

RECORD_LIFECYCLES = ("active", "retired")

RECORD_LIFECYCLE_TRANSITIONS: dict[str, frozenset[str]] = {
    "active": frozenset({"retired"}),
    "retired": frozenset({"active"}),
}


class TransitionNotAllowedError(Exception):
    def __init__(self, subject: str, from_state: str, to_state: str) -> None:
        super().__init__(f"invalid {subject} transition: {from_state} -> {to_state}")
        self.subject = subject
        self.from_state = from_state
        self.to_state = to_state


def allowed_application_transitions(status: str) -> frozenset[str]:
    return APPLICATION_TRANSITIONS.get(status, frozenset())


def is_terminal_application_status(status: str) -> bool:
    return not allowed_application_transitions(status)


def can_delete_application(status: str) -> bool:
    return status in DELETABLE_APPLICATION_STATUSES


def available_application_actions(status: str) -> list[str]:
    """Quick actions offered to staff for an application in ``status``.

    Built from the same table the transition guard uses, so anything listed here is
    accepted by :func:`ensure_application_transition` and nothing else is.
    """
    actions = sorted(allowed_application_transitions(status), key=_ACTION_ORDER.__getitem__)
    if can_delete_application(status):
        actions.append("delete")
    return actions


def ensure_application_transition(from_status: str, to_status: str) -> None:
    if to_status not in allowed_application_transitions(from_status):
        raise TransitionNotAllowedError("application status", from_status, to_status)


def ensure_position_transition(from_status: str, to_status: str) -> None:
    if to_status not in POSITION_TRANSITIONS.get(from_status, frozenset()):
        raise TransitionNotAllowedError("position status", from_status, to_status)


def ensure_lifecycle_transition(from_state: str, to_state: str) -> None:
    if to_state not in RECORD_LIFECYCLE_TRANSITIONS.get(from_state, frozenset()):
        raise TransitionNotAllowedError("lifecycle", from_state, to_state)


def is_catalog_visible(*, status: str, lifecycle: str) -> bool:
    return status == "open" and lifecycle == "active"
