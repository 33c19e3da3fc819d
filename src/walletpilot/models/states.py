"""State enums for the browser session and the popup approval flow."""

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle of the single process-wide browser session."""

    ABSENT = "absent"
    LAUNCHING = "launching"
    ATTACHED = "attached"
    CLOSED = "closed"


class ApprovalState(str, Enum):
    """States an approval flow passes through while driving one popup."""

    AWAITING_POPUP = "awaiting_popup"
    POPUP_OPENED = "popup_opened"
    FIRST_APPROVAL_ATTEMPTED = "first_approval_attempted"
    ADDITIONAL_APPROVAL_CHECK = "additional_approval_check"
    AWAITING_CLOSE = "awaiting_close"
    CLOSED = "closed"
    TIMED_OUT = "timed_out"
    NOT_EXTENSION = "not_extension"


# Terminal states; CLOSED is reachable from every non-terminal state.
TERMINAL_STATES = {ApprovalState.CLOSED, ApprovalState.TIMED_OUT, ApprovalState.NOT_EXTENSION}

# Normal transitions (CLOSED is always valid in addition to these)
STATE_TRANSITIONS: dict[ApprovalState, list[ApprovalState]] = {
    ApprovalState.AWAITING_POPUP: [ApprovalState.POPUP_OPENED, ApprovalState.TIMED_OUT],
    ApprovalState.POPUP_OPENED: [ApprovalState.FIRST_APPROVAL_ATTEMPTED, ApprovalState.NOT_EXTENSION],
    ApprovalState.FIRST_APPROVAL_ATTEMPTED: [ApprovalState.ADDITIONAL_APPROVAL_CHECK],
    ApprovalState.ADDITIONAL_APPROVAL_CHECK: [ApprovalState.AWAITING_CLOSE],
    ApprovalState.AWAITING_CLOSE: [ApprovalState.TIMED_OUT],
}


def can_transition(current: ApprovalState, target: ApprovalState) -> bool:
    """Return True if *target* is a legal next state from *current*."""
    if current in TERMINAL_STATES:
        return False
    if target == ApprovalState.CLOSED and current != ApprovalState.AWAITING_POPUP:
        return True
    return target in STATE_TRANSITIONS.get(current, [])
