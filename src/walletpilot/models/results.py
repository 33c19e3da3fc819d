"""Result models produced by the action driver and the approval flow.

Every command ultimately emits one JSON record; these classes own the
mapping from Python attributes to the camelCase keys the calling agent
reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from walletpilot.models.states import ApprovalState


class ActionKind(str, Enum):
    """UI actions the driver can perform against a resolved control."""

    CLICK = "click"
    FILL = "fill"


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one ``ActionDriver.perform_action`` call.

    Attributes:
        success: True when the action landed, or the surface was found closed.
        action: Which kind of action was attempted.
        strategy: Locator strategy of the matching intent, if any.
        selector: Rendered selector of the matching intent, if any.
        attempts: Number of retry rounds consumed.
        surface_closed: True when success is implied by the surface closing.
        forced: True when the plain click failed and a forced click landed.
        error: Last error text seen, for diagnostics.
        coordinates: Page coordinates clicked when no intent matched.
    """

    success: bool
    action: ActionKind = ActionKind.CLICK
    strategy: str | None = None
    selector: str | None = None
    attempts: int = 0
    surface_closed: bool = False
    forced: bool = False
    error: str = ""
    coordinates: tuple[int, int] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict suitable for JSON output."""
        data: dict[str, Any] = {
            "success": self.success,
            "action": self.action.value,
            "strategy": self.strategy,
            "selector": self.selector,
            "attempts": self.attempts,
            "surfaceClosed": self.surface_closed,
        }
        if self.forced:
            data["forced"] = True
        if self.coordinates is not None:
            data["coordinates"] = {"x": self.coordinates[0], "y": self.coordinates[1]}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ApprovalOutcome:
    """Accumulated state of one approval run; discarded after reporting.

    ``action`` is ``"approve"`` or ``"reject"`` and only changes which key
    the affirmative flag is reported under.
    """

    state: ApprovalState = ApprovalState.AWAITING_POPUP
    action: str = "approve"
    url: str = ""
    steps: list[ActionResult] = field(default_factory=list)
    screenshots: list[str] = field(default_factory=list)
    popup_found: bool = False
    popup_closed: bool = False
    details: dict[str, Any] | None = None
    test_failed: bool = False
    error: str = ""
    error_text: str = ""
    hint: str = ""
    page_count: int | None = None

    @property
    def clicked(self) -> bool:
        return any(step.success and not step.surface_closed for step in self.steps)

    @property
    def approved(self) -> bool:
        return self.clicked or self.popup_closed

    @property
    def success(self) -> bool:
        # Only a missing or foreign popup (or a failing transaction) fails the flow; click misses never do.
        return self.popup_found and self.state != ApprovalState.NOT_EXTENSION and not self.test_failed

    @property
    def message(self) -> str:
        if self.action == "reject":
            return "Wallet popup rejected"
        return "Wallet approval completed"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the record shape the calling agent consumes."""
        if not self.success:
            data: dict[str, Any] = {"success": False, "error": self.error, "state": self.state.value}
            if self.hint:
                data["hint"] = self.hint
            if self.url:
                data["url"] = self.url
            if self.page_count is not None:
                data["pageCount"] = self.page_count
            if self.test_failed:
                data["action"] = "rejected"
                data["errorText"] = self.error_text
                data["testResult"] = "FAIL"
            if self.details:
                data["details"] = self.details
            if self.screenshots:
                data["screenshots"] = self.screenshots
            return data

        data = {
            "success": True,
            "message": self.message,
            "rejected" if self.action == "reject" else "approved": self.approved,
            "popupClosed": self.popup_closed,
            "state": self.state.value,
            "url": self.url,
            "steps": [step.to_dict() for step in self.steps],
            "screenshots": self.screenshots,
        }
        if self.details:
            data["details"] = self.details
        return data
