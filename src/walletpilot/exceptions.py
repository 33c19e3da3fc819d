"""walletpilot exception hierarchy.

Structural errors abort the command with a non-zero exit code.  Everything
else is reported as a ``{"success": false, ...}`` record and the process
exits cleanly.
"""

from __future__ import annotations


class WalletPilotError(Exception):
    """Base exception for all walletpilot errors."""


class StructuralError(WalletPilotError):
    """A caller or environment mistake that makes the command meaningless."""


class NoSessionError(StructuralError):
    """Raised when an operation needs a live browser session and there is none."""

    def __init__(self, message: str = "No browser context. Run wallet-navigate first.") -> None:
        super().__init__(message)


class InvalidArgumentError(StructuralError):
    """Raised for a missing or malformed command argument."""


class UnknownCommandError(StructuralError):
    """Raised when the requested command name is not recognised."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Unknown command: {command}")


class SessionError(StructuralError):
    """Raised when a fresh browser session cannot be launched.

    Launching a browser process is never retried automatically.
    """


class NavigationError(WalletPilotError):
    """Raised when navigation fails for a non-retryable network reason.

    Attributes:
        url: The URL that could not be loaded.
        reason: Short human-readable reason (e.g. ``"name not resolved"``).
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class WalletSetupError(WalletPilotError):
    """Raised when installing or onboarding the wallet extension fails."""
