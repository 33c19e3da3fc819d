"""walletpilot: browser-session and wallet-popup orchestration for unattended dApp testing."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("walletpilot")
except PackageNotFoundError:
    __version__ = "0.0.0"
