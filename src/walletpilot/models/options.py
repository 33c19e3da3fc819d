"""Validated per-command options.

The CLI collects flags into a ``CommandOptions`` instance so every layer
below it works with a closed, typed set of options instead of a free-form
dict.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from walletpilot.wallet.networks import DEFAULT_NETWORK, NETWORKS, get_network


class CommandOptions(BaseModel):
    """Options shared by every command that touches the browser."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    headless: bool = True
    wallet: bool = False
    keep_open: bool = False
    timeout_ms: int | None = Field(default=None, gt=0)
    network: str = DEFAULT_NETWORK
    screenshot: str | None = None

    @field_validator("network")
    @classmethod
    def _known_network(cls, v: str) -> str:
        network = get_network(v)
        if network is None:
            raise ValueError(f"Unknown network: {v}. Available: {', '.join(NETWORKS)}")
        return network.key
