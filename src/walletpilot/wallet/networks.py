"""Fixed catalog of EVM networks addressable by human-readable name."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Network:
    """An EVM network as passed to ``wallet_switchEthereumChain``."""

    key: str
    chain_id: str
    name: str


NETWORKS: dict[str, Network] = {
    n.key: n
    for n in (
        Network("ethereum", "0x1", "Ethereum Mainnet"),
        Network("polygon", "0x89", "Polygon"),
        Network("arbitrum", "0xa4b1", "Arbitrum One"),
        Network("optimism", "0xa", "Optimism"),
        Network("base", "0x2105", "Base"),
        Network("bsc", "0x38", "BNB Smart Chain"),
        Network("avalanche", "0xa86a", "Avalanche C-Chain"),
        Network("goerli", "0x5", "Goerli Testnet"),
        Network("sepolia", "0xaa36a7", "Sepolia Testnet"),
    )
}

DEFAULT_NETWORK = "ethereum"


def get_network(name: str) -> Network | None:
    """Look up a network by case-insensitive key; ``None`` if unknown."""
    return NETWORKS.get(name.strip().lower())
