"""Injected-provider helpers run inside the dapp page.

Each helper issues exactly one ``window.ethereum.request`` call and
returns its settled value, or its error message verbatim.  Nothing is
retried: a wallet that rejects or needs approval is the caller's concern
(typically a following ``wallet-approve``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from playwright.async_api import Error as PlaywrightError

from walletpilot.wallet.networks import Network

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

NO_PROVIDER = "No ethereum provider found"
NO_ACCOUNTS = "No accounts connected"

_SWITCH_CHAIN_JS = """
async (chainId) => {
  if (typeof window.ethereum === 'undefined') {
    return { success: false, error: 'No ethereum provider found' };
  }
  try {
    await window.ethereum.request({
      method: 'wallet_switchEthereumChain',
      params: [{ chainId }],
    });
    return { success: true };
  } catch (error) {
    return { success: false, error: error && error.message ? error.message : String(error) };
  }
}
"""

_ACCOUNTS_JS = """
async () => {
  if (typeof window.ethereum === 'undefined') {
    return { success: false, error: 'No ethereum provider found' };
  }
  try {
    const accounts = await window.ethereum.request({ method: 'eth_accounts' });
    if (accounts && accounts.length > 0) {
      return { success: true, address: accounts[0] };
    }
    return { success: false, error: 'No accounts connected' };
  } catch (error) {
    return { success: false, error: error && error.message ? error.message : String(error) };
  }
}
"""


async def switch_network(page: Page, network: Network) -> dict[str, Any]:
    """Ask the wallet to switch to *network* via ``wallet_switchEthereumChain``."""
    try:
        result = await page.evaluate(_SWITCH_CHAIN_JS, network.chain_id)
    except PlaywrightError as e:
        return {"success": False, "error": f"Failed to switch network: {str(e).splitlines()[0]}"}

    if result.get("success"):
        logger.info("Switched wallet to %s (%s)", network.name, network.chain_id)
        return {"success": True, "message": f"Switched to {network.name}", "chainId": network.chain_id}
    return {"success": False, "error": result.get("error") or NO_PROVIDER}


async def get_address(page: Page) -> dict[str, Any]:
    """Return the first connected account from ``eth_accounts``."""
    try:
        result = await page.evaluate(_ACCOUNTS_JS)
    except PlaywrightError as e:
        return {"success": False, "error": f"Failed to get address: {str(e).splitlines()[0]}"}

    if result.get("success"):
        return {"success": True, "address": result["address"]}
    return {"success": False, "error": result.get("error") or NO_ACCOUNTS}
