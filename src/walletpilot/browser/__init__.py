"""Browser orchestration (Playwright, async API).

``session`` owns the single live browser; ``extension`` resolves the wallet
extension's runtime id; ``popup`` races for the extension's confirmation
surface; ``locators`` and ``actions`` drive controls through ordered
fallback intents; ``approval`` chains them into the multi-step approval flow.
"""
