"""Wallet-side helpers: network catalog, provider calls, onboarding and secrets.

Everything here runs *through* a ``BrowserSession``; none of it owns a
browser on its own.
"""
