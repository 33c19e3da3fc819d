"""Data models shared across the session, driver and approval layers."""
