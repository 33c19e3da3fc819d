"""walletpilot command-line interface."""
