"""Credential sidecar: the wallet's private key and unlock password.

Both values live in a dotenv file outside the output directory (default
``tests/.test-env``) so cleaning test artifacts never loses them.  Only the
two named fields are ever read or written, and neither value is logged or
included in any result record.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values, set_key

from walletpilot.exceptions import WalletSetupError

logger = logging.getLogger(__name__)

PRIVATE_KEY_VAR = "WALLET_PRIVATE_KEY"
PASSWORD_VAR = "WALLET_PASSWORD"

PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")
PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"
PASSWORD_LENGTH = 16


def is_valid_private_key(value: str) -> bool:
    return bool(PRIVATE_KEY_PATTERN.match(value.strip()))


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random password drawn from letters, digits and ``!@#$%^&*``."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class WalletCredentials:
    """Secrets for one wallet-init run; reprs never show the values."""

    private_key: str = field(repr=False)
    password: str = field(repr=False)
    password_generated: bool = False


class CredentialStore:
    """Reads and updates the dotenv credential file.

    Args:
        path: Location of the dotenv file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> dict[str, str | None]:
        """Return the two known fields; missing ones are ``None``."""
        if not self.path.is_file():
            return {PRIVATE_KEY_VAR: None, PASSWORD_VAR: None}
        values = dotenv_values(self.path)
        return {
            PRIVATE_KEY_VAR: values.get(PRIVATE_KEY_VAR) or None,
            PASSWORD_VAR: values.get(PASSWORD_VAR) or None,
        }

    def save_password(self, password: str) -> None:
        """Persist *password* under ``WALLET_PASSWORD``, creating the file if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)
        set_key(str(self.path), PASSWORD_VAR, password)
        logger.info("Wallet password stored in %s", self.path)

    def load(self) -> WalletCredentials:
        """Return validated credentials, generating and saving a password if absent.

        Raises:
            WalletSetupError: If the private key is missing or malformed.
        """
        values = self.read()
        private_key = values[PRIVATE_KEY_VAR]
        if not private_key:
            raise WalletSetupError(f"{PRIVATE_KEY_VAR} is not set in {self.path}")
        if not is_valid_private_key(private_key):
            raise WalletSetupError("Invalid private key format. Must be 64 hex characters (with optional 0x prefix)")

        password = values[PASSWORD_VAR]
        if password:
            return WalletCredentials(private_key=private_key.strip(), password=password)

        password = generate_password()
        self.save_password(password)
        return WalletCredentials(private_key=private_key.strip(), password=password, password_generated=True)
