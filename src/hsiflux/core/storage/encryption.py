"""Fernet-based encryption for baseline state at rest.

A baseline blob holds weeks of one person's HRV, resting heart rate and
sleep history, so it is sealed before it is written to SQLite. Only
bookkeeping (store version, sample count) stays in the clear.

Keys can be rotated: the cipher seals with the current key and still opens
tokens sealed with any retired key (``MultiFernet``).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a state blob cannot be sealed or opened."""


def _load_key(key: str) -> Fernet:
    if not key or not key.strip():
        raise EncryptionError("Encryption key must not be empty")
    try:
        return Fernet(key.strip().encode())
    except (TypeError, ValueError) as exc:
        raise EncryptionError(f"Invalid encryption key: {exc}") from exc


class StateCipher:
    """Seals baseline state dicts into Fernet tokens and opens them again.

    Usage::

        cipher = StateCipher(current_key, retired_keys=[old_key])
        token = cipher.seal({"version": 2, "hrv_values": [61.0]})
        state = cipher.open(token)
    """

    def __init__(self, key: str, retired_keys: Iterable[str] = ()) -> None:
        retired = [_load_key(k) for k in retired_keys if k.strip()]
        self._fernet = MultiFernet([_load_key(key), *retired])
        self.retired_key_count = len(retired)

    def seal(self, state: Any) -> str:
        """Serialize to compact JSON and encrypt with the current key."""
        if state is None:
            return ""
        try:
            plaintext = json.dumps(state, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode()).decode()

    def open(self, token: str) -> Any:
        """Decrypt with any known key and parse the JSON back."""
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode())
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    def rotate(self, token: str) -> str:
        """Re-seal a token under the current key.

        Tokens sealed with a retired key come back sealed with the current
        one, so the retired key can be dropped afterwards.
        """
        try:
            return self._fernet.rotate(token.encode()).decode()
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode()
