# src/tradedesk/session/local_state.py
from __future__ import annotations

import json
import logging
import secrets
import threading
from pathlib import Path
from typing import Optional

log = logging.getLogger("tradedesk.session")

WALLET_KEY = "walletAddress"
AUTH_KEY = "isAuthenticated"
SELECTED_BALANCE_KEY = "selectedBalance"


class LocalState:
    """
    Small persistent key-value store for the local session
    (wallet address, auth flag, pending plan balance).

    Values are strings; the file is rewritten on every change.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError):
            log.warning("[SESSION] unreadable state file %s, starting empty", self.path)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value) -> None:
        with self._lock:
            self._data[key] = str(value)
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()

    # ------------------------------------------------------------
    # auth helpers
    # ------------------------------------------------------------
    def wallet_address(self) -> Optional[str]:
        return self.get(WALLET_KEY)

    def is_authenticated(self) -> bool:
        return bool(self.get(WALLET_KEY)) and self.get(AUTH_KEY) == "true"

    def logout(self) -> None:
        self.remove(WALLET_KEY)
        self.remove(AUTH_KEY)


def random_wallet_address() -> str:
    return "0x" + secrets.token_hex(20)


def mock_wallet_login(state: LocalState) -> str:
    """Stores a random wallet address and marks the session authenticated."""
    address = random_wallet_address()
    state.set(WALLET_KEY, address)
    state.set(AUTH_KEY, "true")
    log.info("[SESSION] mock wallet login %s", address)
    return address
