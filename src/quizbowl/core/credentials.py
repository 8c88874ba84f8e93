"""CredentialStore: the three persisted auth entries.

The session token, role and username survive restarts in a small JSON
file. Writes are atomic (tmp + rename); logout removes the entries.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"
_KEYS = ("authToken", "authRole", "authUsername")


@dataclass(frozen=True)
class Credentials:
    token: str = ""
    role: str = ""
    username: str = ""

    @property
    def is_admin(self) -> bool:
        return bool(self.token) and self.role == ADMIN_ROLE

    @property
    def signed_in(self) -> bool:
        return bool(self.token)


class CredentialStore:
    """Durable key/value file holding authToken, authRole, authUsername."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Credentials:
        try:
            with open(self.path) as f:
                raw = json.load(f)
        except FileNotFoundError:
            return Credentials()
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable credentials at %s: %s", self.path, exc)
            return Credentials()
        if not isinstance(raw, dict):
            return Credentials()
        return Credentials(
            token=str(raw.get("authToken") or ""),
            role=str(raw.get("authRole") or ""),
            username=str(raw.get("authUsername") or ""),
        )

    def save(self, creds: Credentials) -> None:
        """Write credentials atomically (tmp + rename)."""
        data = dict(zip(_KEYS, (creds.token, creds.role, creds.username)))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
