# Overview: Persists the terminal's bearer session between restarts.

from __future__ import annotations

import json
import os
from dataclasses import dataclass, asdict
from pathlib import Path

from cafepos.time_utils import utcnow, parse_iso_datetime


@dataclass
class StoredSession:
    token: str
    role: str
    expires_at: str
    access_code: str | None = None
    user: dict | None = None

    def is_expired(self) -> bool:
        expires = parse_iso_datetime(self.expires_at)
        return expires is None or utcnow() >= expires


class SessionStore:
    """
    JSON file holding at most one session.

    load() never returns an expired session; a corrupt file reads as empty.
    The server stays the authority: the terminal re-validates on start-up.
    """

    def __init__(self, path):
        self.path = Path(path)

    def save(self, session: StoredSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(asdict(session), f)
        os.replace(tmp, self.path)

    def load(self) -> StoredSession | None:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            session = StoredSession(**data)
            expired = session.is_expired()
        except FileNotFoundError:
            return None
        except (ValueError, TypeError, AttributeError):
            return None
        return None if expired else session

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
