"""Durable storage for the Session and the transient PendingAuth record.

Each record lives in its own JSON file under the configured state directory,
keyed by a fixed file name.
"""
from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from ..models import PendingAuth, Session

logger = logging.getLogger(__name__)

SESSION_KEY = "session.json"
PENDING_AUTH_KEY = "pending_auth.json"


class TokenStore:
    def __init__(self, state_dir: str | Path):
        self.state_dir = Path(state_dir)

    @property
    def session_path(self) -> Path:
        return self.state_dir / SESSION_KEY

    @property
    def pending_path(self) -> Path:
        return self.state_dir / PENDING_AUTH_KEY

    # ---------------- Raw helpers -----------------
    def _read(self, path: Path) -> Dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            with open(path, 'r', encoding='utf-8') as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state file {path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed state file {path}")
            return None
        logger.debug(f"Loaded state from {path}")
        return data

    def _write(self, path: Path, data: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + '.tmp')
        with open(tmp, 'w', encoding='utf-8') as fh:
            json.dump(data, fh)
        os.replace(tmp, path)
        logger.debug(f"Saved state to {path.resolve()}")

    def _remove(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return

    # ---------------- Session -----------------
    def load_session(self) -> Session | None:
        data = self._read(self.session_path)
        if not data or not data.get('access_token'):
            return None
        return Session.from_dict(data)

    def save_session(self, session: Session) -> None:
        self._write(self.session_path, session.to_dict())

    def clear_session(self) -> None:
        self._remove(self.session_path)

    # ---------------- PendingAuth -----------------
    def load_pending(self) -> PendingAuth | None:
        data = self._read(self.pending_path)
        if not data or not data.get('code_verifier'):
            return None
        return PendingAuth.from_dict(data)

    def save_pending(self, pending: PendingAuth) -> None:
        self._write(self.pending_path, pending.to_dict())

    def clear_pending(self) -> None:
        self._remove(self.pending_path)


__all__ = ["TokenStore", "SESSION_KEY", "PENDING_AUTH_KEY"]
