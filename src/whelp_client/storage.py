"""Durable credential slots persisted between client runs."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .credentials import Credential
from .errors import InvalidCredentialShape


logger = logging.getLogger(__name__)

ACCESS_SLOT = "access_token"
REFRESH_SLOT = "refresh_token"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialStore:
    """Persist a credential as two named slots with independent expiry.

    The ``access_token`` slot is short-lived and the ``refresh_token`` slot
    longer-lived; both are written and cleared together. Subclasses only
    provide raw persistence of the slot mapping.
    """

    def __init__(self, *, access_ttl_days: int = 7, refresh_ttl_days: int = 30) -> None:
        self._access_ttl = timedelta(days=access_ttl_days)
        self._refresh_ttl = timedelta(days=refresh_ttl_days)

    def save(self, credential: Credential, *, now: datetime | None = None) -> None:
        now = now or _utc_now()
        access_expiry = credential.expires_at or now + self._access_ttl
        slots = {
            ACCESS_SLOT: {
                "value": credential.access_token,
                "expires_at": access_expiry.isoformat(),
            },
            REFRESH_SLOT: {
                "value": credential.refresh_token,
                "expires_at": (now + self._refresh_ttl).isoformat(),
            },
        }
        self._write(slots)

    def load(self, *, now: datetime | None = None) -> Credential | None:
        """Return the stored credential, or ``None`` when no live access slot exists.

        Raises :class:`InvalidCredentialShape` when stored data cannot be decoded.
        """

        slots = self._read()
        if not slots:
            return None
        now = now or _utc_now()
        access = _decode_slot(slots, ACCESS_SLOT, now)
        if access is None:
            return None
        refresh = _decode_slot(slots, REFRESH_SLOT, now)
        value, expires_at = access
        return Credential(
            access_token=value,
            refresh_token=refresh[0] if refresh else "",
            expires_at=expires_at,
        )

    def clear(self) -> None:
        self._delete()

    # Raw persistence --------------------------------------------------

    def _read(self) -> dict[str, Any] | None:
        raise NotImplementedError

    def _write(self, slots: dict[str, Any]) -> None:
        raise NotImplementedError

    def _delete(self) -> None:
        raise NotImplementedError


class FileCredentialStore(CredentialStore):
    """JSON file holding both slots, readable only by the current user."""

    def __init__(self, path: Path, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any] | None:
        with self._lock:
            if not self._path.exists():
                return None
            raw = self._path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidCredentialShape(f"Stored credential file {self._path} is not valid JSON") from exc
        if not isinstance(data, dict):
            raise InvalidCredentialShape(f"Stored credential file {self._path} is not an object")
        return data

    def _write(self, slots: dict[str, Any]) -> None:
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(slots, handle, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        logger.debug("credential.store.saved path=%s", self._path)

    def _delete(self) -> None:
        with self._lock:
            if self._path.exists():
                self._path.unlink()
                logger.debug("credential.store.cleared path=%s", self._path)


class MemoryCredentialStore(CredentialStore):
    """Process-local store used when nothing should touch the disk."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._slots: dict[str, Any] | None = None

    def _read(self) -> dict[str, Any] | None:
        return self._slots

    def _write(self, slots: dict[str, Any]) -> None:
        self._slots = json.loads(json.dumps(slots))

    def _delete(self) -> None:
        self._slots = None


def _decode_slot(
    slots: dict[str, Any], name: str, now: datetime
) -> tuple[str, datetime | None] | None:
    entry = slots.get(name)
    if entry is None:
        return None
    if not isinstance(entry, dict) or not isinstance(entry.get("value"), str):
        raise InvalidCredentialShape(f"Stored slot '{name}' is malformed")
    expires_raw = entry.get("expires_at")
    expires_at: datetime | None = None
    if expires_raw is not None:
        try:
            expires_at = datetime.fromisoformat(str(expires_raw))
        except ValueError as exc:
            raise InvalidCredentialShape(f"Stored slot '{name}' has an invalid expiry") from exc
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            logger.info("credential.store.slot_expired slot=%s", name)
            return None
    if not entry["value"]:
        return None
    return entry["value"], expires_at
