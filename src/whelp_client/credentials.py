"""Credential value and its single-writer holder."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True, frozen=True)
class Credential:
    """Access/refresh token pair for one authenticated session."""

    access_token: str
    refresh_token: str
    expires_at: datetime | None = None

    def __repr__(self) -> str:
        return f"Credential(expires_at={self.expires_at!r})"


class CredentialCell:
    """Holds at most one live :class:`Credential`.

    The session manager is the only writer. Readers call :meth:`snapshot`
    once per request; because the stored value is immutable and replaced by
    a single reference assignment, a reader always sees a complete pair.
    """

    def __init__(self) -> None:
        self._credential: Credential | None = None
        self._version = 0

    @property
    def version(self) -> int:
        """Incremented on every write, including clears."""

        return self._version

    def snapshot(self) -> Credential | None:
        return self._credential

    def set(self, credential: Credential) -> int:
        self._credential = credential
        self._version += 1
        return self._version

    def clear(self) -> bool:
        """Drop the credential; return ``True`` if one was present."""

        if self._credential is None:
            return False
        self._credential = None
        self._version += 1
        return True
