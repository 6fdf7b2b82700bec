"""Signed-in user context passed explicitly to the components that need it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class SessionContext:
    """Identity of the signed-in user."""

    user_id: str
    email: str
    display_name: str | None = None


class IdentityProvider(Protocol):
    """Session lookup supplied by the hosting application (auth is not implemented here)."""

    async def get_current_session(self) -> SessionContext | None: ...

    async def sign_out(self) -> None: ...
