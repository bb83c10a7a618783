"""
Acting principal + capability checks.

The auth gateway in front of this service authenticates the caller and forwards
the user id in X-User-Id. Roles are resolved here, once, into capabilities;
routes never inspect roles directly.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional

from fastapi import Depends, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy import text

from cookoff.core.db import get_engine
from cookoff.core.errors import Forbidden, Unauthorized

USER_ID_HEADER = APIKeyHeader(name="X-User-Id", auto_error=False)


class Capability(str, Enum):
    MODERATE_PROOFS = "moderate_proofs"
    MANAGE_BATTLES = "manage_battles"


ROLE_CAPABILITIES: Dict[str, FrozenSet[Capability]] = {
    "member": frozenset(),
    "moderator": frozenset({Capability.MODERATE_PROOFS}),
    "admin": frozenset({Capability.MODERATE_PROOFS, Capability.MANAGE_BATTLES}),
}


@dataclass(frozen=True)
class Principal:
    id: str
    username: str
    level: int
    role: str

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ROLE_CAPABILITIES.get(self.role, frozenset())

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


def load_principal(user_id: str) -> Optional[Principal]:
    with get_engine().connect() as conn:
        row = conn.execute(
            text("SELECT id, username, level, role FROM users WHERE id = :id"),
            {"id": user_id},
        ).mappings().first()
    if row is None:
        return None
    return Principal(id=row["id"], username=row["username"], level=int(row["level"] or 1), role=row["role"] or "member")


def get_principal(user_id: Optional[str] = Security(USER_ID_HEADER)) -> Principal:
    if not user_id or not user_id.strip():
        raise Unauthorized("authentication required")
    principal = load_principal(user_id.strip())
    if principal is None:
        raise Unauthorized("unknown user")
    return principal


def require_capability(principal: Principal, capability: Capability) -> None:
    if not principal.can(capability):
        raise Forbidden(
            f"missing capability: {capability.value}",
            details={"user_id": principal.id, "role": principal.role},
        )


def requires(capability: Capability) -> Callable[..., Principal]:
    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        require_capability(principal, capability)
        return principal

    return _dep
