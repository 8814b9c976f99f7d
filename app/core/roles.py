"""Membership and role resolution.

An authenticated request carries up to two role signals: the role inside the
currently active organization (``org:admin``, ``org:member``) and a personal
role stored in the user's public metadata (``admin``, ``member``). The
effective role is resolved with one precedence everywhere:

    organization role (when an organization is active) > personal role > viewer

Nothing in this module performs I/O.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

ORG_ADMIN = "org:admin"
ORG_MEMBER = "org:member"
ADMIN = "admin"
MEMBER = "member"
VIEWER = "viewer"

ADMIN_ROLES = (ORG_ADMIN, ADMIN)


def resolve_effective_role(
    org_id: str | None, org_role: str | None, personal_role: str | None
) -> str:
    """Pick the single role that applies to the current request."""
    if org_id and org_role:
        return org_role
    if personal_role:
        return personal_role
    return VIEWER


def _normalize_org_role(role: str | None) -> str | None:
    # Compact session tokens drop the "org:" prefix
    if role and ":" not in role:
        return f"org:{role}"
    return role


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a request."""

    user_id: str
    org_id: str | None = None
    org_role: str | None = None
    personal_role: str | None = None

    @property
    def effective_role(self) -> str:
        return resolve_effective_role(self.org_id, self.org_role, self.personal_role)

    @property
    def is_admin(self) -> bool:
        return has_any_role(self, ADMIN_ROLES)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Actor":
        """Build an actor from decoded Clerk session claims."""
        compact_org = claims.get("o") or {}
        org_id = claims.get("org_id") or compact_org.get("id")
        org_role = claims.get("org_role") or _normalize_org_role(compact_org.get("rol"))

        metadata = (
            claims.get("public_metadata")
            or claims.get("publicMetadata")
            or claims.get("metadata")
            or {}
        )
        personal_role = metadata.get("role") if isinstance(metadata, Mapping) else None

        return cls(
            user_id=claims.get("sub", ""),
            org_id=org_id or None,
            org_role=org_role or None,
            personal_role=personal_role or None,
        )


def has_any_role(actor: Actor, allowed_roles: Iterable[str]) -> bool:
    """Return True when the actor's effective role is one of ``allowed_roles``."""
    return actor.effective_role in set(allowed_roles)


def global_role_for_org_role(org_role: str | None) -> str:
    """Map an organization role to the mirrored global role."""
    return ADMIN if org_role == ORG_ADMIN else MEMBER
