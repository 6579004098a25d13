"""Actors that may request state changes."""

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    """Closed set of roles resolved at the request boundary."""

    CUSTOMER = "CUSTOMER"
    PROVIDER = "PROVIDER"
    ADMIN = "ADMIN"
    GATEWAY = "GATEWAY"


# Identity-provider role names mapped onto actor roles.
SESSION_ROLE_ALIASES: dict[str, ActorRole] = {
    "SEEKER": ActorRole.CUSTOMER,
    "CUSTOMER": ActorRole.CUSTOMER,
    "PROVIDER": ActorRole.PROVIDER,
    "ADMIN": ActorRole.ADMIN,
}


@dataclass(frozen=True)
class Actor:
    """Who is asking for a transition."""

    id: str
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_gateway(self) -> bool:
        return self.role == ActorRole.GATEWAY

    @classmethod
    def gateway(cls, name: str = "xendit") -> "Actor":
        return cls(id=f"gateway:{name}", role=ActorRole.GATEWAY)


def role_from_session(raw_role: str | None) -> ActorRole | None:
    """Translate a session role claim; GATEWAY can never come from a session."""
    if not raw_role:
        return None
    return SESSION_ROLE_ALIASES.get(raw_role.upper())
