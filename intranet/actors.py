"""Request-scoped description of who performs an operation."""

from dataclasses import dataclass
from typing import Optional

from .errors import PermissionDenied
from .schema import DEFAULT_USER_NAME, SYSTEM_SENDER_ID, SYSTEM_SENDER_NAME


@dataclass(frozen=True)
class Actor:
    user_id: str
    display_name: str = DEFAULT_USER_NAME
    photo_url: Optional[str] = None
    is_admin: bool = False

    @classmethod
    def from_user(cls, user):
        """Build an actor from a ``users`` document."""
        return cls(
            user_id=user.id,
            display_name=user.get("displayName") or DEFAULT_USER_NAME,
            photo_url=user.get("photoURL") or None,
            is_admin=bool(user.get("isAdmin")),
        )

    @classmethod
    def system(cls):
        """Actor used by scheduled maintenance (management commands)."""
        return cls(user_id=SYSTEM_SENDER_ID, display_name=SYSTEM_SENDER_NAME, is_admin=True)

    def require_admin(self):
        if not self.is_admin:
            raise PermissionDenied("Недостаточно прав: требуется администратор")
