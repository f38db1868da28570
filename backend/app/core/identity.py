from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

STAFF_ROLES = frozenset({"receptionist", "admin"})


@dataclass(frozen=True)
class Identity:
    """Caller as reported by the upstream auth gateway."""

    user_id: str | None
    role: str = "user"

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def is_staff(self) -> bool:
        return self.user_id is not None and self.role in STAFF_ROLES


async def get_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity:
    """Read the authenticated user (if any) from gateway-forwarded headers."""
    user_id = (x_user_id or "").strip() or None
    role = (x_user_role or "user").strip().lower()
    return Identity(user_id=user_id, role=role if user_id else "anonymous")


async def require_staff(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_staff:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Staff access required")
    return identity
