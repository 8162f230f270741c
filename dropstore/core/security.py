"""调用方身份（由上游网关解析后通过请求头传入）"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header

from dropstore.core.exceptions import UnauthorizedError, ForbiddenError, ValidationError
from dropstore.models.user import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_access(self, owner_id: int) -> bool:
        """资源所有者或管理员"""
        return self.is_admin or self.user_id == owner_id


def get_current_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Principal]:
    """匿名请求返回 None"""
    if not x_user_id:
        return None
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise ValidationError("X-User-Id must be a positive integer")
    if user_id <= 0:
        raise ValidationError("X-User-Id must be a positive integer")
    try:
        role = UserRole(x_user_role or UserRole.USER.value)
    except ValueError:
        raise ValidationError(f"Unknown role: {x_user_role}")
    return Principal(user_id=user_id, role=role)


def require_user(principal: Optional[Principal]) -> Principal:
    if principal is None:
        raise UnauthorizedError("Authentication required")
    return principal


def require_admin(principal: Optional[Principal]) -> Principal:
    principal = require_user(principal)
    if not principal.is_admin:
        raise ForbiddenError("Admin role required")
    return principal
