"""Caller identity resolved from the identity service's bearer token"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional


class UserRole(str, enum.Enum):
    """Roles issued by the identity service"""
    SUPER_ADMIN = "SUPER_ADMIN"
    BUSINESS_ADMIN = "BUSINESS_ADMIN"
    EMPLOYEE = "EMPLOYEE"


@dataclass(frozen=True)
class CallerIdentity:
    user_id: uuid.UUID
    role: UserRole
    business_id: Optional[uuid.UUID] = None
    employee_id: Optional[uuid.UUID] = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    def can_access_business(self, business_id: uuid.UUID) -> bool:
        """SUPER_ADMIN sees every business, everyone else only their own"""
        if self.is_super_admin:
            return True
        return self.business_id is not None and self.business_id == business_id
