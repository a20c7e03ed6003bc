"""Token schemas"""

from typing import Optional
from pydantic import BaseModel


class TokenPayload(BaseModel):
    """Claims issued by the identity service"""
    sub: str
    role: str
    business_id: Optional[str] = None
    employee_id: Optional[str] = None
    exp: int
    type: str = "access"
