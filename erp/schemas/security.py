"""认证Schema"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from erp.models import User, Role
from .resource import resource


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=150, description="邮箱")
    password: str = Field(..., min_length=1, description="密码")


@resource(Role)
class RoleResponse(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    permissions: List[str] = []
    is_system: bool = False
    is_active: bool = True

    class Config:
        from_attributes = True


@resource(User)
class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    is_active: bool
    default_company_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CurrentUserResponse(UserResponse):
    """当前用户（含角色与权限）"""
    roles: List[RoleResponse] = []
    permissions: List[str] = []
