"""
用户与角色
RBAC：用户通过角色获得权限码列表
"""

from datetime import datetime
from typing import List, Set

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Table, JSON
from sqlalchemy.orm import relationship

from erp.db.base import Base
from erp.core.permissions import PERMISSIONS, SUPER_ADMIN_ROLE


# 用户-角色关联表
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime, default=datetime.utcnow),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(150), unique=True, index=True, nullable=False)
    password = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    default_company_id = Column(Integer, ForeignKey("companies.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    roles = relationship("Role", secondary=user_roles, back_populates="users", lazy="selectin")

    def __repr__(self):
        return f"<User {self.email}>"

    @property
    def is_admin(self) -> bool:
        """是否是超级管理员"""
        return any(r.code == SUPER_ADMIN_ROLE and r.is_active for r in (self.roles or []))

    def get_all_permissions(self) -> Set[str]:
        """获取用户的所有权限（来自所有角色）"""
        if self.is_admin:
            return set(PERMISSIONS.keys())
        permissions = set()
        for role in (self.roles or []):
            if role.is_active:
                permissions.update(role.permissions or [])
        return permissions

    def has_permission(self, permission: str) -> bool:
        """检查用户是否有某个权限"""
        return permission in self.get_all_permissions()

    def has_any_permission(self, permissions: List[str]) -> bool:
        """检查用户是否有任一权限"""
        user_perms = self.get_all_permissions()
        return any(p in user_perms for p in permissions)


class Role(Base):
    """角色模型"""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True, comment="角色名称")
    code = Column(String(50), unique=True, index=True, comment="角色编码")
    description = Column(String(200), comment="角色描述")

    # 权限列表（JSON数组，存储权限代码）
    # 如：["view_any_inventory_receipt", "update_inventory_receipt"]
    permissions = Column(JSON, nullable=False, default=list, comment="权限列表")

    # 是否是系统预置角色（不可删除）
    is_system = Column(Boolean, default=False, comment="是否系统角色")
    is_active = Column(Boolean, default=True, comment="是否启用")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", secondary=user_roles, back_populates="roles")

    def __repr__(self):
        return f"<Role {self.code}: {self.name}>"

    def has_permission(self, permission: str) -> bool:
        """检查角色是否有某个权限"""
        return permission in (self.permissions or [])
