"""API依赖 - 认证与权限校验"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.auth.security import decode_access_token
from erp.core.deps import get_db
from erp.models import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail="Unauthenticated.",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """解析 Bearer 令牌，返回当前用户"""
    if credentials is None:
        raise _unauthenticated()

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise _unauthenticated()

    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise _unauthenticated()
    return user


def require_permission(permission: str):
    """
    权限校验依赖

    用法：
        user: User = Depends(require_permission("view_any_inventory_receipt"))
    """
    async def checker(user: User = Depends(get_current_user)) -> User:
        if not user.has_permission(permission):
            logger.warning(f"⚠️ 用户 {user.email} 缺少权限 {permission}")
            raise HTTPException(status_code=403, detail="This action is unauthorized.")
        return user

    return checker
