"""认证API"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import get_current_user
from erp.core.auth.security import create_access_token, verify_password
from erp.core.deps import get_db
from erp.core.exceptions import FieldValidationError
from erp.core.permissions import PERMISSIONS
from erp.models import User
from erp.schemas.security import CurrentUserResponse, LoginRequest, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _current_user_data(user: User) -> dict:
    data = CurrentUserResponse.model_validate(user).model_dump(mode="json")
    data["permissions"] = sorted(user.get_all_permissions())
    return data


@router.post("/login")
async def login(
    *,
    db: AsyncSession = Depends(get_db),
    login_in: LoginRequest) -> Any:
    """邮箱密码登录，返回访问令牌"""
    result = await db.execute(select(User).where(User.email == login_in.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_in.password, user.password) or not user.is_active:
        logger.warning(f"⚠️ 登录失败: {login_in.email}")
        raise FieldValidationError.single("email", "These credentials do not match our records.")

    token = create_access_token(user.id)
    logger.info(f"🔑 用户登录: {user.email}")
    return {
        "data": {
            "access_token": token["access_token"],
            "token_type": "bearer",
            "expires_at": token["expires_at"].isoformat(),
            "user": UserResponse.model_validate(user).model_dump(mode="json"),
        },
        "message": "Logged in successfully.",
    }


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)) -> Any:
    """当前用户"""
    return {"data": _current_user_data(current_user)}


@router.get("/permissions")
async def permissions(current_user: User = Depends(get_current_user)) -> Any:
    """权限目录"""
    return {"data": [{"name": name, "label": label} for name, label in PERMISSIONS.items()]}
