"""
端点公共函数
- 统一响应 {data, message}
- 软删除 / 恢复 / 永久删除
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import FieldValidationError


def respond(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"data": data}
    if message is not None:
        body["message"] = message
    return body


def message_only(message: str) -> Dict[str, Any]:
    return {"message": message}


async def get_or_404(db: AsyncSession, model, object_id: int, *conditions, with_trashed: bool = False):
    """查询记录，不存在（或已软删除）返回 404"""
    query = select(model).where(model.id == object_id, *conditions)
    if hasattr(model, "deleted_at") and not with_trashed:
        query = query.where(model.deleted_at.is_(None))
    obj = (await db.execute(query)).unique().scalar_one_or_none()
    if obj is None:
        raise HTTPException(status_code=404, detail="Not found.")
    return obj


async def ensure_exists(db: AsyncSession, model, object_id: Optional[int], field: str) -> None:
    """外键校验，失败时按字段返回 422"""
    if object_id is None:
        return
    obj = await db.get(model, object_id)
    if obj is None or getattr(obj, "deleted_at", None) is not None:
        raise FieldValidationError.single(field, f"The selected {field.replace('_', ' ')} is invalid.")


def soft_delete(obj) -> None:
    obj.deleted_at = datetime.utcnow()


async def restore_trashed(db: AsyncSession, model, object_id: int):
    """恢复软删除记录，只在已删除记录中查找"""
    obj = await get_or_404(db, model, object_id, model.deleted_at.is_not(None), with_trashed=True)
    obj.deleted_at = None
    return obj
