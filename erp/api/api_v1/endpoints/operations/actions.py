"""
库存作业状态变更模块
- 检查可用性、标记待办、验证、取消、退货
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.core.exceptions import ActionNotAllowed
from erp.models import Operation, User
from erp.models.enums import MoveState, OperationState
from erp.schemas.resource import to_resource
from erp.services.inventory import (
    cancel_operation, load_operation, reserve_operation, return_operation, todo_operation, validate_operation,
)
from ..common import respond
from .core import OperationKind, find_operation, operation_resource, permission_for

logger = logging.getLogger(__name__)

CLOSED_STATES = (OperationState.DONE.value, OperationState.CANCELED.value)


def ensure_can_check_availability(operation: Operation) -> None:
    if operation.state not in (OperationState.CONFIRMED.value, OperationState.ASSIGNED.value):
        raise ActionNotAllowed("Only confirmed or assigned operations can check availability.")
    eligible = (MoveState.CONFIRMED.value, MoveState.PARTIALLY_ASSIGNED.value)
    if not any(move.state in eligible for move in operation.moves):
        raise ActionNotAllowed("No operation moves are eligible for availability check.")


def ensure_can_todo(operation: Operation) -> None:
    if operation.state != OperationState.DRAFT.value:
        raise ActionNotAllowed("Only draft operations can be set to todo.")
    if not operation.moves:
        raise ActionNotAllowed("Cannot set operation to todo without moves.")


def ensure_can_validate(operation: Operation) -> None:
    if operation.state in CLOSED_STATES:
        raise ActionNotAllowed("Only non-done and non-canceled operations can be validated.")


def ensure_can_cancel(operation: Operation) -> None:
    if operation.state in CLOSED_STATES:
        raise ActionNotAllowed("Only non-done and non-canceled operations can be canceled.")


def ensure_can_return(operation: Operation) -> None:
    if operation.state != OperationState.DONE.value:
        raise ActionNotAllowed("Only done operations can be returned.")


def add_action_routes(router: APIRouter, kind: OperationKind) -> APIRouter:
    update_permission = permission_for("update", kind)

    @router.post("/{operation_id}/check-availability")
    async def check_availability(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        current_user: User = Depends(require_permission(update_permission))) -> Any:
        """检查可用性（重新预留）"""
        operation = await find_operation(db, kind, operation_id)
        ensure_can_check_availability(operation)
        await reserve_operation(db, operation)
        await db.commit()
        return respond(
            await operation_resource(db, kind, request, operation_id),
            f"{kind.label} availability checked successfully.",
        )

    @router.post("/{operation_id}/todo")
    async def todo(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        current_user: User = Depends(require_permission(update_permission))) -> Any:
        """标记为待办"""
        operation = await find_operation(db, kind, operation_id)
        ensure_can_todo(operation)
        await todo_operation(db, operation)
        await db.commit()
        return respond(
            await operation_resource(db, kind, request, operation_id),
            f"{kind.label} set to todo successfully.",
        )

    @router.post("/{operation_id}/validate")
    async def validate(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        current_user: User = Depends(require_permission(update_permission))) -> Any:
        """验证作业（库存过账）"""
        operation = await find_operation(db, kind, operation_id)
        ensure_can_validate(operation)
        await validate_operation(db, operation)
        await db.commit()
        return respond(
            await operation_resource(db, kind, request, operation_id),
            f"{kind.label} validated successfully.",
        )

    @router.post("/{operation_id}/cancel")
    async def cancel(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        current_user: User = Depends(require_permission(update_permission))) -> Any:
        """取消作业"""
        operation = await find_operation(db, kind, operation_id)
        ensure_can_cancel(operation)
        await cancel_operation(db, operation)
        await db.commit()
        return respond(
            await operation_resource(db, kind, request, operation_id),
            f"{kind.label} canceled successfully.",
        )

    @router.post("/{operation_id}/return")
    async def create_return(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        current_user: User = Depends(require_permission(update_permission))) -> Any:
        """
        创建退货单

        退货单的作业类型为原类型的退货类型，可能不属于当前资源，
        响应直接序列化新作业
        """
        operation = await find_operation(db, kind, operation_id)
        ensure_can_return(operation)
        returned = await return_operation(db, operation, current_user.id)
        await db.commit()
        logger.info(f"↩️ {kind.label} {operation.name} 退货单 {returned.name}")

        returned = await load_operation(db, returned.id)
        return respond(to_resource(returned, {"moves": {}}), f"{kind.label} return created successfully.")

    return router
