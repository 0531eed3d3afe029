"""
库存作业 CRUD 模块
- 列表、创建、详情、更新、删除
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
from erp.schemas.operation import OperationInput
from erp.schemas.resource import paginated
from erp.services.inventory import release_move, reserve_operation
from ..common import message_only, respond
from .core import (
    OperationKind, find_operation, operation_query, operation_resource,
    permission_for, prepare_operation_data, sync_move_locations, sync_moves,
)

logger = logging.getLogger(__name__)


def add_crud_routes(router: APIRouter, kind: OperationKind) -> APIRouter:
    @router.get("")
    async def list_operations(
        request: Request,
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(require_permission(permission_for("view_any", kind)))) -> Any:
        """作业列表"""
        return paginated(await operation_query(kind, request).paginate(db))

    @router.post("", status_code=201)
    async def create_operation(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_in: OperationInput,
        current_user: User = Depends(require_permission(permission_for("create", kind)))) -> Any:
        """创建作业（草稿）"""
        data = operation_in.model_dump(exclude={"moves"})
        prepared = await prepare_operation_data(db, kind, data, current_user)

        operation = Operation(moves=[], **prepared)
        db.add(operation)
        await db.flush()

        if operation_in.moves is not None:
            await sync_moves(db, operation, operation_in.moves, current_user)

        await db.commit()
        logger.info(f"📝 新建作业 {operation.name}")
        return respond(
            await operation_resource(db, kind, request, operation.id),
            f"{kind.label} created successfully.",
        )

    @router.get("/{operation_id}")
    async def get_operation(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        current_user: User = Depends(require_permission(permission_for("view", kind)))) -> Any:
        await find_operation(db, kind, operation_id)
        return respond(await operation_resource(db, kind, request, operation_id))

    async def _update(request: Request, db: AsyncSession, operation_id: int,
                      operation_in: OperationInput, current_user: User) -> Any:
        operation = await find_operation(db, kind, operation_id)
        if operation.state in (OperationState.DONE.value, OperationState.CANCELED.value):
            raise ActionNotAllowed("Done or canceled operations cannot be updated.")

        data = operation_in.model_dump(exclude_unset=True, exclude={"moves"})
        if data:
            prepared = await prepare_operation_data(db, kind, data, current_user, existing=operation)
            locations_changed = (
                prepared["source_location_id"] != operation.source_location_id
                or prepared["destination_location_id"] != operation.destination_location_id
            )
            if locations_changed:
                for move in operation.moves:
                    if move.state not in (MoveState.DONE.value, MoveState.CANCELED.value):
                        await release_move(db, move)
                        if move.state != MoveState.DRAFT.value:
                            move.state = MoveState.CONFIRMED.value

            for field, value in prepared.items():
                setattr(operation, field, value)
            sync_move_locations(operation)

            if locations_changed and operation_in.moves is None and operation.state != OperationState.DRAFT.value:
                await reserve_operation(db, operation)

        if operation_in.moves is not None:
            await sync_moves(db, operation, operation_in.moves, current_user)

        await db.commit()
        return respond(
            await operation_resource(db, kind, request, operation_id),
            f"{kind.label} updated successfully.",
        )

    @router.put("/{operation_id}")
    async def update_operation(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        operation_in: OperationInput,
        current_user: User = Depends(require_permission(permission_for("update", kind)))) -> Any:
        """更新作业"""
        return await _update(request, db, operation_id, operation_in, current_user)

    @router.patch("/{operation_id}")
    async def patch_operation(
        *,
        request: Request,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        operation_in: OperationInput,
        current_user: User = Depends(require_permission(permission_for("update", kind)))) -> Any:
        return await _update(request, db, operation_id, operation_in, current_user)

    @router.delete("/{operation_id}")
    async def delete_operation(
        *,
        db: AsyncSession = Depends(get_db),
        operation_id: int,
        current_user: User = Depends(require_permission(permission_for("delete", kind)))) -> Any:
        """删除作业（释放预留）"""
        operation = await find_operation(db, kind, operation_id)
        if operation.state == OperationState.DONE.value:
            raise ActionNotAllowed("Done operations cannot be deleted.")

        for move in operation.moves:
            await release_move(db, move)
        await db.delete(operation)
        await db.commit()
        logger.info(f"🗑️ 作业 {operation.name} 已删除")
        return message_only(f"{kind.label} deleted successfully.")

    return router
