"""
采购协议API
- 一揽子订单 / 采购模板
- 草稿 -> 确认 -> 关闭，草稿或确认状态可取消
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.models import Company, Currency, Partner, Requisition, RequisitionLine, User
from erp.models.enums import RequisitionState
from erp.schemas.purchase import RequisitionCreate, RequisitionUpdate
from erp.schemas.resource import paginated, to_resource
from erp.services.purchases import (
    cancel_requisition, close_requisition, confirm_requisition, sync_requisition_lines,
)
from erp.services.query_builder import AllowedFilter, QueryBuilder
from erp.services.sequence import generate_requisition_name
from .common import ensure_exists, get_or_404, message_only, respond, restore_trashed, soft_delete

logger = logging.getLogger(__name__)

router = APIRouter()

RESOURCE = "purchase_purchase::agreement"


def _permission(action: str) -> str:
    return f"{action}_{RESOURCE}"


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        Requisition,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.partial("reference"),
            AllowedFilter.exact("type"),
            AllowedFilter.exact("state"),
            AllowedFilter.exact("partner_id"),
            AllowedFilter.exact("currency_id"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.exact("user_id"),
            AllowedFilter.trashed(),
        ],
        sorts=["id", "name", "type", "state", "starts_at", "ends_at", "created_at", "updated_at"],
        includes=["partner", "currency", "company", "user", "creator", "lines", "lines.product", "lines.uom"],
        soft_delete=True,
    )


def _lines_query(request: Request, requisition_id: int) -> QueryBuilder:
    return QueryBuilder(
        RequisitionLine,
        request,
        filters=[AllowedFilter.exact("product_id")],
        sorts=["id"],
        includes=["product", "uom"],
        conditions=[RequisitionLine.requisition_id == requisition_id],
    )


async def _check_references(db: AsyncSession, data: dict) -> None:
    await ensure_exists(db, Partner, data.get("partner_id"), "partner_id")
    await ensure_exists(db, Currency, data.get("currency_id"), "currency_id")
    await ensure_exists(db, Company, data.get("company_id"), "company_id")
    await ensure_exists(db, User, data.get("user_id"), "user_id")


async def _show(db: AsyncSession, request: Request, requisition_id: int, with_trashed: bool = False):
    requisition, includes = await _query(request).find(db, requisition_id, with_trashed=with_trashed)
    return to_resource(requisition, includes)


@router.get("")
async def list_agreements(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(_permission("view_any")))) -> Any:
    return paginated(await _query(request).paginate(db))


@router.post("", status_code=201)
async def create_agreement(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_in: RequisitionCreate,
    current_user: User = Depends(require_permission(_permission("create")))) -> Any:
    """创建采购协议（草稿）"""
    data = agreement_in.model_dump(exclude={"lines"})
    await _check_references(db, data)
    data["type"] = agreement_in.type.value

    requisition = Requisition(
        **data,
        name=await generate_requisition_name(db),
        state=RequisitionState.DRAFT.value,
        creator_id=current_user.id,
        lines=[],
    )
    requisition.user_id = requisition.user_id or current_user.id
    db.add(requisition)
    await sync_requisition_lines(db, requisition, agreement_in.lines, current_user)
    await db.commit()
    logger.info(f"📝 新建采购协议 {requisition.name}")

    return respond(await _show(db, request, requisition.id), "Purchase agreement created successfully.")


@router.get("/{agreement_id}")
async def get_agreement(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("view")))) -> Any:
    return respond(await _show(db, request, agreement_id))


@router.put("/{agreement_id}")
@router.patch("/{agreement_id}")
async def update_agreement(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    agreement_in: RequisitionUpdate,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    requisition = await get_or_404(db, Requisition, agreement_id)

    data = agreement_in.model_dump(exclude_unset=True, exclude={"lines"})
    await _check_references(db, data)
    if data.get("type") is not None:
        data["type"] = data["type"].value
    for field, value in data.items():
        if value is None and field in ("partner_id", "type", "currency_id", "company_id"):
            continue
        setattr(requisition, field, value)

    if agreement_in.lines is not None:
        await sync_requisition_lines(db, requisition, agreement_in.lines, current_user)
    await db.commit()

    return respond(await _show(db, request, agreement_id), "Purchase agreement updated successfully.")


@router.delete("/{agreement_id}")
async def delete_agreement(
    *,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("delete")))) -> Any:
    """删除（软删除）"""
    requisition = await get_or_404(db, Requisition, agreement_id)
    soft_delete(requisition)
    await db.commit()
    return message_only("Purchase agreement deleted successfully.")


@router.post("/{agreement_id}/restore")
async def restore_agreement(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("restore")))) -> Any:
    await restore_trashed(db, Requisition, agreement_id)
    await db.commit()
    return respond(await _show(db, request, agreement_id), "Purchase agreement restored successfully.")


@router.delete("/{agreement_id}/force")
async def force_delete_agreement(
    *,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("force_delete")))) -> Any:
    """永久删除"""
    requisition = await get_or_404(db, Requisition, agreement_id, with_trashed=True)
    await db.delete(requisition)
    await db.commit()
    logger.info(f"🗑️ 采购协议 {requisition.name} 已永久删除")
    return message_only("Purchase agreement permanently deleted.")


@router.post("/{agreement_id}/confirm")
async def confirm_agreement(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    requisition = await get_or_404(db, Requisition, agreement_id)
    confirm_requisition(requisition)
    await db.commit()
    return respond(await _show(db, request, agreement_id), "Purchase agreement confirmed successfully.")


@router.post("/{agreement_id}/close")
async def close_agreement(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    requisition = await get_or_404(db, Requisition, agreement_id)
    close_requisition(requisition)
    await db.commit()
    return respond(await _show(db, request, agreement_id), "Purchase agreement closed successfully.")


@router.post("/{agreement_id}/cancel")
async def cancel_agreement(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    requisition = await get_or_404(db, Requisition, agreement_id)
    cancel_requisition(requisition)
    await db.commit()
    return respond(await _show(db, request, agreement_id), "Purchase agreement canceled successfully.")


# ===== 协议明细 =====

@router.get("/{agreement_id}/lines")
async def list_agreement_lines(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    current_user: User = Depends(require_permission(_permission("view")))) -> Any:
    await get_or_404(db, Requisition, agreement_id)
    return paginated(await _lines_query(request, agreement_id).paginate(db))


@router.get("/{agreement_id}/lines/{line_id}")
async def get_agreement_line(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    agreement_id: int,
    line_id: int,
    current_user: User = Depends(require_permission(_permission("view")))) -> Any:
    await get_or_404(db, Requisition, agreement_id)
    line, includes = await _lines_query(request, agreement_id).find(db, line_id)
    return respond(to_resource(line, includes))
