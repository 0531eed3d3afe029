"""
采购订单API
- 草稿/已发送可编辑
- 确认后生成收货作业，收货验证后回写已收数量
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.models import Company, Currency, Partner, PurchaseOrder, Requisition, User
from erp.models.enums import PurchaseOrderState, ReceiptStatus
from erp.schemas.purchase import PurchaseOrderCreate, PurchaseOrderUpdate
from erp.schemas.resource import paginated, to_collection, to_resource
from erp.services.purchases import (
    cancel_order, confirm_order, confirm_receipt_date, ensure_order_editable, order_receipts,
    reset_order_to_draft, send_order, sync_order_lines, toggle_order_lock,
)
from erp.services.query_builder import AllowedFilter, QueryBuilder
from erp.services.sequence import generate_purchase_order_name
from .common import ensure_exists, get_or_404, message_only, respond

logger = logging.getLogger(__name__)

router = APIRouter()

RESOURCE = "purchase_purchase::order"


def _permission(action: str) -> str:
    return f"{action}_{RESOURCE}"


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        PurchaseOrder,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.partial("origin"),
            AllowedFilter.partial("partner_reference"),
            AllowedFilter.exact("state"),
            AllowedFilter.exact("receipt_status"),
            AllowedFilter.exact("partner_id"),
            AllowedFilter.exact("requisition_id"),
            AllowedFilter.exact("currency_id"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.exact("user_id"),
        ],
        sorts=[
            "id", "name", "state", "ordered_at", "planned_at", "approved_at",
            "untaxed_amount", "total_amount", "created_at", "updated_at",
        ],
        includes=[
            "partner", "requisition", "currency", "company", "user", "creator",
            "lines", "lines.product", "lines.uom",
        ],
    )


async def _show(db: AsyncSession, request: Request, order_id: int):
    """订单详情，始终附带订单行"""
    order, includes = await _query(request).find(db, order_id)
    includes.setdefault("lines", {})
    return to_resource(order, includes)


async def _check_references(db: AsyncSession, data: dict) -> None:
    await ensure_exists(db, Partner, data.get("partner_id"), "partner_id")
    await ensure_exists(db, Currency, data.get("currency_id"), "currency_id")
    await ensure_exists(db, Company, data.get("company_id"), "company_id")
    await ensure_exists(db, Requisition, data.get("requisition_id"), "requisition_id")
    await ensure_exists(db, User, data.get("user_id"), "user_id")


@router.get("")
async def list_orders(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission(_permission("view_any")))) -> Any:
    """采购订单列表"""
    page = await _query(request).paginate(db)
    page["includes"].setdefault("lines", {})
    return paginated(page)


@router.post("", status_code=201)
async def create_order(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_in: PurchaseOrderCreate,
    current_user: User = Depends(require_permission(_permission("create")))) -> Any:
    """创建采购订单（草稿）"""
    data = order_in.model_dump(exclude={"lines"})
    await _check_references(db, data)

    order = PurchaseOrder(
        **data,
        name=await generate_purchase_order_name(db),
        state=PurchaseOrderState.DRAFT.value,
        receipt_status=ReceiptStatus.NO.value,
        creator_id=current_user.id,
        lines=[],
    )
    order.user_id = order.user_id or current_user.id
    db.add(order)
    await sync_order_lines(db, order, order_in.lines, current_user)
    await db.commit()
    logger.info(f"📝 新建采购订单 {order.name}，金额 {order.total_amount}")

    return respond(await _show(db, request, order.id), "Purchase order created successfully.")


@router.get("/{order_id}")
async def get_order(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("view")))) -> Any:
    return respond(await _show(db, request, order_id))


@router.put("/{order_id}")
@router.patch("/{order_id}")
async def update_order(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    order_in: PurchaseOrderUpdate,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    """更新采购订单（仅草稿/已发送）"""
    order = await get_or_404(db, PurchaseOrder, order_id)
    ensure_order_editable(order, "updated")

    data = order_in.model_dump(exclude_unset=True, exclude={"lines"})
    await _check_references(db, data)
    for field, value in data.items():
        if value is None and field in ("partner_id", "currency_id", "company_id", "ordered_at"):
            continue
        setattr(order, field, value)

    if order_in.lines is not None:
        await sync_order_lines(db, order, order_in.lines, current_user)
    await db.commit()

    return respond(await _show(db, request, order_id), "Purchase order updated successfully.")


@router.delete("/{order_id}")
async def delete_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("delete")))) -> Any:
    order = await get_or_404(db, PurchaseOrder, order_id)
    ensure_order_editable(order, "deleted")
    await db.delete(order)
    await db.commit()
    logger.info(f"🗑️ 采购订单 {order.name} 已删除")
    return message_only("Purchase order deleted successfully.")


# ===== 状态变更 =====

@router.post("/{order_id}/send")
async def send(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    order = await get_or_404(db, PurchaseOrder, order_id)
    send_order(order)
    await db.commit()
    return respond(await _show(db, request, order_id), "Purchase order sent successfully.")


@router.post("/{order_id}/confirm")
async def confirm(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    """确认订单并生成收货单"""
    order = await get_or_404(db, PurchaseOrder, order_id)
    await confirm_order(db, order, current_user)
    await db.commit()
    return respond(await _show(db, request, order_id), "Purchase order confirmed successfully.")


@router.post("/{order_id}/cancel")
async def cancel(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    """取消订单及未完成的收货单"""
    order = await get_or_404(db, PurchaseOrder, order_id)
    await cancel_order(db, order)
    await db.commit()
    return respond(await _show(db, request, order_id), "Purchase order canceled successfully.")


@router.post("/{order_id}/draft")
async def reset_to_draft(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    order = await get_or_404(db, PurchaseOrder, order_id)
    reset_order_to_draft(order)
    await db.commit()
    return respond(await _show(db, request, order_id), "Purchase order set to draft successfully.")


@router.post("/{order_id}/toggle-lock")
async def toggle_lock(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    order = await get_or_404(db, PurchaseOrder, order_id)
    toggle_order_lock(order)
    await db.commit()
    return respond(await _show(db, request, order_id), "Purchase order lock state updated successfully.")


@router.post("/{order_id}/confirm-receipt-date")
async def confirm_receipt(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("update")))) -> Any:
    order = await get_or_404(db, PurchaseOrder, order_id)
    confirm_receipt_date(order)
    await db.commit()
    return respond(await _show(db, request, order_id), "Purchase order receipt date confirmed successfully.")


@router.get("/{order_id}/receipts")
async def list_receipts(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    current_user: User = Depends(require_permission(_permission("view")))) -> Any:
    """订单生成的收货作业"""
    await get_or_404(db, PurchaseOrder, order_id)
    receipts = await order_receipts(db, order_id)
    return respond(to_collection(receipts, {"moves": {}}))
