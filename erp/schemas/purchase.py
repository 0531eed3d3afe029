"""采购协议与采购订单Schema"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from erp.models import Requisition, RequisitionLine, PurchaseOrder, PurchaseOrderLine
from erp.models.enums import RequisitionType
from .resource import resource


# ===== 采购协议 =====
class RequisitionLineInput(BaseModel):
    id: Optional[int] = None
    product_id: int = Field(..., description="商品ID")
    qty: float = Field(..., gt=0, le=99999999999, description="数量")
    price_unit: float = Field(0, ge=0, description="单价")
    uom_id: Optional[int] = None


class RequisitionCreate(BaseModel):
    partner_id: int = Field(..., description="供应商ID")
    type: RequisitionType = Field(..., description="blanket_order/purchase_template")
    currency_id: int
    company_id: int
    user_id: Optional[int] = None
    reference: Optional[str] = Field(None, max_length=100)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    description: Optional[str] = None
    lines: List[RequisitionLineInput] = Field(..., min_length=1)


class RequisitionUpdate(BaseModel):
    partner_id: Optional[int] = None
    type: Optional[RequisitionType] = None
    currency_id: Optional[int] = None
    company_id: Optional[int] = None
    user_id: Optional[int] = None
    reference: Optional[str] = Field(None, max_length=100)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    description: Optional[str] = None
    lines: Optional[List[RequisitionLineInput]] = Field(None, min_length=1)


@resource(RequisitionLine)
class RequisitionLineResponse(BaseModel):
    id: int
    qty: float
    price_unit: float
    requisition_id: int
    product_id: int
    uom_id: Optional[int] = None
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@resource(Requisition)
class RequisitionResponse(BaseModel):
    id: int
    name: Optional[str] = None
    type: str
    state: str
    reference: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    description: Optional[str] = None
    partner_id: int
    currency_id: int
    company_id: int
    user_id: Optional[int] = None
    creator_id: Optional[int] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== 采购订单 =====
class PurchaseOrderLineInput(BaseModel):
    id: Optional[int] = None
    product_id: int = Field(..., description="商品ID")
    product_qty: float = Field(..., gt=0, le=99999999999, description="采购数量")
    price_unit: float = Field(..., ge=0, description="单价")
    uom_id: Optional[int] = None
    planned_at: Optional[datetime] = None


class PurchaseOrderCreate(BaseModel):
    partner_id: int = Field(..., description="供应商ID")
    currency_id: int
    company_id: int
    ordered_at: datetime
    requisition_id: Optional[int] = None
    user_id: Optional[int] = None
    origin: Optional[str] = Field(None, max_length=100)
    partner_reference: Optional[str] = Field(None, max_length=100)
    planned_at: Optional[datetime] = None
    description: Optional[str] = None
    lines: List[PurchaseOrderLineInput] = Field(..., min_length=1)


class PurchaseOrderUpdate(BaseModel):
    partner_id: Optional[int] = None
    currency_id: Optional[int] = None
    company_id: Optional[int] = None
    ordered_at: Optional[datetime] = None
    requisition_id: Optional[int] = None
    user_id: Optional[int] = None
    origin: Optional[str] = Field(None, max_length=100)
    partner_reference: Optional[str] = Field(None, max_length=100)
    planned_at: Optional[datetime] = None
    description: Optional[str] = None
    lines: Optional[List[PurchaseOrderLineInput]] = Field(None, min_length=1)


@resource(PurchaseOrderLine)
class PurchaseOrderLineResponse(BaseModel):
    id: int
    name: Optional[str] = None
    product_qty: float
    price_unit: float
    price_subtotal: float
    qty_received: float
    planned_at: Optional[datetime] = None
    order_id: int
    product_id: int
    uom_id: int
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@resource(PurchaseOrder)
class PurchaseOrderResponse(BaseModel):
    id: int
    name: Optional[str] = None
    state: str
    origin: Optional[str] = None
    partner_reference: Optional[str] = None
    receipt_status: str
    description: Optional[str] = None
    untaxed_amount: float
    tax_amount: float
    total_amount: float
    ordered_at: Optional[datetime] = None
    planned_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    mail_reminder_confirmed: bool = False
    partner_id: int
    requisition_id: Optional[int] = None
    currency_id: Optional[int] = None
    company_id: Optional[int] = None
    user_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
