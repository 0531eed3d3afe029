"""库存作业Schema（收货/发货/内部调拨/直运共用）"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from erp.models import Operation, Move, MoveLine
from erp.models.enums import MoveType
from .resource import resource


# ===== 请求 =====
class MoveInput(BaseModel):
    """作业中的移动行

    带 id 的更新已有移动，不带 id 的新建，未出现的已有移动会被删除
    """
    id: Optional[int] = None
    product_id: int = Field(..., description="商品ID")
    product_uom_qty: float = Field(..., ge=0, le=99999999999, description="需求数量（移动单位）")
    uom_id: Optional[int] = Field(None, description="移动单位，默认商品单位")
    final_location_id: Optional[int] = None
    description_picking: Optional[str] = Field(None, max_length=255)
    scheduled_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    quantity: Optional[float] = Field(None, ge=0, le=99999999999, description="已拣数量")
    is_picked: Optional[bool] = None


class OperationInput(BaseModel):
    """创建/更新作业，省略的字段按作业类型取默认值"""
    partner_id: Optional[int] = None
    operation_type_id: Optional[int] = None
    source_location_id: Optional[int] = None
    destination_location_id: Optional[int] = None
    user_id: Optional[int] = None
    move_type: Optional[MoveType] = None
    scheduled_at: Optional[datetime] = None
    origin: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    moves: Optional[List[MoveInput]] = None


# ===== 响应 =====
@resource(MoveLine)
class MoveLineResponse(BaseModel):
    id: int
    lot_name: Optional[str] = None
    state: str
    reference: Optional[str] = None
    picking_description: Optional[str] = None
    qty: float
    uom_qty: float
    is_picked: bool = False
    scheduled_at: Optional[datetime] = None
    move_id: Optional[int] = None
    operation_id: Optional[int] = None
    product_id: int
    uom_id: int
    lot_id: Optional[int] = None
    source_location_id: int
    destination_location_id: int
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@resource(Move)
class MoveResponse(BaseModel):
    id: int
    name: Optional[str] = None
    state: str
    origin: Optional[str] = None
    procure_method: Optional[str] = None
    reference: Optional[str] = None
    description_picking: Optional[str] = None
    product_uom_qty: float
    product_qty: float
    quantity: float
    reserved_quantity: float = 0
    is_picked: bool = False
    is_scraped: bool = False
    is_inventory: bool = False
    is_refund: bool = False
    scheduled_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    reservation_date: Optional[datetime] = None
    product_id: int
    uom_id: int
    source_location_id: int
    destination_location_id: int
    final_location_id: Optional[int] = None
    operation_id: Optional[int] = None
    operation_type_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    scrap_id: Optional[int] = None
    origin_returned_move_id: Optional[int] = None
    purchase_order_line_id: Optional[int] = None
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@resource(Operation)
class OperationResponse(BaseModel):
    id: int
    name: Optional[str] = None
    origin: Optional[str] = None
    move_type: str
    state: str
    is_favorite: bool = False
    description: Optional[str] = None
    has_deadline_issue: bool = False
    is_printed: bool = False
    is_locked: bool = False
    scheduled_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    operation_type_id: int
    source_location_id: int
    destination_location_id: int
    back_order_id: Optional[int] = None
    return_id: Optional[int] = None
    purchase_order_id: Optional[int] = None
    partner_id: Optional[int] = None
    user_id: Optional[int] = None
    owner_id: Optional[int] = None
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
