"""库存数量（盘点）Schema"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from erp.models import ProductQuantity
from .resource import resource


class QuantityCreate(BaseModel):
    """新建盘点记录"""
    location_id: Optional[int] = Field(None, description="库位，默认仓库库存库位")
    product_id: int = Field(..., description="商品ID")
    lot_id: Optional[int] = None
    partner_id: Optional[int] = None
    user_id: Optional[int] = None
    company_id: Optional[int] = None
    counted_quantity: float = Field(..., ge=0, le=99999999999, description="盘点数量")
    scheduled_at: Optional[datetime] = None


class QuantityCount(BaseModel):
    """录入盘点数量"""
    counted_quantity: float = Field(..., ge=0, le=99999999999, description="盘点数量")


@resource(ProductQuantity)
class QuantityResponse(BaseModel):
    id: int
    quantity: float
    reserved_quantity: float
    available_quantity: float
    counted_quantity: float
    inventory_diff_quantity: float
    difference_quantity: float
    inventory_quantity_set: bool
    incoming_at: Optional[datetime] = None
    scheduled_at: Optional[datetime] = None
    product_id: int
    location_id: int
    lot_id: Optional[int] = None
    partner_id: Optional[int] = None
    user_id: Optional[int] = None
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
