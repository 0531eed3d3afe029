"""商品与批次Schema"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from erp.models import Product, Lot
from erp.models.enums import ProductTracking
from .resource import resource


# ===== 商品 =====
class ProductCreate(BaseModel):
    name: str = Field(..., max_length=200, description="商品名称")
    reference: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    type: str = Field("goods", pattern="^(goods|service)$")
    tracking: ProductTracking = ProductTracking.NONE
    is_configurable: bool = False
    is_storable: bool = True
    uom_id: Optional[int] = Field(None, description="计量单位，默认参考单位")
    uom_po_id: Optional[int] = None
    company_id: Optional[int] = None
    price: float = Field(0, ge=0)
    cost: float = Field(0, ge=0)
    description: Optional[str] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    reference: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    type: Optional[str] = Field(None, pattern="^(goods|service)$")
    tracking: Optional[ProductTracking] = None
    is_configurable: Optional[bool] = None
    is_storable: Optional[bool] = None
    uom_id: Optional[int] = None
    uom_po_id: Optional[int] = None
    company_id: Optional[int] = None
    price: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None


@resource(Product)
class ProductResponse(BaseModel):
    id: int
    name: str
    reference: Optional[str] = None
    barcode: Optional[str] = None
    type: str
    tracking: str
    is_configurable: bool
    is_storable: bool
    uom_id: int
    uom_po_id: Optional[int] = None
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    price: float = 0
    cost: float = 0
    on_hand_quantity: Optional[float] = None
    description: Optional[str] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== 批次 =====
class LotCreate(BaseModel):
    name: str = Field(..., max_length=100, description="批次号")
    product_id: int
    reference: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    expiration_date: Optional[datetime] = None
    company_id: Optional[int] = None


class LotUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    reference: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    expiration_date: Optional[datetime] = None
    company_id: Optional[int] = None


@resource(Lot)
class LotResponse(BaseModel):
    id: int
    name: str
    reference: Optional[str] = None
    description: Optional[str] = None
    expiration_date: Optional[datetime] = None
    product_id: int
    uom_id: Optional[int] = None
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
