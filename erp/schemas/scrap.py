"""报废单Schema"""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field

from erp.models import Scrap
from .resource import resource


class ScrapCreate(BaseModel):
    product_id: int = Field(..., description="商品ID")
    qty: float = Field(..., ge=1, le=99999999999, description="报废数量")
    origin: Optional[str] = Field(None, max_length=255)
    uom_id: Optional[int] = None
    lot_id: Optional[int] = None
    partner_id: Optional[int] = None
    source_location_id: Optional[int] = None
    destination_location_id: Optional[int] = None
    company_id: Optional[int] = None
    tags: Optional[List[str]] = None


class ScrapUpdate(BaseModel):
    product_id: Optional[int] = None
    qty: Optional[float] = Field(None, ge=1, le=99999999999)
    origin: Optional[str] = Field(None, max_length=255)
    uom_id: Optional[int] = None
    lot_id: Optional[int] = None
    partner_id: Optional[int] = None
    source_location_id: Optional[int] = None
    destination_location_id: Optional[int] = None
    company_id: Optional[int] = None
    tags: Optional[List[str]] = None


@resource(Scrap)
class ScrapResponse(BaseModel):
    id: int
    name: Optional[str] = None
    origin: Optional[str] = None
    state: str
    qty: float
    tags: List[str] = []
    closed_at: Optional[datetime] = None
    product_id: int
    uom_id: int
    lot_id: Optional[int] = None
    partner_id: Optional[int] = None
    operation_id: Optional[int] = None
    source_location_id: int
    destination_location_id: int
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
