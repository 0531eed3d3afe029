"""仓库、库位、作业类型Schema"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from erp.models import Warehouse, Location, OperationType
from erp.models.enums import LocationType, OperationTypeEnum, CreateBackorder
from .resource import resource


# ===== 仓库 =====
class WarehouseCreate(BaseModel):
    name: str = Field(..., max_length=100, description="仓库名称")
    code: str = Field(..., max_length=10, description="简称，用作单号前缀")
    company_id: Optional[int] = None
    partner_address_id: Optional[int] = None
    sort: Optional[int] = None


class WarehouseUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    code: Optional[str] = Field(None, max_length=10)
    company_id: Optional[int] = None
    partner_address_id: Optional[int] = None
    sort: Optional[int] = None


@resource(Warehouse)
class WarehouseResponse(BaseModel):
    id: int
    name: str
    code: str
    sort: Optional[int] = None
    company_id: Optional[int] = None
    partner_address_id: Optional[int] = None
    view_location_id: Optional[int] = None
    lot_stock_location_id: Optional[int] = None
    creator_id: Optional[int] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== 库位 =====
class LocationCreate(BaseModel):
    name: str = Field(..., max_length=100, description="库位名称")
    type: LocationType = Field(LocationType.INTERNAL, description="库位类型")
    parent_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    company_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=300)
    is_scrap: bool = False
    is_replenish: bool = False
    barcode: Optional[str] = Field(None, max_length=100)
    position: Optional[int] = None


class LocationUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    type: Optional[LocationType] = None
    parent_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    company_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=300)
    is_scrap: Optional[bool] = None
    is_replenish: Optional[bool] = None
    barcode: Optional[str] = Field(None, max_length=100)
    position: Optional[int] = None


@resource(Location)
class LocationResponse(BaseModel):
    id: int
    name: str
    full_name: Optional[str] = None
    description: Optional[str] = None
    type: str
    parent_id: Optional[int] = None
    warehouse_id: Optional[int] = None
    company_id: Optional[int] = None
    is_scrap: bool = False
    is_replenish: bool = False
    barcode: Optional[str] = None
    position: Optional[int] = None
    creator_id: Optional[int] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ===== 作业类型 =====
class OperationTypeCreate(BaseModel):
    name: str = Field(..., max_length=100)
    type: OperationTypeEnum
    sequence_code: str = Field(..., max_length=10, description="单号段，如 IN")
    warehouse_id: Optional[int] = None
    source_location_id: Optional[int] = None
    destination_location_id: Optional[int] = None
    return_operation_type_id: Optional[int] = None
    create_backorder: CreateBackorder = CreateBackorder.ASK
    company_id: Optional[int] = None
    sort: Optional[int] = None
    is_active: bool = True


class OperationTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    type: Optional[OperationTypeEnum] = None
    sequence_code: Optional[str] = Field(None, max_length=10)
    warehouse_id: Optional[int] = None
    source_location_id: Optional[int] = None
    destination_location_id: Optional[int] = None
    return_operation_type_id: Optional[int] = None
    create_backorder: Optional[CreateBackorder] = None
    company_id: Optional[int] = None
    sort: Optional[int] = None
    is_active: Optional[bool] = None


@resource(OperationType)
class OperationTypeResponse(BaseModel):
    id: int
    name: str
    type: str
    sequence_code: str
    sort: Optional[int] = None
    is_active: bool = True
    create_backorder: str
    reservation_method: Optional[str] = None
    warehouse_id: Optional[int] = None
    source_location_id: Optional[int] = None
    destination_location_id: Optional[int] = None
    return_operation_type_id: Optional[int] = None
    company_id: Optional[int] = None
    creator_id: Optional[int] = None
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
