"""基础数据Schema（仅用于关联输出）"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel

from erp.models import Company, Currency, Partner, UOM, UOMCategory
from .resource import resource


@resource(Currency)
class CurrencyResponse(BaseModel):
    id: int
    name: str
    symbol: Optional[str] = None
    full_name: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


@resource(Company)
class CompanyResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    currency_id: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


@resource(Partner)
class PartnerResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    is_company: bool = True
    company_id: Optional[int] = None

    class Config:
        from_attributes = True


@resource(UOMCategory)
class UOMCategoryResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


@resource(UOM)
class UOMResponse(BaseModel):
    id: int
    name: str
    category_id: int
    type: str
    factor: float
    rounding: float

    class Config:
        from_attributes = True
