"""
基础支撑数据 - 公司、币种、计量单位、合作伙伴
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, ROUND_UP, ROUND_DOWN
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Currency(Base):
    __tablename__ = "currencies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(10), nullable=False, unique=True, comment="币种代码，如 USD")
    symbol = Column(String(10), comment="符号")
    full_name = Column(String(100), comment="全称")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Currency {self.name}>"


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(150))
    currency_id = Column(Integer, ForeignKey("currencies.id"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    currency = relationship("Currency", foreign_keys=[currency_id])

    def __repr__(self):
        return f"<Company {self.name}>"


class Partner(Base):
    """合作伙伴（供应商/客户）"""
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, index=True)
    email = Column(String(150))
    phone = Column(String(30))
    is_company = Column(Boolean, default=True)
    company_id = Column(Integer, ForeignKey("companies.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Partner {self.name}>"


class UOMCategory(Base):
    __tablename__ = "uom_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    uoms = relationship("UOM", back_populates="category")


class UOM(Base):
    """
    计量单位
    factor 表示相对参考单位的倍率：1 参考单位 = factor 本单位
    如 参考单位 件，打(12件) 的 factor = 1/12
    """
    __tablename__ = "uoms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    category_id = Column(Integer, ForeignKey("uom_categories.id"), nullable=False)
    type = Column(String(20), nullable=False, default="reference", comment="reference/bigger/smaller")
    factor = Column(Numeric(20, 10), nullable=False, default=Decimal("1"))
    rounding = Column(Numeric(20, 10), nullable=False, default=Decimal("0.01"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("UOMCategory", back_populates="uoms")

    def __repr__(self):
        return f"<UOM {self.name}>"

    def compute_quantity(
        self,
        qty,
        to_uom: "UOM",
        round: bool = True,
        rounding_method: str = "HALF-UP",
    ) -> Decimal:
        """
        把本单位数量换算为 to_uom 数量

        调用方需保证两个单位属于同一类别
        """
        qty = Decimal(str(qty))
        if to_uom is None or to_uom.id == self.id:
            return qty
        amount = qty / Decimal(str(self.factor)) * Decimal(str(to_uom.factor))
        if round:
            amount = round_quantity(amount, to_uom.rounding, rounding_method)
        return amount


_ROUNDING_MODES = {
    "HALF-UP": ROUND_HALF_UP,
    "UP": ROUND_UP,
    "DOWN": ROUND_DOWN,
}


def round_quantity(value, rounding, rounding_method: str = "HALF-UP") -> Decimal:
    """按精度取整，如 rounding=0.01 保留两位"""
    value = Decimal(str(value))
    rounding = Decimal(str(rounding or "0.01"))
    if rounding <= 0:
        return value
    units = (value / rounding).quantize(Decimal("1"), rounding=_ROUNDING_MODES[rounding_method])
    return (units * rounding).normalize() if units else Decimal("0")
