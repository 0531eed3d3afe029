"""
单号生成
取同前缀下的最大单号并递增，如 WH/IN/00001 -> WH/IN/00002
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.models import Operation, OperationType, Scrap, Requisition, PurchaseOrder


async def next_sequence_name(db: AsyncSession, column, prefix: str, padding: int = 5) -> str:
    """按前缀生成下一个单号"""
    result = await db.execute(
        select(func.max(column)).where(column.like(f"{prefix}%"))
    )
    max_no = result.scalar()

    seq = 1
    if max_no:
        try:
            seq = int(max_no[len(prefix):]) + 1
        except ValueError:
            seq = 1

    return f"{prefix}{seq:0{padding}d}"


async def generate_operation_name(db: AsyncSession, operation_type: OperationType) -> str:
    """作业单号：{仓库简称}/{单号段}/00001"""
    parts = []
    if operation_type.warehouse is not None:
        parts.append(operation_type.warehouse.code)
    parts.append(operation_type.sequence_code)
    prefix = "/".join(parts) + "/"
    return await next_sequence_name(db, Operation.name, prefix)


async def generate_scrap_name(db: AsyncSession) -> str:
    return await next_sequence_name(db, Scrap.name, "SP/")


async def generate_requisition_name(db: AsyncSession) -> str:
    return await next_sequence_name(db, Requisition.name, "PA/")


async def generate_purchase_order_name(db: AsyncSession) -> str:
    return await next_sequence_name(db, PurchaseOrder.name, "P")
