"""
库存作业API模块

收货、发货、内部调拨、直运共用同一套路由，按作业类型区分：
- core: 资源定义、查询、默认值与移动同步
- crud: 创建、读取、更新、删除
- actions: 状态变更（检查可用性、待办、验证、取消、退货）
"""

from fastapi import APIRouter

from .core import RECEIPT, DELIVERY, INTERNAL_TRANSFER, DROPSHIP, OperationKind
from .crud import add_crud_routes
from .actions import add_action_routes


def build_operation_router(kind: OperationKind) -> APIRouter:
    # 增删改查与状态变更注册在同一个路由上
    router = APIRouter()
    add_crud_routes(router, kind)
    add_action_routes(router, kind)
    return router


receipts_router = build_operation_router(RECEIPT)
deliveries_router = build_operation_router(DELIVERY)
internal_transfers_router = build_operation_router(INTERNAL_TRANSFER)
dropships_router = build_operation_router(DROPSHIP)
