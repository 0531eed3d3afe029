"""V1 API 路由聚合 - 认证、库存、采购"""
from fastapi import APIRouter

from erp.api.api_v1.endpoints import (
    auth, warehouses, locations, operation_types, products, lots,
    moves, quantities, scraps, purchase_agreements, purchase_orders,
)
# 收货/发货/内部调拨/直运共用作业路由
from erp.api.api_v1.endpoints.operations import (
    receipts_router, deliveries_router, internal_transfers_router, dropships_router,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["认证"])

# 库存配置
api_router.include_router(warehouses.router, prefix="/inventories/warehouses", tags=["仓库"])
api_router.include_router(locations.router, prefix="/inventories/locations", tags=["库位"])
api_router.include_router(operation_types.router, prefix="/inventories/operation-types", tags=["作业类型"])
api_router.include_router(products.router, prefix="/inventories/products", tags=["商品"])
api_router.include_router(lots.router, prefix="/inventories/lots", tags=["批次"])

# 库存作业
api_router.include_router(receipts_router, prefix="/inventories/receipts", tags=["收货"])
api_router.include_router(deliveries_router, prefix="/inventories/deliveries", tags=["发货"])
api_router.include_router(internal_transfers_router, prefix="/inventories/internal-transfers", tags=["内部调拨"])
api_router.include_router(dropships_router, prefix="/inventories/dropships", tags=["直运"])
api_router.include_router(moves.router, prefix="/inventories/moves", tags=["移动明细"])
api_router.include_router(quantities.router, prefix="/inventories/quantities", tags=["库存数量"])
api_router.include_router(scraps.router, prefix="/inventories/scraps", tags=["报废"])

# 采购
api_router.include_router(purchase_agreements.router, prefix="/purchases/purchase-agreements", tags=["采购协议"])
api_router.include_router(purchase_orders.router, prefix="/purchases/purchase-orders", tags=["采购订单"])
