"""
枚举定义
数据库中以字符串存储，str 枚举可直接与列值比较
"""

from enum import Enum


class LocationType(str, Enum):
    SUPPLIER = "supplier"
    VIEW = "view"
    INTERNAL = "internal"
    CUSTOMER = "customer"
    INVENTORY = "inventory"
    PRODUCTION = "production"
    TRANSIT = "transit"


class OperationTypeEnum(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
    INTERNAL = "internal"
    DROPSHIP = "dropship"


class OperationState(str, Enum):
    DRAFT = "draft"
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    DONE = "done"
    CANCELED = "canceled"


class MoveState(str, Enum):
    DRAFT = "draft"
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    PARTIALLY_ASSIGNED = "partially_available"
    ASSIGNED = "assigned"
    DONE = "done"
    CANCELED = "canceled"


class MoveType(str, Enum):
    DIRECT = "direct"
    ONE = "one"


class CreateBackorder(str, Enum):
    ASK = "ask"
    ALWAYS = "always"
    NEVER = "never"


class ScrapState(str, Enum):
    DRAFT = "draft"
    DONE = "done"


class ProductTracking(str, Enum):
    NONE = "none"
    LOT = "lot"
    SERIAL = "serial"


class UOMType(str, Enum):
    REFERENCE = "reference"
    BIGGER = "bigger"
    SMALLER = "smaller"


class RequisitionType(str, Enum):
    BLANKET_ORDER = "blanket_order"
    PURCHASE_TEMPLATE = "purchase_template"


class RequisitionState(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    CLOSED = "closed"
    CANCELED = "canceled"


class PurchaseOrderState(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PURCHASE = "purchase"
    DONE = "done"
    CANCELED = "canceled"


class ReceiptStatus(str, Enum):
    NO = "no"
    PENDING = "pending"
    PARTIAL = "partial"
    FULL = "full"


# 可持有库存、需要预留的库位类型
STOCK_LOCATION_TYPES = (LocationType.INTERNAL.value, LocationType.TRANSIT.value)

# 仍可处理的移动状态
OPEN_MOVE_STATES = (
    MoveState.DRAFT.value,
    MoveState.WAITING.value,
    MoveState.CONFIRMED.value,
    MoveState.PARTIALLY_ASSIGNED.value,
    MoveState.ASSIGNED.value,
)
