"""
权限定义
按插件声明资源及其权限集合，生成 {action}_{plugin}_{resource} 形式的权限码
如：update_inventory_receipt、view_any_purchase_purchase::agreement
"""

from typing import Dict, List

PERMISSION_SETS: Dict[str, List[str]] = {
    "BASIC": ["view_any", "view", "create", "update", "delete", "delete_any"],
    "REORDER": ["view_any", "view", "create", "update", "delete", "delete_any", "reorder"],
    "SOFT_DELETE": [
        "view_any", "view", "create", "update", "delete", "delete_any",
        "restore", "force_delete", "force_delete_any", "restore_any",
    ],
    "FULL": [
        "view_any", "view", "create", "update", "delete", "delete_any",
        "restore", "force_delete", "force_delete_any", "restore_any", "reorder",
    ],
}

# 插件 -> {资源: 权限集合}
RESOURCES: Dict[str, Dict[str, str]] = {
    "inventory": {
        "receipt": "BASIC",
        "delivery": "BASIC",
        "internal": "BASIC",
        "dropship": "BASIC",
        "quantity": "BASIC",
        "scrap": "BASIC",
        "lot": "BASIC",
        "warehouse": "FULL",
        "location": "SOFT_DELETE",
        "operation::type": "FULL",
        "product": "FULL",
    },
    "purchase": {
        "purchase::agreement": "SOFT_DELETE",
        "purchase::order": "BASIC",
    },
}

# 不属于资源表的独立权限
EXTRA_PERMISSIONS: Dict[str, str] = {
    "view_any_inventory_move": "查看库存移动明细",
}

ACTION_LABELS = {
    "view_any": "查看列表",
    "view": "查看",
    "create": "创建",
    "update": "更新",
    "delete": "删除",
    "delete_any": "批量删除",
    "restore": "恢复",
    "restore_any": "批量恢复",
    "force_delete": "永久删除",
    "force_delete_any": "批量永久删除",
    "reorder": "排序",
}

SUPER_ADMIN_ROLE = "super_admin"


def permission_name(action: str, plugin: str, resource: str) -> str:
    """生成权限码"""
    return f"{action}_{plugin}_{resource}"


def build_permissions() -> Dict[str, str]:
    """展开资源表，得到 权限码 -> 说明"""
    permissions: Dict[str, str] = {}
    for plugin, resources in RESOURCES.items():
        for resource, set_name in resources.items():
            for action in PERMISSION_SETS[set_name]:
                label = f"{ACTION_LABELS.get(action, action)} {plugin}/{resource}"
                permissions[permission_name(action, plugin, resource)] = label
    permissions.update(EXTRA_PERMISSIONS)
    return permissions


PERMISSIONS: Dict[str, str] = build_permissions()
