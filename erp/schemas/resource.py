"""
资源序列化
模型 -> 响应 Schema -> dict，按需附带 include 指定的关联
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel

# 模型类 -> 响应 Schema
_RESOURCE_SCHEMAS: Dict[type, Type[BaseModel]] = {}


def resource(model):
    """注册模型的响应 Schema"""
    def decorator(schema_cls: Type[BaseModel]) -> Type[BaseModel]:
        _RESOURCE_SCHEMAS[model] = schema_cls
        return schema_cls
    return decorator


def to_resource(obj: Any, includes: Optional[Dict[str, Dict]] = None) -> Optional[Dict[str, Any]]:
    """
    序列化单个模型

    Args:
        includes: 关联树，如 {"moves": {"product": {}}}，关联须已加载
    """
    if obj is None:
        return None
    schema_cls = _RESOURCE_SCHEMAS[type(obj)]
    data = schema_cls.model_validate(obj).model_dump(mode="json")

    for name, children in (includes or {}).items():
        value = getattr(obj, name)
        if isinstance(value, (list, tuple)):
            data[name] = [to_resource(item, children) for item in value]
        else:
            data[name] = to_resource(value, children)
    return data


def to_collection(items, includes: Optional[Dict[str, Dict]] = None):
    return [to_resource(item, includes) for item in items]


def paginated(page: Dict[str, Any]) -> Dict[str, Any]:
    """QueryBuilder.paginate 结果 -> {data, links, meta}"""
    return {
        "data": to_collection(page["items"], page["includes"]),
        "links": page["links"],
        "meta": page["meta"],
    }
