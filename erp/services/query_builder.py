"""
列表查询构建
解析 filter[xxx] / sort / include / page / per_page 查询参数，
只允许白名单内的字段，未声明的参数返回 400

示例：
    GET /receipts?filter[state]=draft,confirmed&filter[name]=IN&sort=-id&include=moves.product&page=2
"""

import math
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from fastapi import HTTPException, Request
from sqlalchemy import Boolean, Integer, Numeric, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from erp.core.config import settings

_FILTER_PARAM = re.compile(r"^filter\[(?P<name>[^\]]+)\]$")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def snake_case(name: str) -> str:
    """operationType -> operation_type"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _coerce(column, raw: str) -> Any:
    """按列类型转换查询参数"""
    column_type = getattr(column, "type", None)
    if isinstance(column_type, Boolean):
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise HTTPException(status_code=400, detail=f"Invalid boolean filter value `{raw}`.")
    if isinstance(column_type, Integer):
        try:
            return int(raw)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid integer filter value `{raw}`.")
    if isinstance(column_type, Numeric):
        return raw.strip()
    return raw


class AllowedFilter:
    """可用过滤器

    - exact: 精确匹配，逗号分隔表示 IN
    - partial: 模糊匹配（LIKE %value%）
    - callback: 自定义条件 fn(model, value) -> 条件表达式
    - trashed: 软删除记录的可见性（with / only）
    """

    def __init__(self, name: str, kind: str = "exact", column: Optional[str] = None,
                 callback: Optional[Callable] = None):
        self.name = name
        self.kind = kind
        self.column = column or name
        self.callback = callback

    @classmethod
    def exact(cls, name: str, column: Optional[str] = None) -> "AllowedFilter":
        return cls(name, "exact", column)

    @classmethod
    def partial(cls, name: str, column: Optional[str] = None) -> "AllowedFilter":
        return cls(name, "partial", column)

    @classmethod
    def custom(cls, name: str, callback: Callable) -> "AllowedFilter":
        return cls(name, "callback", callback=callback)

    @classmethod
    def trashed(cls) -> "AllowedFilter":
        return cls("trashed", "trashed")

    def condition(self, model, raw: str):
        if self.kind == "callback":
            values = [v for v in raw.split(",") if v != ""]
            return self.callback(model, values[0] if len(values) == 1 else values)

        column = getattr(model, self.column)
        if self.kind == "partial":
            return func.lower(column).like(f"%{raw.lower()}%")

        values = [_coerce(column, v) for v in raw.split(",") if v != ""]
        if len(values) == 1:
            return column == values[0]
        return column.in_(values)


class QueryBuilder:
    """
    列表查询

    Args:
        model: ORM 模型
        request: 当前请求（读取查询参数）
        filters: 允许的过滤器
        sorts: 允许排序的字段
        includes: 允许加载的关联（支持 a.b 嵌套）
        include_aliases: 关联名 -> 模型属性名（默认驼峰转下划线）
        conditions: 固定条件（如限定作业类型）
        soft_delete: 模型是否软删除（默认只查未删除）
    """

    def __init__(
        self,
        model,
        request: Request,
        filters: Sequence[AllowedFilter] = (),
        sorts: Sequence[str] = (),
        includes: Sequence[str] = (),
        include_aliases: Optional[Dict[str, str]] = None,
        conditions: Iterable = (),
        soft_delete: bool = False,
        default_sort: str = "id",
    ):
        self.model = model
        self.request = request
        self.filters = {f.name: f for f in filters}
        self.sorts = list(sorts)
        self.allowed_includes = list(includes)
        self.include_aliases = include_aliases or {}
        self.conditions = list(conditions)
        self.soft_delete = soft_delete
        self.default_sort = default_sort

    # ===== 参数解析 =====

    def _filter_params(self) -> Dict[str, str]:
        params = {}
        for key, value in self.request.query_params.items():
            match = _FILTER_PARAM.match(key)
            if match:
                params[match.group("name")] = value
        return params

    def requested_includes(self) -> List[str]:
        raw = self.request.query_params.get("include", "")
        requested = [i.strip() for i in raw.split(",") if i.strip()]
        unknown = [i for i in requested if i not in self.allowed_includes]
        if unknown:
            raise HTTPException(
                status_code=400,
                detail=f"Requested include(s) `{', '.join(unknown)}` are not allowed. "
                       f"Allowed include(s) are `{', '.join(self.allowed_includes)}`.",
            )
        return requested

    def build_conditions(self) -> List:
        conditions = list(self.conditions)
        params = self._filter_params()

        unknown = [name for name in params if name not in self.filters]
        if unknown:
            raise HTTPException(
                status_code=400,
                detail=f"Requested filter(s) `{', '.join(unknown)}` are not allowed. "
                       f"Allowed filter(s) are `{', '.join(self.filters)}`.",
            )

        trashed = None
        for name, raw in params.items():
            allowed = self.filters[name]
            if allowed.kind == "trashed":
                trashed = raw
                continue
            if raw == "":
                continue
            conditions.append(allowed.condition(self.model, raw))

        if self.soft_delete:
            if trashed == "only":
                conditions.append(self.model.deleted_at.is_not(None))
            elif trashed != "with":
                conditions.append(self.model.deleted_at.is_(None))
        return conditions

    def build_order_by(self) -> List:
        raw = self.request.query_params.get("sort") or self.default_sort
        order_by = []
        for part in [p.strip() for p in raw.split(",") if p.strip()]:
            descending = part.startswith("-")
            name = part.lstrip("-")
            if name not in self.sorts and part != self.default_sort:
                raise HTTPException(
                    status_code=400,
                    detail=f"Requested sort(s) `{name}` is not allowed. "
                           f"Allowed sort(s) are `{', '.join(self.sorts)}`.",
                )
            column = getattr(self.model, name)
            order_by.append(column.desc() if descending else column.asc())
        return order_by

    # ===== 关联加载 =====

    def _attribute_name(self, segment: str) -> str:
        return self.include_aliases.get(segment, snake_case(segment))

    def loader_options(self, includes: Sequence[str]) -> List:
        """a.b.c -> selectinload(A.b).selectinload(B.c)..."""
        options = []
        for include in includes:
            mapper_cls = self.model
            option = None
            for segment in include.split("."):
                attr = getattr(mapper_cls, self._attribute_name(segment))
                option = selectinload(attr) if option is None else option.selectinload(attr)
                mapper_cls = attr.property.mapper.class_
                # 回到已出现过的模型时默认的 selectin 不会触发，需显式加载
                for name in getattr(mapper_cls, "include_loads", ()):
                    options.append(option.selectinload(getattr(mapper_cls, name)))
            options.append(option)
        return options

    def include_tree(self, includes: Sequence[str]) -> Dict[str, Dict]:
        """["moves", "moves.product"] -> {"moves": {"product": {}}}，键为模型属性名"""
        tree: Dict[str, Dict] = {}
        for include in includes:
            node = tree
            for segment in include.split("."):
                node = node.setdefault(self._attribute_name(segment), {})
        return tree

    # ===== 执行 =====

    async def find(self, db: AsyncSession, object_id: int, with_trashed: bool = False):
        """
        按 id 查询单条记录（带 include），不存在返回 404

        Returns:
            (记录, 关联树)
        """
        includes = self.requested_includes()
        query = (
            select(self.model)
            .where(self.model.id == object_id, *self.conditions)
            .options(*self.loader_options(includes))
            .execution_options(populate_existing=True)
        )
        if self.soft_delete and not with_trashed:
            query = query.where(self.model.deleted_at.is_(None))
        obj = (await db.execute(query)).unique().scalar_one_or_none()
        if obj is None:
            raise HTTPException(status_code=404, detail="Not found.")
        return obj, self.include_tree(includes)

    async def paginate(self, db: AsyncSession) -> Dict[str, Any]:
        """
        执行分页查询

        Returns:
            {"items": [...], "includes": {...}, "links": {...}, "meta": {...}}
        """
        includes = self.requested_includes()
        conditions = self.build_conditions()
        order_by = self.build_order_by()

        try:
            page = max(int(self.request.query_params.get("page", 1)), 1)
            per_page = int(self.request.query_params.get("per_page", settings.PER_PAGE))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid pagination parameters.")
        per_page = min(max(per_page, 1), settings.MAX_PER_PAGE)

        count_query = select(func.count()).select_from(self.model)
        if conditions:
            count_query = count_query.where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        query = select(self.model).options(*self.loader_options(includes))
        if conditions:
            query = query.where(*conditions)
        query = query.order_by(*order_by).offset((page - 1) * per_page).limit(per_page)
        items = (await db.execute(query)).unique().scalars().all()

        last_page = max(math.ceil(total / per_page), 1)
        path = str(self.request.url).split("?")[0]

        def page_url(number: int) -> str:
            return f"{path}?page={number}"

        return {
            "items": items,
            "includes": self.include_tree(includes),
            "links": {
                "first": page_url(1),
                "last": page_url(last_page),
                "prev": page_url(page - 1) if page > 1 else None,
                "next": page_url(page + 1) if page < last_page else None,
            },
            "meta": {
                "current_page": page,
                "from": (page - 1) * per_page + 1 if items else None,
                "last_page": last_page,
                "path": path,
                "per_page": per_page,
                "to": (page - 1) * per_page + len(items) if items else None,
                "total": total,
            },
        }
