"""
请求/响应 Schema
导入各模块以注册模型的响应 Schema
"""

from . import support, security, warehouse, product, operation, quantity, scrap, purchase  # noqa: F401
