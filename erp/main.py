from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from erp.api.api_v1.api import api_router
from erp.core.config import settings
from erp.core.exceptions import register_exception_handlers
from erp.core.logging_config import setup_logging, get_logger
from erp.services.scheduler import init_scheduler, shutdown_scheduler, get_scheduler_status
from erp.db.session import SessionLocal
from erp.db.init_db import ensure_tables_exist, seed_default_data

# 初始化日志系统
setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("🚀 应用启动中...")

    await ensure_tables_exist()
    logger.info("📊 数据库表已就绪")

    if settings.SEED_DEFAULT_DATA:
        async with SessionLocal() as db:
            await seed_default_data(db)

    init_scheduler()
    yield
    logger.info("🛑 应用关闭中...")
    shutdown_scheduler()

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    description="ERP 业务套件 - 库存与采购",
    lifespan=lifespan
)

# CORS配置
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"配置CORS，允许的源: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

register_exception_handlers(app)

logger.info(f"注册API v1路由，前缀: {settings.API_V1_STR}")
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": "ERP 业务套件 API"}


@app.get("/health")
async def health():
    return {"status": "ok", "scheduler": get_scheduler_status()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")
