from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    PROJECT_NAME: str = "ERP 业务套件 API"
    API_V1_STR: str = "/admin/api/v1"

    # 重要：生产环境必须通过 .env 文件或环境变量设置此值
    SECRET_KEY: str = Field(
        default="dev-only-secret-key-please-change-in-production",
        description="JWT密钥，生产环境必须修改"
    )
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7天
    BCRYPT_ROUNDS: int = 12

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置
    SQLITE_DATABASE_URI: str = "sqlite:///./erp.db"

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # 分页配置
    PER_PAGE: int = 15
    MAX_PER_PAGE: int = 100

    # 库存预留定时任务
    SCHEDULER_ENABLED: bool = True
    RESERVATION_INTERVAL_MINUTES: int = 15

    # 首次启动时写入基础数据
    SEED_DEFAULT_DATA: bool = True
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "admin123"

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.info(f"加载配置: API_V1_STR={settings.API_V1_STR}, CORS={settings.BACKEND_CORS_ORIGINS}")
