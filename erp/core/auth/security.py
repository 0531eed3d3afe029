"""密码哈希与访问令牌"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt

from erp.core.config import settings


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # 哈希格式损坏
        return False


def create_access_token(subject: Any, expires_delta: Optional[timedelta] = None) -> Dict[str, Any]:
    """
    签发访问令牌

    Returns:
        {"access_token": ..., "expires_at": datetime}
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(subject), "exp": expire}
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return {"access_token": token, "expires_at": expire}


def decode_access_token(token: str) -> Optional[int]:
    """解析令牌，返回用户ID；无效或过期返回 None"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None
    sub = payload.get("sub")
    if sub is None or not str(sub).isdigit():
        return None
    return int(sub)
