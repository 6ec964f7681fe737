"""
应用配置
从环境变量读取配置，支持 .env 文件覆盖
"""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "GuestPass"
    DEBUG: bool = False

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./guestpass.db"

    # 员工 JWT 配置
    SECRET_KEY: str = "guestpass-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 客人访问凭证（二维码）配置
    GUEST_TOKEN_DEFAULT_TTL_HOURS: int = 72   # 调用方未指定 ttl 时的默认值
    TABLE_SESSION_TTL_HOURS: int = 4          # 堂食点餐会话有效期
    CHECKOUT_HOUR: int = 12                   # 离店日当天凭证失效的时刻

    # 订单金额校验容差
    ORDER_TOTAL_EPSILON: float = 0.01

    # 事件总线保留的最近事件条数
    EVENT_HISTORY_SIZE: int = 100

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
