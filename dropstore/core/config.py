import os
from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # 数据库配置
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "123456")
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "dropstore")

    # Redis 配置
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))

    # Drop 状态调度器
    DROP_SCHEDULER_ENABLED: bool = os.getenv("DROP_SCHEDULER_ENABLED", "true").lower() == "true"
    DROP_SCHEDULER_INTERVAL_SECONDS: int = int(os.getenv("DROP_SCHEDULER_INTERVAL_SECONDS", "60"))

    # 订单
    ORDER_ITEM_MAX_QUANTITY: int = int(os.getenv("ORDER_ITEM_MAX_QUANTITY", "999"))
    ORDER_NUMBER_MAX_ATTEMPTS: int = int(os.getenv("ORDER_NUMBER_MAX_ATTEMPTS", "5"))

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://"
            f"{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )

settings = Settings()
