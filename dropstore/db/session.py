from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from dropstore.core.config import settings

# 导入时即创建引擎
engine = create_engine(
    settings.database_url,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
    pool_recycle=1800,
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)
