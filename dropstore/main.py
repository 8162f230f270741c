from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy import text

from dropstore.core.config import settings
from dropstore.core.dependencies import get_async_redis, AsyncRedisDep
from dropstore.core.exceptions import ServiceError
from dropstore.core.redis import redlock
from dropstore.core.scheduler import DropStatusScheduler
from dropstore.core.timeutils import utcnow
from dropstore.db.session import engine, SessionLocal
from dropstore.routers import products_router, drops_router, drops_admin_router, orders_router
from dropstore.schemas.base import HealthCheckResponse

import uvicorn

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # 应用启动时的初始化
    logger.info("Starting application...")

    # 数据库连接检查：连不上直接启动失败
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
    except Exception as e:
        logger.error("❌ Database connection failed: %s", e)
        raise

    # Redis 连接检查
    redis = get_async_redis()
    try:
        await redis.ping()
        logger.info("✅ Redis connected successfully")
    except Exception as e:
        logger.warning(f"⚠️  Redis connection failed: {e}")
        logger.warning("⚠️  Order creation will return 429 until Redis is reachable")

    # Drop 状态调度器
    scheduler = None
    if settings.DROP_SCHEDULER_ENABLED:
        scheduler = DropStatusScheduler(
            SessionLocal,
            interval_seconds=settings.DROP_SCHEDULER_INTERVAL_SECONDS,
            rlock=redlock,
        )
        scheduler.start()
    app.state.drop_scheduler = scheduler

    yield

    # 应用关闭时的清理
    logger.info("Shutting down application...")
    if scheduler is not None:
        scheduler.stop()

# 创建 FastAPI 应用
app = FastAPI(
    title="Drop Store API",
    description="限量发售（Drop）电商后端：Drop 生命周期、限量库存与订单一致性",
    version="1.0.0",
    lifespan=lifespan
)

# 添加 CORS 中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境中应该指定具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(products_router.router, prefix="/api/v1")
app.include_router(drops_router.router, prefix="/api/v1")
app.include_router(drops_admin_router.router, prefix="/api/v1")
app.include_router(orders_router.router, prefix="/api/v1")

# 全局异常处理
def jsonable_errors(exc: RequestValidationError) -> list:
    """错误详情中的 ctx 可能包含异常对象，只保留可序列化字段"""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "code": "BAD_REQUEST",
            "message": "Request validation failed",
            "details": jsonable_errors(exc)
        }
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    if exc.status_code >= 500:
        logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
    else:
        logger.info(f"HTTP error: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "code": exc.code if isinstance(exc, ServiceError) else str(exc.status_code),
            "message": exc.detail
        }
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "code": "INTERNAL_SERVER_ERROR",
            "message": "Internal server error"
        }
    )

# 健康检查端点
@app.get("/health", response_model=HealthCheckResponse)
async def health_check(redis = AsyncRedisDep):
    """健康检查接口"""
    try:
        redis_ok = bool(await redis.ping())
    except Exception:
        redis_ok = False
    return HealthCheckResponse(redis=redis_ok, checked_at=utcnow())

@app.get("/")
async def read_root():
    """API 根路径"""
    return {
        "message": "Drop Store API",
        "docs": "/docs",
        "health": "/health"
    }




if __name__ == "__main__":
    uvicorn.run(
        "dropstore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
