"""测试配置和 fixtures"""
from datetime import timedelta

import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from redlock import Redlock

from dropstore.db.base import Base
from dropstore.core.dependencies import get_db, get_redlock, get_async_redis
from dropstore.core.timeutils import utcnow
from dropstore.main import app
from dropstore.models import User, UserRole, Product, ProductStatus, Drop, DropStatus, DropProduct


@pytest.fixture
def engine():
    """内存 SQLite，所有线程共享同一连接"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    """创建测试数据库会话"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mock_redlock():
    """创建模拟 Redlock 分布式锁"""
    redlock_mock = Mock(spec=Redlock)
    lock_mock = Mock()
    redlock_mock.lock.return_value = lock_mock
    redlock_mock.unlock.return_value = True
    return redlock_mock


@pytest.fixture
def users(db_session):
    """普通用户、另一个普通用户、管理员"""
    rows = [
        User(id=1, open_id="user-1", name="Test User 1", email="user1@test.com", role=UserRole.USER),
        User(id=2, open_id="user-2", name="Test User 2", email="user2@test.com", role=UserRole.USER),
        User(id=3, open_id="admin-3", name="Admin", email="admin@test.com", role=UserRole.ADMIN),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return {"user": rows[0], "other": rows[1], "admin": rows[2]}


@pytest.fixture
def products(db_session):
    """示例商品数据"""
    rows = {
        "tee": Product(name="Logo Tee", price=39000, stock=50, category="tee", status=ProductStatus.ACTIVE),
        "hoodie": Product(name="Zip Hoodie", price=89000, stock=5, category="hoodie", status=ProductStatus.ACTIVE),
        "cap": Product(name="Old Cap", price=25000, stock=10, category="cap", status=ProductStatus.DISCONTINUED),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture
def make_drop(db_session):
    """按相对当前时间的偏移创建 Drop（直接写库，不经过 Service 校验）"""
    def _make_drop(
        status=DropStatus.UPCOMING,
        start=timedelta(hours=1),
        end=timedelta(hours=2),
        name="Test Drop",
    ):
        now = utcnow()
        drop = Drop(
            name=name,
            start_date=now + start,
            end_date=now + end,
            status=status,
            is_pinned=False,
        )
        db_session.add(drop)
        db_session.commit()
        return drop
    return _make_drop


@pytest.fixture
def make_allocation(db_session):
    def _make_allocation(drop, product, limited_quantity=100, sold_quantity=0):
        allocation = DropProduct(
            drop_id=drop.id,
            product_id=product.id,
            limited_quantity=limited_quantity,
            sold_quantity=sold_quantity,
        )
        db_session.add(allocation)
        db_session.commit()
        return allocation
    return _make_allocation


@pytest.fixture
def mock_async_redis():
    async def ping():
        return True
    redis_mock = Mock()
    redis_mock.ping = ping
    return redis_mock


@pytest.fixture
def client(db_session, mock_redlock, mock_async_redis):
    """创建测试客户端（覆盖数据库与锁依赖）"""
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_redlock] = lambda: mock_redlock
    app.dependency_overrides[get_async_redis] = lambda: mock_async_redis
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user_id: int, role: str = "user") -> dict:
    return {"X-User-Id": str(user_id), "X-User-Role": role}


@pytest.fixture
def user_headers():
    return auth_headers(1)


@pytest.fixture
def other_headers():
    return auth_headers(2)


@pytest.fixture
def admin_headers():
    return auth_headers(3, "admin")
