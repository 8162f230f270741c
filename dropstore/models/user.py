import enum

from sqlalchemy import (
    Column,
    String,
    TIMESTAMP,
    text,
    Enum,
)
from dropstore.db.base import Base, BigIntId


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    open_id = Column(
        String(64),
        nullable=False,
        unique=True,
        comment="认证层返回的外部用户标识",
    )

    name = Column(String(255), nullable=True)

    email = Column(String(320), nullable=True)

    role = Column(
        Enum(
            UserRole,
            name="user_role_type",
            values_callable=lambda e: [m.value for m in e],
            create_type=True,
        ),
        nullable=False,
        server_default=UserRole.USER.value,
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )
