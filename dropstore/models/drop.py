import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Boolean,
    DateTime,
    TIMESTAMP,
    text,
    Enum,
    Index,
)
from dropstore.db.base import Base, BigIntId


# 1️ Drop 状态枚举（只允许向前推进）

class DropStatus(str, enum.Enum):
    UPCOMING = "upcoming"  # 未开始
    ACTIVE = "active"      # 进行中
    ENDED = "ended"        # 已结束


# 2️ Drop 表

class Drop(Base):
    __tablename__ = "drops"

    id = Column(
        BigIntId,
        primary_key=True,
        autoincrement=True,
    )

    name = Column(
        String(100),
        nullable=False,
        comment="Drop 名称",
    )

    description = Column(Text, nullable=True)

    # 统一存储为 naive UTC
    start_date = Column(
        DateTime,
        nullable=False,
        comment="开始时间（UTC）",
    )

    end_date = Column(
        DateTime,
        nullable=False,
        comment="结束时间（UTC）",
    )

    status = Column(
        Enum(
            DropStatus,
            name="drop_status_type",
            values_callable=lambda e: [m.value for m in e],
            create_type=True,
        ),
        nullable=False,
        default=DropStatus.UPCOMING,
        server_default=DropStatus.UPCOMING.value,
        comment="当前状态",
    )

    banner_url = Column(String(255), nullable=True)

    is_pinned = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
        comment="是否置顶展示",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
        onupdate=text("CURRENT_TIMESTAMP"),
    )


# 3️ 调度器按状态 + 时间窗口扫描

Index(
    "idx_drops_status_start_end",
    Drop.status,
    Drop.start_date,
    Drop.end_date,
)
