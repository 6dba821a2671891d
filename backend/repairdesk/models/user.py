import sqlalchemy as sa
from sqlalchemy import JSON, Boolean, DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column
from repairdesk.db.base import Base
from datetime import datetime
from repairdesk.models.enums import UserRole

class User(Base):
    __tablename__ = "users"

    # Same uid as the identity service account.
    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(32), nullable=True)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    permissions: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    business_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    fcm_tokens: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    # Legacy single-device field, read only when fcm_tokens is empty.
    fcm_token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True
    )

    __table_args__ = (
        sa.Index("ix_users_mobile", "mobile"),
        sa.Index("ix_users_role", "role"),
        sa.Index("ix_users_business", "business_id"),
    )
