"""User ORM model."""

from datetime import datetime

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from twofactor_api.models.orm.base import Base, TimestampMixin, UTCDateTime, UUIDMixin


class UserORM(Base, UUIDMixin, TimestampMixin):
    """ERP user account.

    Owned by the user-management domain; the two-factor service only reads
    it to resolve an account name and to verify the account password.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_superadmin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    two_factor: Mapped["TwoFactorRecordORM"] = relationship(
        "TwoFactorRecordORM",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )
