"""Two-factor authentication ORM models."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, LargeBinary, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from twofactor_api.models.orm.base import Base, TimestampMixin, UTCDateTime, UUIDMixin


class TwoFactorRecordORM(Base, UUIDMixin, TimestampMixin):
    """Per-user TOTP enrollment, lockout counters and usage tracking."""

    __tablename__ = "two_factor_records"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    # Base32 TOTP secret, AES-256-GCM encrypted; None once purged on disable
    secret_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    setup_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Lockout state
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Usage tracking
    last_used: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    disabled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    user: Mapped["UserORM"] = relationship("UserORM", back_populates="two_factor")
    backup_codes: Mapped[list["BackupCodeORM"]] = relationship(
        "BackupCodeORM",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="BackupCodeORM.position",
    )


class BackupCodeORM(Base, UUIDMixin):
    """Single-use recovery code. Only the keyed hash is stored."""

    __tablename__ = "two_factor_backup_codes"

    record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("two_factor_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Relationships
    record: Mapped["TwoFactorRecordORM"] = relationship(
        "TwoFactorRecordORM", back_populates="backup_codes"
    )
