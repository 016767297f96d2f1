"""SQLAlchemy ORM models package."""

from twofactor_api.models.orm.base import Base
from twofactor_api.models.orm.two_factor import BackupCodeORM, TwoFactorRecordORM
from twofactor_api.models.orm.user import UserORM

__all__ = [
    "Base",
    "UserORM",
    "TwoFactorRecordORM",
    "BackupCodeORM",
]
