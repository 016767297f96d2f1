"""Repositories package."""

from twofactor_api.repositories.base import BaseRepository
from twofactor_api.repositories.two_factor_repository import TwoFactorRepository
from twofactor_api.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "TwoFactorRepository",
    "UserRepository",
]
