"""API routers package."""

from twofactor_api.routers import admin_two_factor, two_factor

__all__ = [
    "admin_two_factor",
    "two_factor",
]
