"""Shared fixtures for two-factor tests."""

import base64
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

# Force test config before importing app modules.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENCRYPTION_KEY"] = base64.urlsafe_b64encode(b"0123456789abcdef0123456789abcdef").decode()
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789-abcdefghijklmnop"
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CORS_ORIGINS"] = "http://localhost:3000"

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from twofactor_api.models.orm import Base, UserORM
from twofactor_api.security.password import PasswordService
from twofactor_api.services.qr_renderer import QrRenderError, QrRenderOptions
from twofactor_api.services.totp_engine import TotpEngine
from twofactor_api.services.two_factor_service import TwoFactorService

USER_PASSWORD = "correct horse battery staple"

# Low cost factor keeps bcrypt fast in tests
_password_service = PasswordService(rounds=4)


class FakeClock:
    """Controllable clock returning aware UTC datetimes."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeQrRenderer:
    """Renderer that fails a configurable number of times, recording calls."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[tuple[str, QrRenderOptions]] = []

    def render(self, uri: str, options: QrRenderOptions) -> str:
        self.calls.append((uri, options))
        if len(self.calls) <= self.failures:
            raise QrRenderError("renderer unavailable")
        return f"data:image/png;base64,fake{len(self.calls)}"


_totp_engine = TotpEngine(valid_window=2)


def totp_at(secret: str, when: datetime) -> str:
    """Code a correctly configured authenticator shows at ``when``."""
    return _totp_engine.at(secret, when)


def wrong_totp(secret: str, when: datetime, window: int = 3) -> str:
    """A 6-digit code that is not valid anywhere near ``when``."""
    valid = {
        _totp_engine.at(secret, when + timedelta(seconds=30 * step))
        for step in range(-window, window + 1)
    }
    for candidate in ("000000", "111111", "123456", "999999", "424242"):
        if candidate not in valid:
            return candidate
    raise AssertionError("no wrong code found")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def qr_renderer() -> FakeQrRenderer:
    return FakeQrRenderer()


async def create_user(
    session: AsyncSession,
    username: str = "jdoe",
    email: str | None = "jane.doe@example.com",
    password: str | None = USER_PASSWORD,
    is_superadmin: bool = False,
) -> UserORM:
    """Insert a user row and return it."""
    user = UserORM(
        username=username,
        email=email,
        password_hash=_password_service.hash_password(password) if password else None,
        is_active=True,
        is_superadmin=is_superadmin,
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def user(session) -> UserORM:
    return await create_user(session)


@pytest.fixture
def service(session, qr_renderer, clock) -> TwoFactorService:
    return TwoFactorService(session, qr_renderer=qr_renderer, clock=clock)
