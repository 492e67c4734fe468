import hmac

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitepulse.core.config import settings
from sitepulse.core.exceptions import ForbiddenError, UnauthorizedError
from sitepulse.db.session import AsyncSessionLocal


async def require_admin(
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> None:
    """Dependency guarding dashboard routes with the shared admin API key."""
    if not settings.ADMIN_API_KEY:
        raise ForbiddenError("Admin API is disabled")
    if not x_api_key or not hmac.compare_digest(
        x_api_key.encode(), settings.ADMIN_API_KEY.encode()
    ):
        raise UnauthorizedError("Invalid API key")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory handed to job runners, which open their own sessions."""
    return AsyncSessionLocal
