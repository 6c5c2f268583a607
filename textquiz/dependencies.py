from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from textquiz.config import AppConfig, Settings, get_config, get_settings
from textquiz.core.database import get_db
from textquiz.core.security import verify_admin_key
from textquiz.services.transport import Transport, get_transport

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Config = Annotated[AppConfig, Depends(get_config)]


def get_sms_transport(settings: AppSettings) -> Transport:
    """Outbound SMS transport for request handlers."""
    return get_transport(settings)


SMSTransport = Annotated[Transport, Depends(get_sms_transport)]


async def require_admin(
    settings: AppSettings,
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> None:
    """Guard operator endpoints with the X-Admin-Key header."""
    if not verify_admin_key(settings.admin_api_key, x_admin_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )


AdminRequired = Depends(require_admin)
