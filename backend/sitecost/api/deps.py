"""FastAPI dependency injection — store access and auth guard."""
from typing import Any, Dict

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from sitecost.config import Settings
from sitecost.db import get_db
from sitecost.store.base import EntityType, ResourceStore
from sitecost.store.sqlalchemy_store import SqlAlchemyResourceStore

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_store(db: AsyncSession = Depends(get_db)) -> ResourceStore:
    return SqlAlchemyResourceStore(db)


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
    store: ResourceStore = Depends(get_store),
) -> Dict[str, Any]:
    """Verify the bearer token and load the admin it names. Tokens are issued elsewhere."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(
            credentials.credentials, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
        admin_id = payload.get("id") or payload.get("sub")
        if not admin_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    admin = await store.find_by_id(EntityType.ADMIN, admin_id)
    if not admin or not admin.get("is_active", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin not found or inactive")
    return admin
