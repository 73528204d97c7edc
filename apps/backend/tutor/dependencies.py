from typing import AsyncIterator, Callable, Optional
from fastapi import Depends, HTTPException, Query
from tutor.ai.gateway import GatewayClient
from tutor.core.config import AIConfig, settings
from tutor.db.repository import BookRepository, MongoBookRepository
from tutor.schemas.books import User
from tutor.utils.storage import LocalBlobStore


def get_repository() -> BookRepository:
    return MongoBookRepository()


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.blob_storage_dir, settings.blob_public_base_url)


def get_ai_config() -> AIConfig:
    """AI settings for one request; AI availability is decided from this value only."""
    return AIConfig.from_settings(settings)


async def get_gateway(config: AIConfig = Depends(get_ai_config)) -> AsyncIterator[GatewayClient]:
    async with GatewayClient(config) as gateway:
        yield gateway


async def get_current_user(
    email: Optional[str] = Query(default=None),
    repo: BookRepository = Depends(get_repository),
) -> User:
    """
    Resolves the calling user from the email the frontend session carries.
    Raises 401 when no email is supplied or no such user exists.
    """
    if not email:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = await repo.get_user_by_email(email)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_role(*roles: str) -> Callable:
    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail=f"Access denied: {' or '.join(roles)} only")
        return user
    return checker


require_admin = require_role("admin")
