"""
Request dependencies for FastAPI.

Provides JWT authentication plus the per-application ledger services
(Consistency Synchronizer, notification feed) and the Entitlement
Coordinator built from them.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.core.jwt import decode_access_token
from backend.app.core.redis_client import get_redis
from backend.app.db.session import AsyncSessionLocal, get_db
from backend.app.domain.entitlements.coordinator import EntitlementCoordinator, build_synchronizer
from backend.app.services.consistency import ConsistencySynchronizer
from backend.app.services.notification_service import NotificationService

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Validates the token signature and expiry and checks the claims the
    permission guards rely on. Staff accounts live in the upstream
    identity service, so the token is the whole identity.

    Returns:
        Decoded token payload (user_id, sub, role, permissions)

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("user_id") or not payload.get("role"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_synchronizer(request: Request, redis=Depends(get_redis)) -> ConsistencySynchronizer:
    """
    The application's synchronizer.

    Lives on app.state for the lifetime of the application session; created
    on first use when the lifespan hook did not run.
    """
    synchronizer = getattr(request.app.state, "synchronizer", None)
    if synchronizer is None:
        synchronizer = build_synchronizer(redis, AsyncSessionLocal)
        request.app.state.synchronizer = synchronizer
    return synchronizer


def get_notifier(request: Request) -> NotificationService:
    notifier = getattr(request.app.state, "notifier", None)
    if notifier is None:
        notifier = NotificationService()
        request.app.state.notifier = notifier
    return notifier


async def get_coordinator(
    db: AsyncSession = Depends(get_db),
    synchronizer: ConsistencySynchronizer = Depends(get_synchronizer),
    notifier: NotificationService = Depends(get_notifier),
    current_user: dict = Depends(get_current_user)
) -> EntitlementCoordinator:
    return EntitlementCoordinator(db, synchronizer, notifier, actor=current_user)
