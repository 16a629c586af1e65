import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from beekeeper.models.user import User
from beekeeper.policy.ownership import ensure_admin
from beekeeper.policy.roles import Identity
from beekeeper.site_state import SiteState
from beekeeper.utils.exceptions import AuthenticationRequired
from beekeeper.utils.security import get_current_user as resolve_user
from database import get_db

logger = logging.getLogger(__name__)


async def get_current_user(user: Optional[User] = Depends(resolve_user)) -> User:
    if user is None:
        raise AuthenticationRequired("Not authorized to access this route")
    return user


async def get_identity(user: Optional[User] = Depends(resolve_user)) -> Optional[Identity]:
    if user is None:
        return None
    return Identity.from_user(user)


async def require_identity(identity: Optional[Identity] = Depends(get_identity)) -> Identity:
    if identity is None:
        raise AuthenticationRequired("Not authorized to access this route")
    return identity


async def require_admin(identity: Identity = Depends(require_identity)) -> Identity:
    ensure_admin(identity)
    return identity


async def get_site_state(db: AsyncSession = Depends(get_db)) -> SiteState:
    # FastAPI caches this per request, so every consumer shares one snapshot
    return await SiteState.load(db)


async def check_maintenance(
        state: SiteState = Depends(get_site_state),
        identity: Optional[Identity] = Depends(get_identity)
):
    state.ensure_available(identity)


async def check_forum_enabled(state: SiteState = Depends(get_site_state)):
    state.ensure_forum_enabled()
