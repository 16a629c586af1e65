from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from beekeeper.models.site import Feature, SiteSettings
from beekeeper.policy.roles import Identity
from beekeeper.utils.exceptions import FeatureDisabled, MaintenanceActive

FORUM_FEATURE = "forum"


@dataclass(frozen=True)
class SiteState:
    """Feature flags and maintenance settings, read once per request."""
    forum_enabled: bool = False
    maintenance_mode: bool = False
    maintenance_title: Optional[str] = None
    maintenance_message: Optional[str] = None
    maintenance_estimated_time: Optional[str] = None

    @classmethod
    async def load(cls, db: AsyncSession) -> "SiteState":
        forum_enabled = await db.scalar(select(Feature.enabled).filter(Feature.name == FORUM_FEATURE))
        settings = await db.scalar(select(SiteSettings).order_by(SiteSettings.id).limit(1))
        if settings is None:
            return cls(forum_enabled=bool(forum_enabled))
        return cls(
            forum_enabled=bool(forum_enabled),
            maintenance_mode=bool(settings.maintenance_mode),
            maintenance_title=settings.maintenance_title,
            maintenance_message=settings.maintenance_message,
            maintenance_estimated_time=settings.maintenance_estimated_time,
        )

    def ensure_forum_enabled(self) -> None:
        if not self.forum_enabled:
            raise FeatureDisabled("forum")

    def ensure_available(self, identity: Optional[Identity]) -> None:
        # admins keep working during maintenance
        if self.maintenance_mode and not (identity is not None and identity.is_admin):
            raise MaintenanceActive(
                title=self.maintenance_title,
                message=self.maintenance_message,
                estimated_time=self.maintenance_estimated_time,
            )
