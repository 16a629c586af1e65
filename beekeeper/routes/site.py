from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List

from starlette import status

from beekeeper.models.site import Feature, SiteSettings
from beekeeper.policy.roles import Identity
from beekeeper.schemas.common import ApiResponse
from beekeeper.schemas.site import FeatureResponse, FeatureUpdate, SiteSettingsResponse, SiteSettingsUpdate
from beekeeper.utils.exceptions import PASSTHROUGH_ERRORS
from dependencies import get_db, require_admin, logger

router = APIRouter()


async def _get_or_create_settings(db: AsyncSession) -> SiteSettings:
    settings = await db.scalar(select(SiteSettings).order_by(SiteSettings.id).limit(1))
    if settings is None:
        settings = SiteSettings(site_title="BeeKeeper's Blog", maintenance_mode=False)
        db.add(settings)
        await db.flush()
    return settings


@router.get("/site-settings", response_model=ApiResponse[SiteSettingsResponse])
async def get_site_settings(db: AsyncSession = Depends(get_db)):
    """Public, so clients can render the maintenance page."""
    settings = await db.scalar(select(SiteSettings).order_by(SiteSettings.id).limit(1))
    if settings is None:
        return ApiResponse(data=SiteSettingsResponse(site_title="BeeKeeper's Blog"))
    return ApiResponse(data=SiteSettingsResponse.model_validate(settings))


@router.put("/site-settings", response_model=ApiResponse[SiteSettingsResponse])
async def update_site_settings(
    settings_update: SiteSettingsUpdate,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        settings = await _get_or_create_settings(db)
        for field, value in settings_update.dict(exclude_unset=True).items():
            setattr(settings, field, value)

        await db.commit()
        await db.refresh(settings)
        logger.info(f"Site settings updated by admin {admin.id}, maintenance={settings.maintenance_mode}")

        return ApiResponse(message="Site settings updated", data=SiteSettingsResponse.model_validate(settings))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating site settings: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update site settings"
        )


@router.get("/features", response_model=ApiResponse[List[FeatureResponse]])
async def list_features(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Feature).order_by(Feature.name))
    return ApiResponse(data=[FeatureResponse.model_validate(f) for f in result.scalars().all()])


@router.get("/features/{name}", response_model=ApiResponse[FeatureResponse])
async def get_feature(name: str, db: AsyncSession = Depends(get_db)):
    # unknown features read as disabled
    feature = await db.scalar(select(Feature).filter(Feature.name == name.lower()))
    if feature is None:
        return ApiResponse(data=FeatureResponse(name=name.lower(), enabled=False))
    return ApiResponse(data=FeatureResponse.model_validate(feature))


@router.put("/features/{name}", response_model=ApiResponse[FeatureResponse])
async def toggle_feature(
    name: str,
    feature_update: FeatureUpdate,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Turn a feature on or off, creating it on first use."""
    try:
        feature_name = name.lower()
        feature = await db.scalar(select(Feature).filter(Feature.name == feature_name))
        if feature is None:
            feature = Feature(name=feature_name, enabled=feature_update.enabled)
            db.add(feature)
        else:
            feature.enabled = feature_update.enabled

        await db.commit()
        await db.refresh(feature)
        state = "enabled" if feature.enabled else "disabled"
        logger.info(f"Feature '{feature_name}' {state} by admin {admin.id}")

        return ApiResponse(message=f"Feature '{feature_name}' {state}", data=FeatureResponse.model_validate(feature))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error toggling feature {name}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update feature"
        )
