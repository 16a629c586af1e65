from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class FeatureResponse(BaseModel):
    name: str
    enabled: bool
    last_modified: Optional[datetime] = None

    class Config:
        from_attributes = True


class FeatureUpdate(BaseModel):
    enabled: bool


class SiteSettingsResponse(BaseModel):
    site_title: Optional[str] = None
    maintenance_mode: bool = False
    maintenance_title: Optional[str] = None
    maintenance_message: Optional[str] = None
    maintenance_estimated_time: Optional[str] = None

    class Config:
        from_attributes = True


class SiteSettingsUpdate(BaseModel):
    site_title: Optional[str] = Field(None, max_length=100)
    maintenance_mode: Optional[bool] = None
    maintenance_title: Optional[str] = Field(None, max_length=255)
    maintenance_message: Optional[str] = None
    maintenance_estimated_time: Optional[str] = Field(None, max_length=100)
