from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from database import Base


class Feature(Base):
    __tablename__ = "features"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    enabled = Column(Boolean, default=False, nullable=False)
    last_modified = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class SiteSettings(Base):
    __tablename__ = "site_settings"

    id = Column(Integer, primary_key=True)
    site_title = Column(String(100), default="BeeKeeper's Blog")
    maintenance_mode = Column(Boolean, default=False, nullable=False)
    maintenance_title = Column(String(255), nullable=True)
    maintenance_message = Column(Text, nullable=True)
    maintenance_estimated_time = Column(String(100), nullable=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
