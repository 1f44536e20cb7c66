"""
Database models.

  - smart_links is mutable (edit, rename, delete)
  - clicks is append-only and outlives its link: link_id carries no foreign
    key, so deleting a link keeps its click history
"""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Entity tables
# ---------------------------------------------------------------------------

class SmartLink(Base):
    __tablename__ = "smart_links"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    slug = Column(String(100), nullable=False, unique=True, index=True)

    # Last resort, and the synthesizer's input
    web_fallback = Column(Text, nullable=False)

    # Deep links: custom scheme or Universal/App Link
    ios_url = Column(Text, nullable=True)
    android_url = Column(Text, nullable=True)

    # Store fallbacks
    ios_appstore_url = Column(Text, nullable=True)
    android_playstore_url = Column(Text, nullable=True)

    title = Column(String(255), nullable=True)
    platform = Column(String(50), nullable=True)             # derived from web_fallback
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ---------------------------------------------------------------------------
# Event tables (append-only)
# ---------------------------------------------------------------------------

class Click(Base):
    """One row per hit on /s/{slug}."""
    __tablename__ = "clicks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    link_id = Column(Uuid(as_uuid=True), nullable=False, index=True)

    # --- Request ---
    user_agent = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    referrer = Column(Text, nullable=True)

    # --- Device classification ---
    device = Column(String(20), nullable=True)               # ios, android, desktop
    browser = Column(String(20), nullable=True)
    platform_class = Column(String(20), nullable=True)       # mobile, tablet, desktop
    is_social_app = Column(Boolean, default=False)

    # --- Enrichment (user-agents) ---
    os_version = Column(String(20), nullable=True)
    browser_version = Column(String(20), nullable=True)
    is_bot = Column(Boolean, default=False)

    # --- UTM ---
    utm_source = Column(String(255), nullable=True)
    utm_medium = Column(String(255), nullable=True)
    utm_campaign = Column(String(255), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_clicks_link_timestamp", "link_id", "timestamp"),
    )
