"""
Closed records that cross the core boundary.

LinkRecord is validated at the lookup boundary: rows that don't fit are
rejected there and never reach the synthesizer or the redirect sequencer.
Malformed optional deep links or store URLs are dropped instead: the link
still resolves and falls through to web_fallback.
"""

import re
from datetime import datetime, timezone
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.deeplinks import is_custom_scheme, is_web_url
from app.core.platforms import detect_platform

SLUG_RE = re.compile(r"^[A-Za-z0-9_-]{1,100}$")
SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://\S*$")


def validate_slug(slug: str) -> str:
    slug = (slug or "").strip()
    if not SLUG_RE.match(slug):
        raise ValueError("slug may only contain letters, digits, '-' and '_' (1-100 chars)")
    return slug


def validate_web_url(url: str) -> str:
    url = (url or "").strip()
    if not is_web_url(url) or detect_platform(url) is None:
        raise ValueError("web_fallback must be a valid http:// or https:// URL")
    return url


def validate_store_url(url: str) -> str:
    url = (url or "").strip()
    if not is_web_url(url) or detect_platform(url) is None:
        raise ValueError("store URLs must be valid http:// or https:// URLs")
    return url


def validate_deep_link(url: str) -> str:
    """http(s) App/Universal Links, intent:// URIs or a custom scheme://."""
    url = (url or "").strip()
    if is_web_url(url):
        if detect_platform(url) is None:
            raise ValueError("deep link is not a valid http(s) URL")
        return url
    if not SCHEME_RE.match(url) or not (url.startswith("intent://") or is_custom_scheme(url)):
        raise ValueError("deep links must look like scheme://path")
    return url


class LinkRecord(BaseModel):
    id: UUID | None = None
    slug: str
    web_fallback: str
    ios_url: str | None = None
    android_url: str | None = None
    ios_appstore_url: str | None = None
    android_playstore_url: str | None = None
    title: str | None = None
    platform: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True, "extra": "ignore"}

    @field_validator("slug")
    @classmethod
    def check_slug(cls, v: str) -> str:
        return validate_slug(v)

    @field_validator("web_fallback")
    @classmethod
    def check_web_fallback(cls, v: str) -> str:
        return validate_web_url(v)

    @field_validator(
        "ios_url", "android_url", "ios_appstore_url", "android_playstore_url", "title",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("ios_appstore_url", "android_playstore_url")
    @classmethod
    def drop_bad_store_url(cls, v: str | None) -> str | None:
        # A stale bad value costs the store hop, not the whole link
        try:
            return validate_store_url(v) if v else v
        except ValueError:
            return None

    @field_validator("ios_url", "android_url")
    @classmethod
    def drop_bad_deep_link(cls, v: str | None) -> str | None:
        try:
            return validate_deep_link(v) if v else v
        except ValueError:
            return None

    @model_validator(mode="after")
    def derive_platform(self):
        # Derived, never authoritative
        if not self.platform:
            self.platform = detect_platform(self.web_fallback) or "web"
        return self

    def deep_link_for(self, device: str) -> str | None:
        if device == "ios":
            return self.ios_url
        if device == "android":
            return self.android_url
        return None

    def store_url_for(self, device: str) -> str | None:
        if device == "ios":
            return self.ios_appstore_url
        if device == "android":
            return self.android_playstore_url
        return None


class ClickEventIn(BaseModel):
    """One click on /s/{slug}. Write-only from the core's point of view."""
    link_id: UUID
    user_agent: str | None = None
    ip: str | None = None
    referrer: str | None = None
    device: str
    browser: str
    platform_class: str
    is_social_app: bool = False
    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None
    # Enrichment (user-agents)
    os_version: str | None = None
    browser_version: str | None = None
    is_bot: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
