"""
Link management API: create and manage smart links.

Create/update fill in deep links and store URLs from the web fallback when
the caller leaves them blank (autofill). Anything entered manually wins.
A URL we can't synthesize for still saves as a plain web link.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.deeplinks import ParsedLink, synthesize
from app.core.lookup import resolve_link
from app.core.platforms import detect_platform, platform_name
from app.models.database import get_db
from app.models.schemas import (
    validate_deep_link,
    validate_slug,
    validate_store_url,
    validate_web_url,
)
from app.models.tables import Click, SmartLink

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/v1/links", tags=["links"])

AUTOFILL_FIELDS = ("ios_url", "android_url", "ios_appstore_url", "android_playstore_url", "title")
URL_CHECKS = {
    "ios_url": validate_deep_link,
    "android_url": validate_deep_link,
    "ios_appstore_url": validate_store_url,
    "android_playstore_url": validate_store_url,
}


class CreateLinkRequest(BaseModel):
    slug: str
    web_fallback: str
    ios_url: str | None = None
    android_url: str | None = None
    ios_appstore_url: str | None = None
    android_playstore_url: str | None = None
    title: str | None = None
    autofill: bool = True


class UpdateLinkRequest(BaseModel):
    slug: str | None = None
    web_fallback: str | None = None
    ios_url: str | None = None
    android_url: str | None = None
    ios_appstore_url: str | None = None
    android_playstore_url: str | None = None
    title: str | None = None


class LinkResponse(BaseModel):
    id: UUID
    slug: str
    short_url: str
    web_fallback: str
    ios_url: str | None
    android_url: str | None
    ios_appstore_url: str | None
    android_playstore_url: str | None
    title: str | None
    platform: str | None
    created_at: datetime | None = None
    click_count: int = 0


class ParsedLinkResponse(BaseModel):
    platform: str
    platform_name: str
    web_fallback: str
    ios_url: str | None
    android_url: str | None
    ios_appstore_url: str | None
    android_playstore_url: str | None
    title: str | None
    confidence: str
    deep_links_found: bool


def _check_slug(slug: str) -> str:
    try:
        return validate_slug(slug)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _check_web_fallback(url: str) -> str:
    """Prevent open redirects: web_fallback must be http(s) with a real host."""
    try:
        return validate_web_url(url)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _blank(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _check_links(fields: dict) -> dict:
    """Deep links need a scheme://, store URLs must be real http(s) URLs."""
    for key, check in URL_CHECKS.items():
        if fields.get(key) is None:
            continue
        try:
            fields[key] = check(fields[key])
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"{key}: {e}")
    return fields


def _preview(url: str) -> ParsedLink:
    """synthesize(), but a recognized URL we can't extract from is web-only."""
    parsed = synthesize(url)
    if parsed is not None:
        return parsed
    tag = detect_platform(url) or "web"
    return ParsedLink(
        platform=tag,
        platform_name=platform_name(tag),
        web_fallback=url,
    )


def _autofill(web_fallback: str, fields: dict) -> dict:
    """Fill blank fields from the synthesizer. Manual entries are never touched."""
    settings = get_settings()
    parsed = _preview(web_fallback)
    if parsed.confidence == "guess" and not settings.autofill_guessed_schemes:
        return fields
    for key in AUTOFILL_FIELDS:
        if fields.get(key) is None:
            fields[key] = getattr(parsed, key)
    return fields


def _to_response(link: SmartLink, click_count: int = 0) -> LinkResponse:
    settings = get_settings()
    return LinkResponse(
        id=link.id,
        slug=link.slug,
        short_url=f"{settings.base_url}/s/{link.slug}",
        web_fallback=link.web_fallback,
        ios_url=link.ios_url,
        android_url=link.android_url,
        ios_appstore_url=link.ios_appstore_url,
        android_playstore_url=link.android_playstore_url,
        title=link.title,
        platform=link.platform,
        created_at=link.created_at,
        click_count=click_count,
    )


async def _slug_taken(db: AsyncSession, slug: str) -> bool:
    result = await db.execute(select(SmartLink).where(SmartLink.slug == slug))
    return result.scalar_one_or_none() is not None


async def _commit_or_conflict(db: AsyncSession) -> None:
    # Unique index on slug catches the check-then-insert race
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="A link with this slug already exists")


@router.post("", response_model=LinkResponse, status_code=201)
async def create_link(
    req: CreateLinkRequest,
    db: AsyncSession = Depends(get_db),
):
    slug = _check_slug(req.slug)
    web_fallback = _check_web_fallback(req.web_fallback)

    if await _slug_taken(db, slug):
        raise HTTPException(status_code=409, detail="A link with this slug already exists")

    fields = _check_links({key: _blank(getattr(req, key)) for key in AUTOFILL_FIELDS})
    if req.autofill:
        fields = _autofill(web_fallback, fields)

    link = SmartLink(
        slug=slug,
        web_fallback=web_fallback,
        platform=detect_platform(web_fallback) or "web",
        **fields,
    )
    db.add(link)
    await _commit_or_conflict(db)
    await db.refresh(link)

    logger.info("link_created", link_id=str(link.id), slug=slug, platform=link.platform)
    return _to_response(link)


@router.get("", response_model=list[LinkResponse])
async def list_links(db: AsyncSession = Depends(get_db)):
    """All links, newest first, with their click counts."""
    result = await db.execute(select(SmartLink).order_by(SmartLink.created_at.desc()))
    links = result.scalars().all()

    counts_result = await db.execute(
        select(Click.link_id, func.count(Click.id)).group_by(Click.link_id)
    )
    counts = {link_id: count for link_id, count in counts_result.all()}

    return [_to_response(link, counts.get(link.id, 0)) for link in links]


@router.get("/parse", response_model=ParsedLinkResponse)
async def parse_url(url: str = Query(..., min_length=1)):
    """Preview what autofill would produce for a URL. Nothing is saved."""
    url = _check_web_fallback(url)
    parsed = _preview(url)
    return ParsedLinkResponse(
        platform=parsed.platform,
        platform_name=parsed.platform_name,
        web_fallback=parsed.web_fallback,
        ios_url=parsed.ios_url,
        android_url=parsed.android_url,
        ios_appstore_url=parsed.ios_appstore_url,
        android_playstore_url=parsed.android_playstore_url,
        title=parsed.title,
        confidence=parsed.confidence,
        deep_links_found=parsed.has_deep_links,
    )


@router.get("/by-slug/{slug}")
async def get_link_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    link = await resolve_link(db, slug)
    if link is None:
        raise HTTPException(status_code=404, detail="Link not found")
    return link.model_dump(mode="json")


@router.put("/{link_id}", response_model=LinkResponse)
async def update_link(
    link_id: UUID,
    req: UpdateLinkRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(SmartLink).where(SmartLink.id == link_id))
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(status_code=404, detail="Link not found")

    provided = req.model_fields_set

    if "slug" in provided and req.slug is not None:
        slug = _check_slug(req.slug)
        if slug != link.slug and await _slug_taken(db, slug):
            raise HTTPException(status_code=409, detail="A link with this slug already exists")
        link.slug = slug

    if "web_fallback" in provided and req.web_fallback is not None:
        link.web_fallback = _check_web_fallback(req.web_fallback)
        link.platform = detect_platform(link.web_fallback) or "web"

    changes = _check_links({key: _blank(getattr(req, key)) for key in AUTOFILL_FIELDS if key in provided})
    for key, value in changes.items():
        setattr(link, key, value)

    await _commit_or_conflict(db)
    await db.refresh(link)

    logger.info("link_updated", link_id=str(link.id), fields=sorted(provided))
    return _to_response(link)


@router.delete("/{link_id}")
async def delete_link(link_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a link. Its recorded clicks are kept."""
    result = await db.execute(select(SmartLink).where(SmartLink.id == link_id))
    link = result.scalar_one_or_none()
    if not link:
        raise HTTPException(status_code=404, detail="Link not found")
    await db.delete(link)
    await db.commit()

    logger.info("link_deleted", link_id=str(link_id))
    return {"status": "deleted"}
