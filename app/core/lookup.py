"""
The two collaborators the redirect core consumes:

  resolve_link(db, slug)  → LinkRecord | None
  record_click(event)     → fire-and-forget, failures swallowed

record_click runs as a background task after the response is sent, so it
opens its own session instead of borrowing the request's.
"""

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database import get_session_maker
from app.models.schemas import SLUG_RE, ClickEventIn, LinkRecord
from app.models.tables import Click, SmartLink

import structlog

logger = structlog.get_logger()


async def resolve_link(db: AsyncSession, slug: str) -> LinkRecord | None:
    if not slug or not SLUG_RE.match(slug):
        return None

    result = await db.execute(select(SmartLink).where(SmartLink.slug == slug))
    row = result.scalar_one_or_none()
    if row is None:
        return None

    try:
        return LinkRecord.model_validate(row)
    except ValidationError as e:
        # Bad rows never reach the redirect engine
        logger.warning("link_record_rejected", slug=slug, errors=e.error_count())
        return None


async def record_click(event: ClickEventIn) -> None:
    """Analytics is best-effort: a failed insert never affects the redirect."""
    try:
        session_maker = get_session_maker()
        async with session_maker() as session:
            session.add(Click(
                link_id=event.link_id,
                user_agent=event.user_agent,
                ip_address=event.ip,
                referrer=event.referrer[:2000] if event.referrer else None,
                device=event.device,
                browser=event.browser,
                platform_class=event.platform_class,
                is_social_app=event.is_social_app,
                os_version=event.os_version,
                browser_version=event.browser_version,
                is_bot=event.is_bot,
                utm_source=event.utm_source,
                utm_medium=event.utm_medium,
                utm_campaign=event.utm_campaign,
                timestamp=event.timestamp,
            ))
            await session.commit()
    except Exception:
        logger.warning("click_log_failed", link_id=str(event.link_id), exc_info=True)
