"""
Click intake endpoint: /s/{slug}

Flow:
  1. Rate limit
  2. Look up link (unknown slug or failed lookup → Link Not Found page)
  3. Classify device from the User-Agent
  4. Record click in the background (best-effort)
  5. Desktop → 302 straight to web_fallback (UTM appended)
     Mobile  → 302 to /smart/{slug} with UTM preserved; deep links need the
               browser, a server redirect to a custom scheme doesn't open apps
"""

from urllib.parse import urlencode

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.smart import render_not_found
from app.core.device import classify, describe_agent
from app.core.lookup import record_click, resolve_link
from app.core.utm import extract_utm_params, with_utm
from app.middleware.rate_limit import get_real_ip, rate_limit_ip, rate_limit_slug
from app.models.database import get_db
from app.models.schemas import ClickEventIn

import structlog

logger = structlog.get_logger()
router = APIRouter()


@router.get("/s/{slug}")
async def redirect_slug(
    request: Request,
    slug: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    # --- 1. Rate limiting ---
    rate_limit_ip(request)
    rate_limit_slug(request, slug)

    # --- 2. Look up link ---
    try:
        link = await resolve_link(db, slug)
    except Exception:
        logger.warning("lookup_failed", slug=slug, exc_info=True)
        link = None

    if link is None:
        return render_not_found()

    # --- 3. Classify ---
    ua = request.headers.get("user-agent")
    device = classify(ua)
    details = describe_agent(ua)
    utm = extract_utm_params(request.query_params)

    # --- 4. Record click (after the response) ---
    background_tasks.add_task(record_click, ClickEventIn(
        link_id=link.id,
        user_agent=ua,
        ip=get_real_ip(request),
        referrer=request.headers.get("referer"),
        device=device.device,
        browser=device.browser,
        platform_class=device.platform_class,
        is_social_app=device.is_social_app,
        utm_source=utm.get("utm_source"),
        utm_medium=utm.get("utm_medium"),
        utm_campaign=utm.get("utm_campaign"),
        os_version=details.os_version,
        browser_version=details.browser_version,
        is_bot=details.is_bot,
    ))

    # --- 5. Redirect ---
    if device.is_mobile_os:
        target = f"/smart/{slug}"
        if utm:
            target += "?" + urlencode(utm)
    else:
        target = with_utm(link.web_fallback, utm)

    logger.info("click_received",
                slug=slug,
                device=device.device,
                browser=device.browser,
                in_app=device.is_in_app_browser,
                smart=device.is_mobile_os)

    return RedirectResponse(url=target, status_code=302)
