"""
Smart landing page: GET /smart/{slug}

Mobile clicks land here from /s/{slug}. The server decides two plans with the
redirect sequencer's decision table:

  auto     what the countdown runs at expiry (no user gesture)
  gesture  what the "Open Now" button runs (inside a click handler)

A small inline script executes them with the same guarantees as
RedirectSequencer: one guard flag, so only the first terminal navigation
wins; timers cleared when the page is hidden (app opened) or unloaded.

iOS custom-scheme links only ever open from the gesture plan.
"""

import html
import json
import secrets

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.device import classify
from app.core.lookup import resolve_link
from app.core.sequencer import RedirectPlan, Timings, decide
from app.core.utm import extract_utm_params, with_utm
from app.middleware.rate_limit import rate_limit_ip
from app.models.database import get_db

import structlog

logger = structlog.get_logger()
router = APIRouter()

NO_CACHE = "no-store, no-cache, must-revalidate, max-age=0"


def render_not_found() -> HTMLResponse:
    """Terminal page for unknown slugs and failed lookups. Never a crash."""
    home = html.escape(get_settings().home_url, quote=True)
    page = f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<meta name="robots" content="noindex,nofollow">
<title>Link Not Found</title>
</head>
<body>
<h1>Link Not Found</h1>
<p>The link you&#x27;re looking for doesn&#x27;t exist.</p>
<p><a href="{home}">Go home</a></p>
</body>
</html>"""
    return HTMLResponse(content=page, status_code=404, headers={"Cache-Control": NO_CACHE})


def _json_for_script(data: dict) -> str:
    """JSON safe to inline in a <script> data block."""
    return (
        json.dumps(data, separators=(",", ":"))
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


@router.get("/smart/{slug}")
async def smart_page(
    request: Request,
    slug: str,
    db: AsyncSession = Depends(get_db),
):
    rate_limit_ip(request, scope="smart")
    settings = get_settings()

    try:
        link = await resolve_link(db, slug)
    except Exception:
        logger.warning("smart_lookup_failed", slug=slug, exc_info=True)
        link = None

    if link is None:
        return render_not_found()

    device = classify(request.headers.get("user-agent"))
    utm = extract_utm_params(request.query_params)
    timings = Timings.from_settings(settings)

    web_url = with_utm(link.web_fallback, utm)
    try:
        auto_plan = decide(link, device, has_user_gesture=False, timings=timings, utm=utm)
        gesture_plan = decide(link, device, has_user_gesture=True, timings=timings, utm=utm)
    except Exception:
        logger.exception("smart_decide_failed", slug=slug, device=device.device)
        auto_plan = gesture_plan = RedirectPlan(rule="web", fallback_url=web_url)

    logger.info("smart_page_served",
                slug=slug,
                device=device.device,
                browser=device.browser,
                in_app=device.is_in_app_browser,
                auto_rule=auto_plan.rule,
                gesture_rule=gesture_plan.rule)

    config = {
        "auto": auto_plan.to_dict(),
        "gesture": gesture_plan.to_dict(),
        "web": web_url,
        "countdown": settings.countdown_seconds,
    }

    nonce = secrets.token_urlsafe(16)
    title = html.escape(link.title or "Opening App…")
    web_href = html.escape(web_url, quote=True)
    seconds = settings.countdown_seconds

    page = f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width,initial-scale=1">
<meta name="robots" content="noindex,nofollow">
<title>{title}</title>
<style nonce="{nonce}">
body {{ font-family: -apple-system, system-ui, sans-serif; text-align: center; padding: 3rem 1rem; }}
button {{ font-size: 1rem; padding: .75rem 1.5rem; }}
#gesture-hint {{ display: none; }}
</style>
</head>
<body>
<h1>{title}</h1>
<p id="status">Redirecting in <span id="countdown">{seconds}</span> second{"" if seconds == 1 else "s"}</p>
<p id="gesture-hint">Tap &ldquo;Open Now&rdquo; to open the app.</p>
<p><button id="open-now" type="button">Open Now</button></p>
<p><a id="web-link" href="{web_href}">Continue to website instead</a></p>
<p><small>Having trouble? Make sure the app is installed, or continue to the website.</small></p>
<noscript><p><a href="{web_href}">Continue to website</a></p></noscript>
<script id="smart-config" type="application/json">{_json_for_script(config)}</script>
<script nonce="{nonce}">
(function() {{
  var cfg = JSON.parse(document.getElementById("smart-config").textContent);
  var phase = "idle";  // idle | waiting_for_gesture | invoking | terminal
  var timers = [];
  var ticker = null;

  function later(ms, fn) {{ timers.push(setTimeout(fn, ms)); }}
  function clearTimers() {{
    timers.forEach(clearTimeout);
    timers = [];
  }}

  function go(url, method) {{
    if (method === "anchor_click") {{
      var a = document.createElement("a");
      a.href = url;
      a.style.display = "none";
      document.body.appendChild(a);
      a.click();
      a.parentNode.removeChild(a);
    }} else {{
      window.location.href = url;
    }}
  }}

  // The only path to a terminal navigation. First caller wins.
  function finish(url) {{
    if (phase === "terminal") return;
    clearTimers();
    if (ticker) clearInterval(ticker);
    phase = "terminal";
    window.location.href = url || cfg.web;
  }}

  function run(plan) {{
    if (phase !== "idle" && phase !== "waiting_for_gesture") return;
    try {{
      if (plan.requires_gesture) {{
        phase = "waiting_for_gesture";
        document.getElementById("gesture-hint").style.display = "block";
        return;
      }}
      if (!plan.attempts.length) {{
        finish(plan.fallback_url);
        return;
      }}
      phase = "invoking";
      plan.attempts.forEach(function(att) {{
        if (att.delay_ms) {{
          later(att.delay_ms, function() {{
            if (phase === "invoking") {{
              try {{ go(att.url, att.method); }} catch (e) {{ finish(cfg.web); }}
            }}
          }});
        }} else {{
          go(att.url, att.method);
        }}
      }});
      later(plan.fallback_after_ms, function() {{ finish(plan.fallback_url); }});
    }} catch (e) {{
      finish(cfg.web);
    }}
  }}

  var remaining = cfg.countdown;
  var counter = document.getElementById("countdown");
  if (remaining <= 0) {{
    run(cfg.auto);
  }} else {{
    ticker = setInterval(function() {{
      remaining -= 1;
      counter.textContent = String(Math.max(remaining, 0));
      if (remaining <= 0) {{
        clearInterval(ticker);
        ticker = null;
        run(cfg.auto);
      }}
    }}, 1000);
  }}

  document.getElementById("open-now").addEventListener("click", function(ev) {{
    ev.preventDefault();
    run(cfg.gesture);
  }});

  // Hidden mid-attempt: the app most likely opened. Stop falling back.
  document.addEventListener("visibilitychange", function() {{
    if (document.hidden && phase === "invoking") {{
      clearTimers();
      phase = "terminal";
    }}
  }});

  window.addEventListener("pagehide", function() {{
    clearTimers();
    if (ticker) clearInterval(ticker);
  }});
}})();
</script>
</body>
</html>"""

    return HTMLResponse(
        content=page,
        headers={
            "Content-Security-Policy": (
                f"default-src 'none'; script-src 'nonce-{nonce}'; style-src 'nonce-{nonce}'"
            ),
            "Cache-Control": NO_CACHE,
            "X-Robots-Tag": "noindex, nofollow",
        },
    )
