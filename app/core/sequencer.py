"""
Redirect Sequencer: deep link first, exactly one terminal destination.

Two halves:

  decide()            the decision table. Pure: (link, device, gesture) → plan.
  RedirectSequencer   the state machine that executes a plan through an
                      injected navigator + scheduler, and owns every timer.

Decision table (highest priority first):
  1. in_app_escape       in-app browser, no deep link for this OS, and the
                         link's platform is not the host app itself.
                         Android → reopen in Chrome via intent; iOS → web.
  2. in_app_deep_link    in-app browser with a deep link → try it, web after
                         in_app_fallback_ms.
  3. ios_universal_link  https:// deep link → invoke now, store/web later.
  4. ios_custom_scheme   scheme:// deep link → ONLY inside a user gesture.
                         Without one the plan is "ios_custom_scheme_wait":
                         no navigation at all until the Open Now tap.
  5. android_deep_link   direct navigation, then the intent:// form with
                         package= set, web after android_fallback_ms.
  6. web                 desktop, or nothing to open → web fallback now.

The gesture gate (4) also holds inside iOS in-app browsers (2).

Success of a deep link can't be observed, only inferred: if the page gets
hidden the app most likely opened, and pending fallbacks are cancelled.
Otherwise the fallback timer decides.

States:
  IDLE → RESOLVING → DECIDING → [WAITING_FOR_GESTURE] → INVOKING → TERMINAL
  RESOLVING → NOT_FOUND when the slug doesn't resolve (or lookup fails).
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Protocol

from app.config import get_settings
from app.core.deeplinks import (
    android_package_for,
    browser_escape_intent,
    intent_url,
    is_universal_link,
)
from app.core.device import DeviceClassification
from app.core.utm import with_utm
from app.models.schemas import LinkRecord

import structlog

logger = structlog.get_logger()


class Phase(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    DECIDING = "deciding"
    WAITING_FOR_GESTURE = "waiting_for_gesture"
    INVOKING = "invoking"
    TERMINAL = "terminal"
    NOT_FOUND = "not_found"


class Method(str, Enum):
    LOCATION = "location"          # window.location.href = url
    ANCHOR_CLICK = "anchor_click"  # synthesized <a href> click, gesture only
    INTENT = "intent"              # Android intent:// URL


@dataclass(frozen=True)
class Timings:
    """Fallback timers, milliseconds. One policy for every page."""
    in_app_fallback_ms: int = 1000
    ios_universal_link_fallback_ms: int = 2500
    ios_custom_scheme_fallback_ms: int = 2500
    android_fallback_ms: int = 1500
    android_intent_delay_ms: int = 200

    @classmethod
    def from_settings(cls, settings=None) -> "Timings":
        settings = settings or get_settings()
        return cls(
            in_app_fallback_ms=settings.in_app_fallback_ms,
            ios_universal_link_fallback_ms=settings.ios_universal_link_fallback_ms,
            ios_custom_scheme_fallback_ms=settings.ios_custom_scheme_fallback_ms,
            android_fallback_ms=settings.android_fallback_ms,
            android_intent_delay_ms=settings.android_intent_delay_ms,
        )


@dataclass(frozen=True)
class Attempt:
    url: str
    method: Method
    delay_ms: int = 0


@dataclass(frozen=True)
class RedirectPlan:
    rule: str
    attempts: tuple[Attempt, ...] = ()
    fallback_url: str | None = None
    fallback_after_ms: int = 0
    requires_gesture: bool = False

    @property
    def is_direct(self) -> bool:
        return not self.attempts and not self.requires_gesture

    def to_dict(self) -> dict:
        return {
            "rule": self.rule,
            "attempts": [
                {"url": a.url, "method": a.method.value, "delay_ms": a.delay_ms}
                for a in self.attempts
            ],
            "fallback_url": self.fallback_url,
            "fallback_after_ms": self.fallback_after_ms,
            "requires_gesture": self.requires_gesture,
        }


# ---------------------------------------------------------------------------
# Decision table
# ---------------------------------------------------------------------------

def _in_app_supported(link: LinkRecord, device: DeviceClassification) -> bool:
    """The host app handles its own links (an Instagram post inside Instagram)."""
    return link.platform == device.browser


def _android_attempts(link: LinkRecord, deep_link: str, web: str, timings: Timings,
                      utm: dict | None) -> tuple[Attempt, ...]:
    if deep_link.startswith("intent://"):
        return (Attempt(deep_link, Method.INTENT),)

    # App Links carry UTM; both attempts open the same destination
    target = with_utm(deep_link, utm)
    attempts = [Attempt(target, Method.LOCATION)]
    package = android_package_for(link.platform, link.android_playstore_url)
    intent = intent_url(target, package=package, fallback_url=web)
    if intent:
        attempts.append(Attempt(intent, Method.INTENT, timings.android_intent_delay_ms))
    return tuple(attempts)


def decide(
    link: LinkRecord,
    device: DeviceClassification,
    has_user_gesture: bool = False,
    timings: Timings | None = None,
    utm: dict | None = None,
) -> RedirectPlan:
    """Pick the redirect plan for one page view. See module docstring."""
    timings = timings or Timings.from_settings()
    web = with_utm(link.web_fallback, utm)
    deep_link = link.deep_link_for(device.device)
    store = with_utm(link.store_url_for(device.device), utm)

    if device.is_in_app_browser and device.is_mobile_os:
        # --- 1. Escape the webview ---
        if not deep_link and not _in_app_supported(link, device):
            escape = browser_escape_intent(web) if device.device == "android" else None
            if escape:
                return RedirectPlan(
                    rule="in_app_escape",
                    attempts=(Attempt(escape, Method.INTENT),),
                    fallback_url=web,
                    fallback_after_ms=timings.in_app_fallback_ms,
                )
            # iOS keeps every navigation inside the same webview
            return RedirectPlan(rule="in_app_escape", fallback_url=web)

        # --- 2. Deep link from inside the webview ---
        if deep_link:
            if device.device == "ios":
                if not is_universal_link(deep_link) and not has_user_gesture:
                    return RedirectPlan(rule="ios_custom_scheme_wait", fallback_url=web, requires_gesture=True)
                method = Method.LOCATION if is_universal_link(deep_link) else Method.ANCHOR_CLICK
                attempts = (Attempt(with_utm(deep_link, utm), method),)
            else:
                attempts = _android_attempts(link, deep_link, web, timings, utm)
            return RedirectPlan(
                rule="in_app_deep_link",
                attempts=attempts,
                fallback_url=web,
                fallback_after_ms=timings.in_app_fallback_ms,
            )

    if device.device == "ios" and deep_link:
        fallback = store or web

        # --- 3. Universal Link: OS-mediated, gesture not needed ---
        if is_universal_link(deep_link):
            return RedirectPlan(
                rule="ios_universal_link",
                attempts=(Attempt(with_utm(deep_link, utm), Method.LOCATION),),
                fallback_url=fallback,
                fallback_after_ms=timings.ios_universal_link_fallback_ms,
            )

        # --- 4. Custom scheme: gesture only ---
        if not has_user_gesture:
            return RedirectPlan(rule="ios_custom_scheme_wait", fallback_url=fallback, requires_gesture=True)
        return RedirectPlan(
            rule="ios_custom_scheme",
            attempts=(Attempt(deep_link, Method.ANCHOR_CLICK),),
            fallback_url=fallback,
            fallback_after_ms=timings.ios_custom_scheme_fallback_ms,
        )

    # --- 5. Android: direct + intent ---
    if device.device == "android" and deep_link:
        return RedirectPlan(
            rule="android_deep_link",
            attempts=_android_attempts(link, deep_link, web, timings, utm),
            fallback_url=web,
            fallback_after_ms=timings.android_fallback_ms,
        )

    # --- 6. Nothing to open ---
    return RedirectPlan(rule="web", fallback_url=web)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class Scheduler(Protocol):
    """asyncio's event loop satisfies this: call_later returns a TimerHandle."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Any:
        ...


Navigator = Callable[[str, Method], None]
Lookup = Callable[[str], Awaitable[LinkRecord | None]]


@dataclass
class RedirectSequencer:
    """
    One redirect attempt for one page view.

    Owns its timers; teardown() releases them. attempt_redirect() is the single
    entry point for the countdown and the Open Now button alike and is safe to
    call repeatedly: re-entry while invoking or after the terminal navigation
    is a no-op.
    """

    navigate: Navigator
    device: DeviceClassification
    link: LinkRecord | None = None
    scheduler: Scheduler | None = None
    timings: Timings | None = None
    utm: dict | None = None

    phase: Phase = Phase.IDLE
    plan: RedirectPlan | None = None
    terminal_url: str | None = None
    outcome: str | None = None  # web | fallback | app_opened | error | not_found
    _handles: list = field(default_factory=list, repr=False)
    _torn_down: bool = field(default=False, repr=False)

    def __post_init__(self):
        if self.timings is None:
            self.timings = Timings.from_settings()

    # --- Resolving ---

    async def load(self, lookup: Lookup, slug: str) -> LinkRecord | None:
        """Resolve the slug. Lookup failures land on NOT_FOUND, never on a hang."""
        self.phase = Phase.RESOLVING
        try:
            link = await lookup(slug)
        except Exception:
            logger.warning("smart_lookup_failed", slug=slug, exc_info=True)
            link = None

        if link is None:
            self.phase = Phase.NOT_FOUND
            self.outcome = "not_found"
            return None

        self.link = link
        self.phase = Phase.IDLE
        return link

    # --- Deciding / Invoking ---

    def attempt_redirect(self, has_user_gesture: bool = False) -> RedirectPlan | None:
        if self.link is None or self._torn_down:
            return self.plan
        if self.phase not in (Phase.IDLE, Phase.WAITING_FOR_GESTURE):
            return self.plan

        self.phase = Phase.DECIDING
        try:
            plan = decide(self.link, self.device, has_user_gesture, self.timings, self.utm)
        except Exception:
            logger.exception("smart_decide_failed", slug=self.link.slug)
            self._finish(self._web_fallback(), outcome="error")
            return None

        self.plan = plan
        logger.info("smart_redirect_decided",
                    slug=self.link.slug,
                    rule=plan.rule,
                    device=self.device.device,
                    browser=self.device.browser,
                    gesture=has_user_gesture)

        if plan.requires_gesture:
            self.phase = Phase.WAITING_FOR_GESTURE
            return plan

        if plan.is_direct:
            self._finish(plan.fallback_url, outcome="web")
            return plan

        self.phase = Phase.INVOKING
        try:
            # No navigation before the fallback timer can be armed
            self._ensure_scheduler()
            for attempt in plan.attempts:
                if self.phase is not Phase.INVOKING:
                    break
                if attempt.delay_ms:
                    self.schedule(attempt.delay_ms, partial(self._invoke, attempt))
                else:
                    self._invoke(attempt)
            if self.phase is Phase.INVOKING:
                self.schedule(plan.fallback_after_ms, partial(self._finish, plan.fallback_url, "fallback"))
        except Exception:
            logger.exception("smart_schedule_failed", slug=self.link.slug)
            self._finish(self._web_fallback(), outcome="error")
        return plan

    def _invoke(self, attempt: Attempt) -> None:
        if self.phase is not Phase.INVOKING:
            return
        try:
            self.navigate(attempt.url, attempt.method)
        except Exception:
            logger.warning("smart_invoke_failed", method=attempt.method.value, exc_info=True)
            self._finish(self._web_fallback(), outcome="error")

    def _finish(self, url: str | None, outcome: str) -> None:
        """The only path to a terminal navigation. First caller wins."""
        if self.phase is Phase.TERMINAL:
            return
        self.cancel_timers()
        self.phase = Phase.TERMINAL
        self.outcome = outcome
        self.terminal_url = url or self._web_fallback()
        try:
            self.navigate(self.terminal_url, Method.LOCATION)
        except Exception:
            logger.exception("smart_terminal_navigation_failed", url=self.terminal_url)

    def _web_fallback(self) -> str | None:
        return with_utm(self.link.web_fallback, self.utm) if self.link else None

    # --- Signals from the page ---

    def notify_hidden(self) -> None:
        """Page went to background mid-attempt: the app opened. Stop falling back."""
        if self.phase is not Phase.INVOKING:
            return
        self.cancel_timers()
        self.phase = Phase.TERMINAL
        self.outcome = "app_opened"

    def teardown(self) -> None:
        """Page unmounted. Releases every pending timer."""
        self._torn_down = True
        self.cancel_timers()

    # --- Timers ---

    def _ensure_scheduler(self) -> Scheduler:
        if self.scheduler is None:
            # RuntimeError outside a running event loop
            self.scheduler = asyncio.get_running_loop()
        return self.scheduler

    def schedule(self, delay_ms: int, callback: Callable[[], None]):
        self._ensure_scheduler()

        def fire():
            # Fired handles are no longer pending
            if handle in self._handles:
                self._handles.remove(handle)
            callback()

        handle = self.scheduler.call_later(delay_ms / 1000, fire)
        self._handles.append(handle)
        return handle

    def cancel_timers(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    @property
    def pending_timers(self) -> int:
        return len(self._handles)


class Countdown:
    """
    The visible "Redirecting in N seconds" timer.

    Ticks once per second; at zero it calls attempt_redirect() without a
    gesture. Its handles belong to the sequencer, so teardown clears them.
    """

    def __init__(self, sequencer: RedirectSequencer, seconds: int | None = None,
                 on_tick: Callable[[int], None] | None = None):
        self.sequencer = sequencer
        self.remaining = seconds if seconds is not None else get_settings().countdown_seconds
        self.on_tick = on_tick

    def start(self) -> None:
        if self.remaining <= 0:
            self.sequencer.attempt_redirect(has_user_gesture=False)
            return
        self.sequencer.schedule(1000, self._tick)

    def _tick(self) -> None:
        self.remaining -= 1
        if self.on_tick:
            self.on_tick(self.remaining)
        if self.remaining <= 0:
            self.sequencer.attempt_redirect(has_user_gesture=False)
        else:
            self.sequencer.schedule(1000, self._tick)
