"""
Device classification from the User-Agent header.

classify() is the rule table the redirect engine trusts:
  device         ios | android | desktop
  browser        in-app browsers first, then generic browsers
  platform_class mobile | tablet | desktop
  in-app flag    true iff the browser is one of the social in-app browsers

In-app markers MUST be checked before generic ones: Instagram's webview also
carries "Mobile Safari", and would otherwise be classified as safari.

describe_agent() is enrichment only (versions, bot flag) for click rows.
It never feeds the redirect decision.
"""

import re
from dataclasses import dataclass

from user_agents import parse as parse_ua


IOS_RE = re.compile(r"iphone|ipad|ipod")
ANDROID_RE = re.compile(r"android")
TABLET_RE = re.compile(r"ipad|android(?!.*mobile)|tablet")
MOBILE_RE = re.compile(r"iphone|ipod|android|mobile")

# Ordered: first match wins
IN_APP_MARKERS: list[tuple[str, tuple[str, ...]]] = [
    ("instagram", ("instagram",)),
    ("facebook",  ("fban", "fbav", "fbsv")),
    ("whatsapp",  ("whatsapp",)),
    ("linkedin",  ("linkedinapp",)),
    ("twitter",   ("twitter", "tweetie")),
    ("telegram",  ("telegram",)),
]

IN_APP_BROWSERS = frozenset(name for name, _ in IN_APP_MARKERS)


@dataclass(frozen=True)
class DeviceClassification:
    device: str = "desktop"
    browser: str = "other"
    platform_class: str = "desktop"
    is_in_app_browser: bool = False

    @property
    def is_social_app(self) -> bool:
        return self.is_in_app_browser

    @property
    def is_mobile_os(self) -> bool:
        return self.device in ("ios", "android")


@dataclass(frozen=True)
class AgentDetails:
    os_version: str | None = None
    browser_version: str | None = None
    is_bot: bool = False


def detect_device(ua: str) -> str:
    if IOS_RE.search(ua):
        return "ios"
    if ANDROID_RE.search(ua):
        return "android"
    return "desktop"


def detect_browser(ua: str) -> str:
    for name, markers in IN_APP_MARKERS:
        if any(m in ua for m in markers):
            return name

    if "safari" in ua and "chrome" not in ua and "crios" not in ua:
        return "safari"
    if "chrome" in ua or "crios" in ua:
        return "chrome"
    if "firefox" in ua or "fxios" in ua:
        return "firefox"
    if "edg" in ua:
        return "edge"
    return "other"


def detect_platform_class(ua: str) -> str:
    if TABLET_RE.search(ua):
        return "tablet"
    if MOBILE_RE.search(ua):
        return "mobile"
    return "desktop"


def classify(user_agent: str | None) -> DeviceClassification:
    """Classify a User-Agent string. Total: any input yields a valid result."""
    ua = (user_agent or "").lower()
    if not ua:
        return DeviceClassification()

    browser = detect_browser(ua)
    return DeviceClassification(
        device=detect_device(ua),
        browser=browser,
        platform_class=detect_platform_class(ua),
        is_in_app_browser=browser in IN_APP_BROWSERS,
    )


def describe_agent(user_agent: str | None) -> AgentDetails:
    """Version + bot enrichment via the user-agents library."""
    if not user_agent:
        return AgentDetails()

    parsed = parse_ua(user_agent)
    return AgentDetails(
        os_version=parsed.os.version_string or None,
        browser_version=parsed.browser.version_string or None,
        is_bot=parsed.is_bot,
    )
