"""
Deep-Link Synthesizer: URL in, iOS/Android deep links + store fallbacks out.

Policy per platform:
  - Universal Links (https://) where the vendor supports them and in-app
    browsers would block a custom scheme (Instagram iOS, LinkedIn iOS).
  - Documented vendor custom schemes everywhere else.
  - Store URLs for both OSes whenever the vendor app is known.

Outcomes of synthesize():
  ParsedLink(confidence="high")   table-driven result
  ParsedLink(confidence="guess")  unknown site, "<domain-label>://<path>" guess
  ParsedLink(confidence="none")   unparseable URL, or a platform without an app
  None                            platform recognized, identifier not found
"""

import re
from dataclasses import dataclass, replace
from urllib.parse import parse_qs, quote, urlparse

from app.core.platforms import (
    LinkedInTarget,
    detect_platform,
    extract_identifier,
    platform_name,
    url_path,
)


@dataclass(frozen=True)
class AppIdentity:
    ios_store_url: str
    android_package: str

    @property
    def android_store_url(self) -> str:
        return PLAY_STORE_URL.format(package=self.android_package)


PLAY_STORE_URL = "https://play.google.com/store/apps/details?id={package}"
CHROME_PACKAGE = "com.android.chrome"

APPS: dict[str, AppIdentity] = {
    "youtube":     AppIdentity("https://apps.apple.com/app/youtube/id544007664", "com.google.android.youtube"),
    "tiktok":      AppIdentity("https://apps.apple.com/app/tiktok/id835599320", "com.zhiliaoapp.musically"),
    "vimeo":       AppIdentity("https://apps.apple.com/app/vimeo/id425194759", "com.vimeo.android.videoapp"),
    "twitch":      AppIdentity("https://apps.apple.com/app/twitch/id460177396", "tv.twitch.android.app"),
    "instagram":   AppIdentity("https://apps.apple.com/app/instagram/id389801252", "com.instagram.android"),
    "twitter":     AppIdentity("https://apps.apple.com/app/twitter/id333903271", "com.twitter.android"),
    "facebook":    AppIdentity("https://apps.apple.com/app/facebook/id284882215", "com.facebook.katana"),
    "linkedin":    AppIdentity("https://apps.apple.com/app/linkedin/id288429040", "com.linkedin.android"),
    "pinterest":   AppIdentity("https://apps.apple.com/app/pinterest/id429047995", "com.pinterest"),
    "reddit":      AppIdentity("https://apps.apple.com/app/reddit/id1064216828", "com.reddit.frontpage"),
    "snapchat":    AppIdentity("https://apps.apple.com/app/snapchat/id447188370", "com.snapchat.android"),
    "discord":     AppIdentity("https://apps.apple.com/app/discord/id985746746", "com.discord"),
    "whatsapp":    AppIdentity("https://apps.apple.com/app/whatsapp-messenger/id310633997", "com.whatsapp"),
    "telegram":    AppIdentity("https://apps.apple.com/app/telegram-messenger/id686449807", "org.telegram.messenger"),
    "signal":      AppIdentity("https://apps.apple.com/app/signal-private-messenger/id874139669",
                               "org.thoughtcrime.securesms"),
    "spotify":     AppIdentity("https://apps.apple.com/app/spotify/id324684580", "com.spotify.music"),
    "apple_music": AppIdentity("https://apps.apple.com/app/apple-music/id1108187390", "com.apple.android.music"),
    "soundcloud":  AppIdentity("https://apps.apple.com/app/soundcloud/id336353151", "com.soundcloud.android"),
    "amazon":      AppIdentity("https://apps.apple.com/app/amazon-shopping/id297606951",
                               "com.amazon.mShop.android.shopping"),
    "etsy":        AppIdentity("https://apps.apple.com/app/etsy/id477128284", "com.etsy.android"),
    "notion":      AppIdentity("https://apps.apple.com/app/notion/id1232780281", "notion.id"),
    "figma":       AppIdentity("https://apps.apple.com/app/figma/id1152747299", "com.figma.mirror"),
    "github":      AppIdentity("https://apps.apple.com/app/github/id1477376905", "com.github.android"),
    "medium":      AppIdentity("https://apps.apple.com/app/medium/id828256236", "com.medium.reader"),
}

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*$")


@dataclass(frozen=True)
class ParsedLink:
    platform: str
    platform_name: str
    web_fallback: str
    ios_url: str | None = None
    android_url: str | None = None
    ios_appstore_url: str | None = None
    android_playstore_url: str | None = None
    title: str | None = None
    confidence: str = "none"  # high | guess | none

    @property
    def has_deep_links(self) -> bool:
        return bool(self.ios_url or self.android_url)


# ---------------------------------------------------------------------------
# URI helpers
# ---------------------------------------------------------------------------

def uri_scheme(uri: str | None) -> str | None:
    if not uri or "://" not in uri:
        return None
    return uri.split("://", 1)[0].lower()


def is_web_url(uri: str | None) -> bool:
    return uri_scheme(uri) in ("http", "https")


def is_universal_link(uri: str | None) -> bool:
    return uri_scheme(uri) == "https"


def is_custom_scheme(uri: str | None) -> bool:
    scheme = uri_scheme(uri)
    return scheme is not None and scheme not in ("http", "https", "intent")


def android_package_for(platform: str | None, store_url: str | None = None) -> str | None:
    """Application id for intent URLs: vendor table first, then the Play Store ?id=."""
    app = APPS.get(platform or "")
    if app:
        return app.android_package
    if store_url:
        ids = parse_qs(urlparse(store_url).query).get("id")
        if ids:
            return ids[0]
    return None


def intent_url(deep_link: str, package: str | None = None, fallback_url: str | None = None) -> str | None:
    """
    Android intent:// form of a deep link.

    package= pins the target app so the OS skips the disambiguation dialog;
    S.browser_fallback_url is what Chrome opens when the app is not installed.
    """
    if deep_link.startswith("intent://"):
        return deep_link
    scheme, sep, rest = deep_link.partition("://")
    if not sep or not scheme:
        return None

    # A raw '#' would be read as the start of the #Intent block
    rest = rest.replace("#", "%23")
    extras = [f"scheme={scheme.lower()}"]
    if package:
        extras.append(f"package={package}")
    if fallback_url:
        extras.append(f"S.browser_fallback_url={quote(fallback_url, safe='')}")
    return f"intent://{rest}#Intent;{';'.join(extras)};end"


def browser_escape_intent(web_url: str) -> str | None:
    """Intent that re-opens an http(s) URL in Chrome, out of an in-app webview."""
    if not is_web_url(web_url):
        return None
    return intent_url(web_url, package=CHROME_PACKAGE, fallback_url=web_url)


# ---------------------------------------------------------------------------
# Per-platform builders: identifier → (ios_url, android_url, title)
# ---------------------------------------------------------------------------

def _same(uri: str, title: str) -> tuple[str, str, str]:
    return uri, uri, title


def _youtube(video_id, url):
    return f"youtube://watch?v={video_id}", f"vnd.youtube://watch?v={video_id}", f"YouTube Video {video_id}"


def _instagram(post_id, url):
    # iOS: Universal Link. In-app browsers block instagram:// without a gesture.
    return f"https://instagram.com/p/{post_id}/", f"instagram://media?id={post_id}", "Instagram Post"


def _linkedin(target: LinkedInTarget, url):
    if target.kind == "activity":
        entity = f"feed/update/urn:li:activity:{target.value}"
    elif target.kind == "profile":
        entity = f"in/{target.value}"
    elif target.kind == "company":
        entity = f"company/{target.value}"
    elif target.kind == "job":
        entity = f"jobs/view/{target.value}"
    else:
        # Full URL still works as a Universal Link on iOS
        return url, f"linkedin://{target.value}", "LinkedIn"
    return f"https://www.linkedin.com/{entity}", f"linkedin://{entity}", "LinkedIn"


def _spotify(item, url):
    kind, item_id = item
    return _same(f"spotify://{kind}/{item_id}", f"Spotify {kind}")


def _twitch(item, url):
    kind, value = item
    return _same(f"twitch://{kind}/{value}", "Twitch")


def _facebook(path, url):
    return _same(f"fb://facewebmodal/f?href={quote(url, safe='')}", "Facebook")


def _universal(item, url):
    # Vendors that own their https:// links on both OSes
    return url, url, None


BUILDERS = {
    "youtube":     _youtube,
    "tiktok":      lambda v, url: _same(f"snssdk1233://aweme/detail/{v}", "TikTok Video"),
    "vimeo":       lambda v, url: _same(f"vimeo://app.vimeo.com/videos/{v}", "Vimeo Video"),
    "twitch":      _twitch,
    "instagram":   _instagram,
    "twitter":     lambda v, url: _same(f"twitter://status?id={v}", "Twitter Post"),
    "facebook":    _facebook,
    "linkedin":    _linkedin,
    "pinterest":   lambda v, url: _same(f"pinterest://pin/{v}", "Pinterest Pin"),
    "reddit":      lambda v, url: _same(f"reddit://reddit.com{v}", "Reddit"),
    "snapchat":    lambda v, url: _same(f"snapchat://add/{v}", "Snapchat"),
    "discord":     lambda v, url: _same(f"discord://discord.com/invite/{v}", "Discord Invite"),
    "whatsapp":    lambda v, url: _same(f"whatsapp://send?phone={v}", "WhatsApp"),
    "telegram":    lambda v, url: _same(f"tg://resolve?domain={v}", "Telegram"),
    "signal":      lambda v, url: _same(f"sgnl://signal.me/#p/{v}", "Signal"),
    "spotify":     _spotify,
    "apple_music": _universal,
    "soundcloud":  _universal,
    "amazon":      lambda v, url: _same(f"com.amazon.mobile.shopping://www.amazon.com/dp/{v}", "Amazon"),
    "etsy":        lambda v, url: _same(f"etsy://listing/{v}", "Etsy Listing"),
    "notion":      lambda v, url: _same(f"notion://www.notion.so/{v}", "Notion"),
    "figma":       lambda v, url: _same(f"figma://file/{v}", "Figma File"),
    "github":      _universal,
    "medium":      _universal,
}


def guess_scheme(url: str) -> str | None:
    """Heuristic "<domain-label>://<path>" for unknown sites. Low confidence."""
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    label = host.split(".")[0] if host else ""
    if not _SCHEME_RE.match(label):
        return None
    return f"{label}://{url_path(url)}"


def _web_only(url: str, platform: str = "web") -> ParsedLink:
    return ParsedLink(
        platform=platform,
        platform_name=platform_name(platform),
        web_fallback=url,
    )


def synthesize(url: str) -> ParsedLink | None:
    """Build deep links for a URL. None = recognized platform, no identifier."""
    platform = detect_platform(url)
    if platform is None:
        return _web_only(url)

    if platform == "web":
        guessed = guess_scheme(url)
        if not guessed:
            return _web_only(url)
        return replace(
            _web_only(url),
            ios_url=guessed,
            android_url=guessed,
            confidence="guess",
        )

    builder = BUILDERS.get(platform)
    if builder is None:
        # Recognized site without a vendor app (Shopify storefronts)
        return _web_only(url, platform)

    identifier = extract_identifier(platform, url)
    if identifier is None:
        return None

    ios_url, android_url, title = builder(identifier, url)
    app = APPS.get(platform)
    return ParsedLink(
        platform=platform,
        platform_name=platform_name(platform),
        web_fallback=url,
        ios_url=ios_url,
        android_url=android_url,
        ios_appstore_url=app.ios_store_url if app else None,
        android_playstore_url=app.android_store_url if app else None,
        title=title,
        confidence="high",
    )
