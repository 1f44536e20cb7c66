"""
URL Platform Parser: which app does a URL belong to, and what does it point at?

Detection is host-based: a domain fragment matches when the URL host equals it
or is a subdomain of it (m.youtube.com, open.spotify.com). Plain substring
matching is NOT used: "x.com" would match "netflix.com".

Table order only matters if two fragments could match the same host.
overlapping_domains() must stay empty; test_platforms asserts it.

Identifier extraction is regex-based. Every extractor returns None when the
URL has no usable identifier; the synthesizer then keeps the web fallback only.
"""

import re
from dataclasses import dataclass
from urllib.parse import unquote, urlparse


@dataclass(frozen=True)
class Platform:
    tag: str
    name: str
    domains: tuple[str, ...]


# Ordered table: first match wins
PLATFORMS: list[Platform] = [
    Platform("youtube",     "YouTube",     ("youtube.com", "youtu.be", "youtube-nocookie.com")),
    Platform("tiktok",      "TikTok",      ("tiktok.com",)),
    Platform("vimeo",       "Vimeo",       ("vimeo.com",)),
    Platform("twitch",      "Twitch",      ("twitch.tv",)),
    Platform("instagram",   "Instagram",   ("instagram.com", "instagr.am")),
    Platform("twitter",     "Twitter/X",   ("twitter.com", "x.com")),
    Platform("facebook",    "Facebook",    ("facebook.com", "fb.com", "fb.watch")),
    Platform("linkedin",    "LinkedIn",    ("linkedin.com", "lnkd.in")),
    Platform("pinterest",   "Pinterest",   ("pinterest.com", "pin.it")),
    Platform("reddit",      "Reddit",      ("reddit.com", "redd.it")),
    Platform("snapchat",    "Snapchat",    ("snapchat.com",)),
    Platform("discord",     "Discord",     ("discord.com", "discord.gg")),
    Platform("whatsapp",    "WhatsApp",    ("whatsapp.com", "wa.me")),
    Platform("telegram",    "Telegram",    ("telegram.org", "telegram.me", "t.me")),
    Platform("signal",      "Signal",      ("signal.org", "signal.me")),
    Platform("spotify",     "Spotify",     ("spotify.com",)),
    Platform("apple_music", "Apple Music", ("music.apple.com",)),
    Platform("soundcloud",  "SoundCloud",  ("soundcloud.com",)),
    Platform("amazon",      "Amazon",      ("amazon.com", "amazon.co.uk", "amazon.de", "amazon.in", "amzn.to")),
    Platform("shopify",     "Shopify",     ("myshopify.com", "shopify.com")),
    Platform("etsy",        "Etsy",        ("etsy.com", "etsy.me")),
    Platform("notion",      "Notion",      ("notion.so", "notion.site")),
    Platform("figma",       "Figma",       ("figma.com",)),
    Platform("github",      "GitHub",      ("github.com",)),
    Platform("medium",      "Medium",      ("medium.com",)),
]

_BY_TAG = {p.tag: p for p in PLATFORMS}


def _host(url: str) -> str | None:
    """Lower-cased host of an http(s) URL, or None if unparseable."""
    if not url or not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url.strip())
        host = parsed.hostname
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https") or not host:
        return None
    # Reject hosts with whitespace or no dot ("https://foo bar", "https://localhost")
    if "." not in host or any(c.isspace() for c in host):
        return None
    return host


def _host_matches(host: str, fragment: str) -> bool:
    return host == fragment or host.endswith("." + fragment)


def detect_platform(url: str) -> str | None:
    """Platform tag for a URL; "web" for unknown valid URLs, None if unparseable."""
    host = _host(url)
    if host is None:
        return None
    for platform in PLATFORMS:
        if any(_host_matches(host, d) for d in platform.domains):
            return platform.tag
    return "web"


def get_platform(tag: str | None) -> Platform | None:
    return _BY_TAG.get(tag) if tag else None


def platform_name(tag: str | None) -> str:
    platform = get_platform(tag)
    return platform.name if platform else "Web"


def overlapping_domains() -> list[tuple[str, str]]:
    """Fragment pairs from different platforms that can match the same host."""
    overlaps = []
    for i, a in enumerate(PLATFORMS):
        for b in PLATFORMS[i + 1:]:
            for da in a.domains:
                for db in b.domains:
                    if _host_matches(da, db) or _host_matches(db, da):
                        overlaps.append((da, db))
    return overlaps


def url_path(url: str) -> str:
    """Path + query of a URL without the leading slash."""
    parsed = urlparse(url)
    path = parsed.path.lstrip("/")
    if parsed.query:
        path += "?" + parsed.query
    return path


# ---------------------------------------------------------------------------
# Identifier extraction
# ---------------------------------------------------------------------------

def _first_group(patterns: list[re.Pattern], url: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(url)
        if match and match.group(1):
            return match.group(1)
    return None


YOUTUBE_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube(?:-nocookie)?\.com/embed/"
               r"|youtube\.com/shorts/|youtube\.com/live/)([^&\n?#/]+)", re.IGNORECASE),
    re.compile(r"youtube\.com/watch\?.*?\bv=([^&\n?#]+)", re.IGNORECASE),
]
INSTAGRAM_RE = re.compile(r"instagram\.com/(?:[\w.]+/)?(?:p|reel|tv)/([^/?#]+)", re.IGNORECASE)
TWITTER_RE = re.compile(r"(?:twitter\.com|x\.com)/\w+/status(?:es)?/(\d+)", re.IGNORECASE)
TIKTOK_RE = re.compile(r"tiktok\.com/@[\w.-]+/video/(\d+)", re.IGNORECASE)
SPOTIFY_RE = re.compile(
    r"spotify\.com/(?:intl-[\w-]+/)?(track|album|playlist|artist|show|episode)/([a-zA-Z0-9]+)",
    re.IGNORECASE,
)

# Order matters: first activity match wins
LINKEDIN_ACTIVITY_PATTERNS = [
    re.compile(r"urn:li:activity:(\d+)", re.IGNORECASE),
    re.compile(r"/feed/update/(\d+)", re.IGNORECASE),
    re.compile(r"activity-(\d+)", re.IGNORECASE),
]
LINKEDIN_PROFILE_RE = re.compile(r"linkedin\.com/in/([^/?#]+)", re.IGNORECASE)
LINKEDIN_COMPANY_RE = re.compile(r"linkedin\.com/company/([^/?#]+)", re.IGNORECASE)
LINKEDIN_JOB_RE = re.compile(r"linkedin\.com/jobs/view/(\d+)", re.IGNORECASE)

VIMEO_RE = re.compile(r"vimeo\.com/(?:video/|channels/[\w-]+/)?(\d+)", re.IGNORECASE)
TWITCH_VIDEO_RE = re.compile(r"twitch\.tv/videos/(\d+)", re.IGNORECASE)
TWITCH_CHANNEL_RE = re.compile(r"twitch\.tv/([A-Za-z0-9_]{3,25})/?(?:[?#]|$)", re.IGNORECASE)
PINTEREST_RE = re.compile(r"pinterest\.com/pin/(\d+)", re.IGNORECASE)
REDDIT_RE = re.compile(r"reddit\.com(/r/\w+(?:/comments/\w+)?)", re.IGNORECASE)
SNAPCHAT_RE = re.compile(r"snapchat\.com/add/([\w.-]+)", re.IGNORECASE)
DISCORD_RE = re.compile(r"(?:discord\.gg|discord\.com/invite)/([\w-]+)", re.IGNORECASE)
WHATSAPP_PATTERNS = [
    re.compile(r"wa\.me/(\d+)", re.IGNORECASE),
    re.compile(r"whatsapp\.com/send/?\?(?:.*&)?phone=\+?(\d+)", re.IGNORECASE),
]
TELEGRAM_RE = re.compile(r"(?:t\.me|telegram\.me)/([A-Za-z0-9_]{5,32})(?:[/?#]|$)", re.IGNORECASE)
SIGNAL_RE = re.compile(r"signal\.me/#p/(\+?\d+)", re.IGNORECASE)
APPLE_MUSIC_RE = re.compile(
    r"music\.apple\.com/(?:[a-z]{2}/)?(album|playlist|song|artist|music-video)/(?:[^/?#]+/)?([\w.-]+)",
    re.IGNORECASE,
)
AMAZON_RE = re.compile(r"/(?:dp|gp/product|gp/aw/d)/([A-Z0-9]{10})", re.IGNORECASE)
ETSY_RE = re.compile(r"etsy\.com/(?:[\w-]+/)?listing/(\d+)", re.IGNORECASE)
FIGMA_RE = re.compile(r"figma\.com/(?:file|design|proto)/([A-Za-z0-9]+)", re.IGNORECASE)


@dataclass(frozen=True)
class LinkedInTarget:
    """What a LinkedIn URL points at. kind: activity | profile | company | job | path."""
    kind: str
    value: str


def extract_youtube_id(url: str) -> str | None:
    return _first_group(YOUTUBE_PATTERNS, url)


def extract_instagram_id(url: str) -> str | None:
    match = INSTAGRAM_RE.search(url)
    return match.group(1) if match else None


def extract_twitter_id(url: str) -> str | None:
    match = TWITTER_RE.search(url)
    return match.group(1) if match else None


def extract_tiktok_id(url: str) -> str | None:
    match = TIKTOK_RE.search(url)
    return match.group(1) if match else None


def extract_spotify_id(url: str) -> tuple[str, str] | None:
    match = SPOTIFY_RE.search(url)
    if not match:
        return None
    return match.group(1).lower(), match.group(2)


def extract_linkedin_activity_id(url: str) -> str | None:
    # Shared post URLs often arrive percent-encoded (urn%3Ali%3Aactivity%3A...)
    return _first_group(LINKEDIN_ACTIVITY_PATTERNS, unquote(url))


def extract_linkedin_target(url: str) -> LinkedInTarget:
    """Never fails: unrecognized shapes become a "path" target."""
    activity_id = extract_linkedin_activity_id(url)
    if activity_id:
        return LinkedInTarget("activity", activity_id)

    for kind, pattern in (
        ("profile", LINKEDIN_PROFILE_RE),
        ("company", LINKEDIN_COMPANY_RE),
        ("job", LINKEDIN_JOB_RE),
    ):
        match = pattern.search(url)
        if match:
            return LinkedInTarget(kind, match.group(1))

    return LinkedInTarget("path", url_path(url))


def extract_twitch_target(url: str) -> tuple[str, str] | None:
    match = TWITCH_VIDEO_RE.search(url)
    if match:
        return "video", match.group(1)
    match = TWITCH_CHANNEL_RE.search(url)
    if match and match.group(1).lower() not in ("directory", "videos", "settings"):
        return "stream", match.group(1)
    return None


def extract_apple_music_item(url: str) -> tuple[str, str] | None:
    match = APPLE_MUSIC_RE.search(url)
    if not match:
        return None
    return match.group(1).lower(), match.group(2)


def _single(pattern: re.Pattern):
    def extract(url: str) -> str | None:
        match = pattern.search(url)
        return match.group(1) if match else None
    return extract


def _path_or_none(url: str) -> str | None:
    """Passthrough extractor: the URL path, None for a bare home page."""
    path = url_path(url)
    return path or None


extract_vimeo_id = _single(VIMEO_RE)
extract_pinterest_id = _single(PINTEREST_RE)
extract_reddit_path = _single(REDDIT_RE)
extract_snapchat_user = _single(SNAPCHAT_RE)
extract_discord_invite = _single(DISCORD_RE)
extract_telegram_user = _single(TELEGRAM_RE)
extract_signal_phone = _single(SIGNAL_RE)
extract_amazon_asin = _single(AMAZON_RE)
extract_etsy_listing = _single(ETSY_RE)
extract_figma_key = _single(FIGMA_RE)


def extract_whatsapp_phone(url: str) -> str | None:
    return _first_group(WHATSAPP_PATTERNS, url)


# tag → extractor. Platforms missing here (shopify) carry no app identifier.
EXTRACTORS = {
    "youtube":     extract_youtube_id,
    "tiktok":      extract_tiktok_id,
    "vimeo":       extract_vimeo_id,
    "twitch":      extract_twitch_target,
    "instagram":   extract_instagram_id,
    "twitter":     extract_twitter_id,
    "facebook":    _path_or_none,
    "linkedin":    extract_linkedin_target,
    "pinterest":   extract_pinterest_id,
    "reddit":      extract_reddit_path,
    "snapchat":    extract_snapchat_user,
    "discord":     extract_discord_invite,
    "whatsapp":    extract_whatsapp_phone,
    "telegram":    extract_telegram_user,
    "signal":      extract_signal_phone,
    "spotify":     extract_spotify_id,
    "apple_music": extract_apple_music_item,
    "soundcloud":  _path_or_none,
    "amazon":      extract_amazon_asin,
    "etsy":        extract_etsy_listing,
    "notion":      _path_or_none,
    "figma":       extract_figma_key,
    "github":      _path_or_none,
    "medium":      _path_or_none,
}


def extract_identifier(tag: str, url: str):
    """Run the platform's extractor. None means "cannot synthesize a deep link"."""
    extractor = EXTRACTORS.get(tag)
    if extractor is None:
        return None
    return extractor(url)
