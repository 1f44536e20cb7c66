"""Tests for platform detection and identifier extraction."""

import pytest
from app.core.platforms import (
    PLATFORMS,
    LinkedInTarget,
    detect_platform,
    extract_apple_music_item,
    extract_identifier,
    extract_instagram_id,
    extract_linkedin_target,
    extract_spotify_id,
    extract_twitch_target,
    extract_youtube_id,
    overlapping_domains,
    platform_name,
    url_path,
)


class TestDomainTable:
    def test_no_overlapping_fragments(self):
        assert overlapping_domains() == []

    def test_tags_unique(self):
        tags = [p.tag for p in PLATFORMS]
        assert len(tags) == len(set(tags))

    def test_platform_names(self):
        assert platform_name("twitter") == "Twitter/X"
        assert platform_name("apple_music") == "Apple Music"
        assert platform_name("web") == "Web"
        assert platform_name(None) == "Web"


class TestDetectPlatform:
    @pytest.mark.parametrize("url,tag", [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "youtube"),
        ("https://m.youtube.com/watch?v=dQw4w9WgXcQ", "youtube"),
        ("https://youtu.be/dQw4w9WgXcQ", "youtube"),
        ("https://x.com/jack/status/20", "twitter"),
        ("https://twitter.com/jack/status/20", "twitter"),
        ("https://www.instagram.com/p/ABC123/", "instagram"),
        ("https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC", "spotify"),
        ("https://music.apple.com/us/album/1989/1440935467", "apple_music"),
        ("https://lnkd.in/abc", "linkedin"),
        ("https://cool-store.myshopify.com/products/hat", "shopify"),
        ("HTTPS://WWW.YOUTUBE.COM/watch?v=abc", "youtube"),
    ])
    def test_known_platforms(self, url, tag):
        assert detect_platform(url) == tag

    @pytest.mark.parametrize("url", [
        "https://www.netflix.com/title/80057281",  # contains "x.com"
        "https://www.apple.com/iphone/",
        "https://example.com",
        "http://blog.example.org/post/1",
    ])
    def test_unknown_sites_are_web(self, url):
        assert detect_platform(url) == "web"

    @pytest.mark.parametrize("url", [
        "",
        None,
        "not a url",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "https://localhost/x",
        "myapp://open",
    ])
    def test_unparseable(self, url):
        assert detect_platform(url) is None


class TestYouTube:
    @pytest.mark.parametrize("url", [
        "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
        "https://youtu.be/dQw4w9WgXcQ?t=42",
        "https://www.youtube.com/embed/dQw4w9WgXcQ",
        "https://www.youtube-nocookie.com/embed/dQw4w9WgXcQ",
        "https://www.youtube.com/shorts/dQw4w9WgXcQ",
        "https://www.youtube.com/live/dQw4w9WgXcQ",
        "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
    ])
    def test_video_id(self, url):
        assert extract_youtube_id(url) == "dQw4w9WgXcQ"

    def test_channel_has_no_id(self):
        assert extract_youtube_id("https://www.youtube.com/@somechannel") is None


class TestInstagram:
    def test_post(self):
        assert extract_instagram_id("https://www.instagram.com/p/CxYz123/") == "CxYz123"

    def test_reel_with_username(self):
        assert extract_instagram_id("https://www.instagram.com/someone/reel/Reel99/") == "Reel99"

    def test_profile_has_no_id(self):
        assert extract_instagram_id("https://www.instagram.com/someone/") is None


class TestLinkedIn:
    def test_urn_activity(self):
        target = extract_linkedin_target(
            "https://www.linkedin.com/feed/update/urn:li:activity:7123456789012345678/"
        )
        assert target == LinkedInTarget("activity", "7123456789012345678")

    def test_percent_encoded_urn(self):
        target = extract_linkedin_target(
            "https://www.linkedin.com/feed/update/urn%3Ali%3Aactivity%3A7123456789/"
        )
        assert target == LinkedInTarget("activity", "7123456789")

    def test_posts_slug_activity(self):
        target = extract_linkedin_target(
            "https://www.linkedin.com/posts/jane-doe_launch-day-activity-7111222333-AbCd"
        )
        assert target == LinkedInTarget("activity", "7111222333")

    def test_urn_wins_over_slug(self):
        target = extract_linkedin_target(
            "https://www.linkedin.com/posts/x-activity-111?ref=urn:li:activity:222"
        )
        assert target.value == "222"

    @pytest.mark.parametrize("url,expected", [
        ("https://www.linkedin.com/in/janedoe/", LinkedInTarget("profile", "janedoe")),
        ("https://www.linkedin.com/company/acme", LinkedInTarget("company", "acme")),
        ("https://www.linkedin.com/jobs/view/3712345678/", LinkedInTarget("job", "3712345678")),
    ])
    def test_entities(self, url, expected):
        assert extract_linkedin_target(url) == expected

    def test_anything_else_is_a_path(self):
        target = extract_linkedin_target("https://www.linkedin.com/learning/?trk=nav")
        assert target == LinkedInTarget("path", "learning/?trk=nav")


class TestOtherExtractors:
    def test_spotify_with_locale(self):
        assert extract_spotify_id(
            "https://open.spotify.com/intl-de/track/4uLU6hMCjMI75M1A2tKUQC?si=x"
        ) == ("track", "4uLU6hMCjMI75M1A2tKUQC")

    def test_twitch(self):
        assert extract_twitch_target("https://www.twitch.tv/videos/1987654321") == ("video", "1987654321")
        assert extract_twitch_target("https://www.twitch.tv/shroud") == ("stream", "shroud")
        assert extract_twitch_target("https://www.twitch.tv/directory") is None

    def test_apple_music(self):
        assert extract_apple_music_item(
            "https://music.apple.com/us/album/1989-taylors-version/1708308989"
        ) == ("album", "1708308989")

    @pytest.mark.parametrize("tag,url,expected", [
        ("twitter", "https://x.com/jack/status/20", "20"),
        ("tiktok", "https://www.tiktok.com/@user.name/video/7300000000000000000", "7300000000000000000"),
        ("whatsapp", "https://wa.me/15551234567", "15551234567"),
        ("whatsapp", "https://api.whatsapp.com/send?phone=15551234567", "15551234567"),
        ("telegram", "https://t.me/durov", "durov"),
        ("amazon", "https://www.amazon.com/Some-Thing/dp/B08N5WRWNW/ref=sr_1_1", "B08N5WRWNW"),
        ("discord", "https://discord.gg/python", "python"),
        ("github", "https://github.com/encode/starlette", "encode/starlette"),
    ])
    def test_extract_identifier(self, tag, url, expected):
        assert extract_identifier(tag, url) == expected

    def test_passthrough_home_page_is_none(self):
        assert extract_identifier("github", "https://github.com/") is None

    def test_platform_without_app(self):
        assert extract_identifier("shopify", "https://cool-store.myshopify.com/products/hat") is None


def test_url_path():
    assert url_path("https://github.com/org/repo?tab=readme") == "org/repo?tab=readme"
    assert url_path("https://github.com") == ""
