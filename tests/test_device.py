"""Tests for User-Agent classification."""

import pytest
from app.core.device import DeviceClassification, classify, describe_agent


IPHONE_SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPHONE_CHROME = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) CriOS/120.0.6099.119 Mobile/15E148 Safari/604.1"
)
IPAD_SAFARI = (
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
ANDROID_CHROME = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
ANDROID_TABLET = (
    "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
INSTAGRAM_IOS = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Mobile/15E148 Instagram 309.0.2.18.118"
)
INSTAGRAM_ANDROID = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Version/4.0 Chrome/120.0.0.0 Mobile Safari/537.36 Instagram 309.0.0.40.113 Android"
)
FACEBOOK_ANDROID = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Version/4.0 Chrome/120.0.0.0 Mobile Safari/537.36 [FB_IAB/FB4A;FBAV/440.0.0.31.105;]"
)
LINKEDIN_IOS = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Mobile/15E148 [LinkedInApp]/9.29.1"
)
MAC_CHROME = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
WINDOWS_FIREFOX = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"


class TestDevice:
    @pytest.mark.parametrize("ua,device", [
        (IPHONE_SAFARI, "ios"),
        (IPAD_SAFARI, "ios"),
        (INSTAGRAM_IOS, "ios"),
        (ANDROID_CHROME, "android"),
        (FACEBOOK_ANDROID, "android"),
        (MAC_CHROME, "desktop"),
        (WINDOWS_FIREFOX, "desktop"),
    ])
    def test_device(self, ua, device):
        assert classify(ua).device == device

    @pytest.mark.parametrize("ua,platform_class", [
        (IPHONE_SAFARI, "mobile"),
        (ANDROID_CHROME, "mobile"),
        (IPAD_SAFARI, "tablet"),
        (ANDROID_TABLET, "tablet"),
        (MAC_CHROME, "desktop"),
    ])
    def test_platform_class(self, ua, platform_class):
        assert classify(ua).platform_class == platform_class


class TestBrowser:
    @pytest.mark.parametrize("ua,browser", [
        (IPHONE_SAFARI, "safari"),
        (IPHONE_CHROME, "chrome"),
        (ANDROID_CHROME, "chrome"),
        (MAC_CHROME, "chrome"),
        (WINDOWS_FIREFOX, "firefox"),
    ])
    def test_generic_browsers(self, ua, browser):
        result = classify(ua)
        assert result.browser == browser
        assert result.is_in_app_browser is False

    @pytest.mark.parametrize("ua,browser", [
        (INSTAGRAM_IOS, "instagram"),
        (INSTAGRAM_ANDROID, "instagram"),
        (FACEBOOK_ANDROID, "facebook"),
        (LINKEDIN_IOS, "linkedin"),
    ])
    def test_in_app_browsers(self, ua, browser):
        result = classify(ua)
        assert result.browser == browser
        assert result.is_in_app_browser is True
        assert result.is_social_app is True

    def test_in_app_checked_before_generic(self):
        # Instagram's Android webview also says Chrome and Mobile Safari
        assert classify(INSTAGRAM_ANDROID).browser == "instagram"

    def test_case_insensitive(self):
        assert classify(IPHONE_SAFARI.upper()).device == "ios"


class TestTotality:
    @pytest.mark.parametrize("ua", [None, "", "???", "x" * 5000])
    def test_any_input_classifies(self, ua):
        result = classify(ua)
        assert result.device in ("ios", "android", "desktop")
        assert result.platform_class in ("mobile", "tablet", "desktop")

    def test_empty_is_desktop_default(self):
        assert classify("") == DeviceClassification()
        assert classify(None).is_mobile_os is False


class TestDescribeAgent:
    def test_ios_versions(self):
        details = describe_agent(IPHONE_SAFARI)
        assert details.os_version == "17.0"
        assert details.is_bot is False

    def test_bot_flagged(self):
        assert describe_agent("Googlebot/2.1 (+http://www.google.com/bot.html)").is_bot is True

    def test_missing_ua(self):
        details = describe_agent(None)
        assert details.os_version is None
        assert details.browser_version is None
        assert details.is_bot is False
