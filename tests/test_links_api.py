"""Tests for the link management API (/v1/links)."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.tables import SmartLink


YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


def _existing_link(**overrides) -> SmartLink:
    fields = dict(
        id=uuid4(),
        slug="rick",
        web_fallback=YOUTUBE_URL,
        ios_url="youtube://watch?v=dQw4w9WgXcQ",
        android_url="vnd.youtube://watch?v=dQw4w9WgXcQ",
        title="YouTube Video dQw4w9WgXcQ",
        platform="youtube",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return SmartLink(**fields)


async def _assign_id(obj):
    # What the database would fill in on INSERT
    if obj.id is None:
        obj.id = uuid4()
    obj.created_at = datetime(2026, 1, 1, tzinfo=timezone.utc)


class _ApiTest:
    @pytest.fixture(autouse=True)
    def _setup(self):
        from fastapi import FastAPI
        from fastapi.testclient import TestClient
        from app.api.links import router

        self.app = FastAPI()
        self.app.include_router(router)
        self.client = TestClient(self.app)

    def _use_db(self, execute_results=None):
        mock_db = AsyncMock()
        mock_db.execute = AsyncMock(side_effect=execute_results or [])
        mock_db.add = MagicMock()
        mock_db.commit = AsyncMock()
        mock_db.rollback = AsyncMock()
        mock_db.refresh = AsyncMock(side_effect=_assign_id)
        mock_db.delete = AsyncMock()

        from app.models.database import get_db
        self.app.dependency_overrides[get_db] = lambda: mock_db
        return mock_db


class TestCreateLink(_ApiTest):
    def test_autofills_known_platform(self):
        mock_db = self._use_db([_result(None)])
        resp = self.client.post("/v1/links", json={"slug": "rick", "web_fallback": YOUTUBE_URL})
        assert resp.status_code == 201

        data = resp.json()
        assert data["platform"] == "youtube"
        assert data["ios_url"] == "youtube://watch?v=dQw4w9WgXcQ"
        assert data["android_url"] == "vnd.youtube://watch?v=dQw4w9WgXcQ"
        assert data["ios_appstore_url"].endswith("id544007664")
        assert data["short_url"].endswith("/s/rick")
        assert data["click_count"] == 0
        mock_db.add.assert_called_once()
        mock_db.commit.assert_awaited_once()

    def test_manual_entry_wins(self):
        self._use_db([_result(None)])
        resp = self.client.post("/v1/links", json={
            "slug": "rick",
            "web_fallback": YOUTUBE_URL,
            "ios_url": "myapp://video/1",
            "title": "Mine",
        })
        data = resp.json()
        assert data["ios_url"] == "myapp://video/1"
        assert data["title"] == "Mine"
        assert data["android_url"] == "vnd.youtube://watch?v=dQw4w9WgXcQ"

    def test_autofill_off(self):
        self._use_db([_result(None)])
        resp = self.client.post("/v1/links", json={
            "slug": "rick", "web_fallback": YOUTUBE_URL, "autofill": False,
        })
        assert resp.json()["ios_url"] is None

    def test_guessed_schemes_not_saved_by_default(self):
        self._use_db([_result(None)])
        resp = self.client.post("/v1/links", json={
            "slug": "shop", "web_fallback": "https://www.example.com/products/42",
        })
        data = resp.json()
        assert data["platform"] == "web"
        assert data["ios_url"] is None
        assert data["android_url"] is None

    def test_unextractable_url_still_saves(self):
        self._use_db([_result(None)])
        resp = self.client.post("/v1/links", json={
            "slug": "chan", "web_fallback": "https://www.youtube.com/@somechannel",
        })
        assert resp.status_code == 201
        assert resp.json()["platform"] == "youtube"
        assert resp.json()["ios_url"] is None

    def test_duplicate_slug(self):
        mock_db = self._use_db([_result(_existing_link())])
        resp = self.client.post("/v1/links", json={"slug": "rick", "web_fallback": YOUTUBE_URL})
        assert resp.status_code == 409
        mock_db.add.assert_not_called()

    def test_duplicate_slug_race(self):
        mock_db = self._use_db([_result(None)])
        mock_db.commit = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("unique")))
        resp = self.client.post("/v1/links", json={"slug": "rick", "web_fallback": YOUTUBE_URL})
        assert resp.status_code == 409
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.parametrize("body", [
        {"slug": "bad slug!", "web_fallback": YOUTUBE_URL},
        {"slug": "", "web_fallback": YOUTUBE_URL},
        {"slug": "ok", "web_fallback": "javascript:alert(1)"},
        {"slug": "ok", "web_fallback": "ftp://example.com/file"},
        {"slug": "ok", "web_fallback": "not a url"},
        {"slug": "ok", "web_fallback": YOUTUBE_URL, "android_playstore_url": "https://[oops"},
        {"slug": "ok", "web_fallback": YOUTUBE_URL, "ios_appstore_url": "itms-apps://itunes.apple.com/app/id1"},
        {"slug": "ok", "web_fallback": YOUTUBE_URL, "ios_url": "not a link"},
        {"slug": "ok", "web_fallback": YOUTUBE_URL, "android_url": "javascript:alert(1)"},
    ])
    def test_invalid_input(self, body):
        mock_db = self._use_db([_result(None)])
        resp = self.client.post("/v1/links", json=body)
        assert resp.status_code == 400
        mock_db.add.assert_not_called()

    def test_missing_field(self):
        self._use_db()
        resp = self.client.post("/v1/links", json={"slug": "rick"})
        assert resp.status_code == 422


class TestListLinks(_ApiTest):
    def test_lists_with_click_counts(self):
        link = _existing_link()
        other = _existing_link(slug="other")

        links_result = MagicMock()
        links_result.scalars.return_value.all.return_value = [link, other]
        counts_result = MagicMock()
        counts_result.all.return_value = [(link.id, 5)]

        self._use_db([links_result, counts_result])
        resp = self.client.get("/v1/links")
        assert resp.status_code == 200

        data = resp.json()
        assert [d["slug"] for d in data] == ["rick", "other"]
        assert data[0]["click_count"] == 5
        assert data[1]["click_count"] == 0


class TestParse(_ApiTest):
    def test_preview(self):
        resp = self.client.get("/v1/links/parse", params={"url": YOUTUBE_URL})
        assert resp.status_code == 200
        data = resp.json()
        assert data["platform_name"] == "YouTube"
        assert data["confidence"] == "high"
        assert data["deep_links_found"] is True

    def test_recognized_without_identifier(self):
        resp = self.client.get("/v1/links/parse", params={"url": "https://www.youtube.com/@somechannel"})
        data = resp.json()
        assert data["platform"] == "youtube"
        assert data["deep_links_found"] is False
        assert data["confidence"] == "none"

    def test_guess(self):
        resp = self.client.get("/v1/links/parse", params={"url": "https://acme.io/items/7"})
        data = resp.json()
        assert data["confidence"] == "guess"
        assert data["ios_url"] == "acme://items/7"

    def test_bad_url(self):
        resp = self.client.get("/v1/links/parse", params={"url": "hello"})
        assert resp.status_code == 400


class TestBySlug(_ApiTest):
    def test_found(self):
        self._use_db([_result(_existing_link())])
        resp = self.client.get("/v1/links/by-slug/rick")
        assert resp.status_code == 200
        assert resp.json()["platform"] == "youtube"
        assert resp.json()["web_fallback"] == YOUTUBE_URL

    def test_missing(self):
        self._use_db([_result(None)])
        assert self.client.get("/v1/links/by-slug/nope").status_code == 404


class TestUpdateLink(_ApiTest):
    def test_rename(self):
        link = _existing_link()
        self._use_db([_result(link), _result(None)])
        resp = self.client.put(f"/v1/links/{link.id}", json={"slug": "astley"})
        assert resp.status_code == 200
        assert resp.json()["slug"] == "astley"

    def test_rename_to_taken_slug(self):
        link = _existing_link()
        mock_db = self._use_db([_result(link), _result(_existing_link(slug="taken"))])
        resp = self.client.put(f"/v1/links/{link.id}", json={"slug": "taken"})
        assert resp.status_code == 409
        mock_db.commit.assert_not_awaited()

    def test_new_web_fallback_rederives_platform(self):
        link = _existing_link()
        self._use_db([_result(link)])
        resp = self.client.put(f"/v1/links/{link.id}", json={
            "web_fallback": "https://open.spotify.com/track/4uLU6hMCjMI75M1A2tKUQC",
        })
        assert resp.json()["platform"] == "spotify"

    def test_blank_clears_field(self):
        link = _existing_link()
        self._use_db([_result(link)])
        resp = self.client.put(f"/v1/links/{link.id}", json={"ios_url": "  "})
        data = resp.json()
        assert data["ios_url"] is None
        assert data["android_url"] == "vnd.youtube://watch?v=dQw4w9WgXcQ"

    def test_bad_web_fallback(self):
        link = _existing_link()
        self._use_db([_result(link)])
        resp = self.client.put(f"/v1/links/{link.id}", json={"web_fallback": "javascript:alert(1)"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [
        {"android_playstore_url": "https://[oops"},
        {"ios_url": "youtube"},
    ])
    def test_bad_app_links(self, body):
        link = _existing_link()
        mock_db = self._use_db([_result(link)])
        resp = self.client.put(f"/v1/links/{link.id}", json=body)
        assert resp.status_code == 400
        assert next(iter(body)) in resp.json()["detail"]
        mock_db.commit.assert_not_awaited()

    def test_missing(self):
        self._use_db([_result(None)])
        assert self.client.put(f"/v1/links/{uuid4()}", json={"title": "x"}).status_code == 404


class TestDeleteLink(_ApiTest):
    def test_delete(self):
        link = _existing_link()
        mock_db = self._use_db([_result(link)])
        resp = self.client.delete(f"/v1/links/{link.id}")
        assert resp.status_code == 200
        assert resp.json() == {"status": "deleted"}
        mock_db.delete.assert_awaited_once_with(link)

    def test_missing(self):
        self._use_db([_result(None)])
        assert self.client.delete(f"/v1/links/{uuid4()}").status_code == 404
