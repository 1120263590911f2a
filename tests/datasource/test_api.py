"""Tests for the cached lodge API."""

import pytest
import pytest_asyncio

from lodge.datasource.api import LodgeApi
from lodge.datasource.models import BlogPost, Event, LodgeDocument
from lodge.services.errors import CircuitOpenError, RemoteDataError
from lodge.services.keys import CacheKeys
from lodge.settings import Settings

EVENT_ROW = {
    "id": "e1",
    "title": "Installation Meeting",
    "description": "Annual installation",
    "event_date": "2026-11-14T18:30:00+00:00",
    "is_members_only": None,
}
DOC_ROW = {
    "id": "d1",
    "title": "Bylaws",
    "category": "lodge",
    "url": "https://files.example/bylaws.pdf",
    "created_at": "2026-01-01T00:00:00+00:00",
}
POST_ROW = {
    "id": "p1",
    "title": "Charity walk",
    "content": "<p>Raised funds</p>",
    "publish_date": "2026-03-01T09:00:00+00:00",
    "category": "news",
    "is_published": True,
    "tags": None,
}


@pytest.fixture
def settings() -> Settings:
    return Settings.model_validate(
        {
            "SUPABASE_URL": "https://example.supabase.co",
            "SUPABASE_KEY": "test-key",
            "CIRCUIT_FAILURE_THRESHOLD": "3",
        }
    )


@pytest_asyncio.fixture
async def api(settings, postgrest, clock):
    lodge_api = LodgeApi.from_settings(settings, transport=postgrest.transport, clock=clock)
    yield lodge_api
    await lodge_api.close()


class TestCachedReads:
    """Reads hit the backend once and are then served from cache."""

    @pytest.mark.asyncio
    async def test_events_cached(self, api, postgrest) -> None:
        """get_events() parses rows and caches them."""
        postgrest.on("GET", "events", [EVENT_ROW])

        first = await api.get_events()
        second = await api.get_events()

        assert first is second
        assert isinstance(first[0], Event)
        assert first[0].is_members_only is False
        assert len(postgrest.calls("GET", "events")) == 1
        assert postgrest.requests[0].url.params["order"] == "event_date.asc"

    @pytest.mark.asyncio
    async def test_blog_posts_by_category(self, api, postgrest) -> None:
        """Category reads filter server side and use their own cache key."""
        postgrest.on("GET", "blog_posts", [POST_ROW])

        posts = await api.get_charity()

        params = postgrest.requests[0].url.params
        assert params["category"] == "eq.charity"
        assert params["is_published"] == "eq.true"
        assert posts[0].tags == []
        assert CacheKeys.blog_posts_by_category("charity") in api.client.cache.get_stats().keys

    @pytest.mark.asyncio
    async def test_news_uses_news_key(self, api, postgrest) -> None:
        """get_news() is cached under the news key."""
        postgrest.on("GET", "blog_posts", [POST_ROW])

        await api.get_news()

        assert api.client.cache.get_stats().keys == [CacheKeys.NEWS_ARTICLES]

    @pytest.mark.asyncio
    async def test_missing_blog_post_is_none(self, api, postgrest) -> None:
        """An unknown post id yields None."""
        postgrest.on("GET", "blog_posts", [])
        assert await api.get_blog_post("nope") is None

    @pytest.mark.asyncio
    async def test_documents_map_url_column(self, api, postgrest) -> None:
        """The url column is exposed as file_url."""
        postgrest.on("GET", "lodge_documents", [DOC_ROW])

        docs = await api.get_lodge_documents()

        assert isinstance(docs[0], LodgeDocument)
        assert docs[0].file_url == "https://files.example/bylaws.pdf"

    @pytest.mark.asyncio
    async def test_site_settings_folded_into_dict(self, api, postgrest) -> None:
        """Setting rows become a key/value mapping."""
        postgrest.on(
            "GET",
            "site_settings",
            [
                {"setting_key": "lodge_name", "setting_value": "Radlett Lodge"},
                {"setting_key": "meeting_day", "setting_value": "Third Friday"},
            ],
        )

        assert await api.get_site_settings() == {
            "lodge_name": "Radlett Lodge",
            "meeting_day": "Third Friday",
        }

    @pytest.mark.asyncio
    async def test_member_profile_defaults(self, api, postgrest) -> None:
        """Null status and unknown roles are normalised."""
        postgrest.on(
            "GET",
            "member_profiles",
            [{"id": "m1", "user_id": "u1", "full_name": "A Member", "status": None, "role": "owner"}],
        )

        profile = await api.get_member_profile("u1")

        assert profile.status == "active"
        assert profile.role == "member"
        assert postgrest.requests[0].url.params["user_id"] == "eq.u1"


class TestPagination:
    """Tests for get_lodge_documents_paginated."""

    @pytest.mark.asyncio
    async def test_page_offsets_and_has_more(self, api, postgrest) -> None:
        """Page 2 of 20 skips 20 rows and reports more pages."""
        postgrest.on(
            "GET", "lodge_documents", [DOC_ROW], headers={"Content-Range": "20-39/57"}
        )

        page = await api.get_lodge_documents_paginated(2, 20)

        params = postgrest.requests[0].url.params
        assert params["offset"] == "20"
        assert params["limit"] == "20"
        assert page.total == 57
        assert page.has_more is True
        assert api.client.cache.get_stats().keys == ["documents_paginated:2:20:all"]

    @pytest.mark.asyncio
    async def test_last_page(self, api, postgrest) -> None:
        """The final page reports no more results."""
        postgrest.on(
            "GET", "lodge_documents", [DOC_ROW], headers={"Content-Range": "40-56/57"}
        )

        page = await api.get_lodge_documents_paginated(3, 20, category="lodge")

        assert page.has_more is False
        assert postgrest.requests[0].url.params["category"] == "eq.lodge"

    @pytest.mark.asyncio
    async def test_rejects_non_positive_page(self, api) -> None:
        with pytest.raises(ValueError):
            await api.get_lodge_documents_paginated(0, 20)


class TestInvalidatingWrites:
    """Writes invalidate exactly the affected cache entries."""

    @pytest.mark.asyncio
    async def test_create_document_invalidates_document_keys(self, api, postgrest) -> None:
        """All document listings are dropped; unrelated entries stay."""
        postgrest.on("GET", "lodge_documents", [DOC_ROW], headers={"Content-Range": "0-0/1"})
        postgrest.on("GET", "events", [EVENT_ROW])
        postgrest.on("POST", "lodge_documents", [DOC_ROW], status=201)

        await api.get_lodge_documents()
        await api.get_lodge_documents("grand_lodge")
        await api.get_lodge_documents_paginated(1, 20)
        await api.get_lodge_documents_paginated(2, 20)
        await api.get_events()

        created = await api.create_document({"title": "Bylaws", "category": "lodge"})

        assert created.id == "d1"
        assert api.client.cache.get_stats().keys == [CacheKeys.EVENTS]

    @pytest.mark.asyncio
    async def test_failed_write_keeps_cache(self, api, postgrest) -> None:
        """A rejected write leaves cached data in place."""
        postgrest.on("GET", "lodge_documents", [DOC_ROW])
        postgrest.on("DELETE", "lodge_documents", {"message": "permission denied"}, status=403)

        await api.get_lodge_documents()

        with pytest.raises(RemoteDataError):
            await api.delete_document("d1")

        assert api.client.cache.get_stats().keys == [CacheKeys.DOCUMENTS]

    @pytest.mark.asyncio
    async def test_blog_write_invalidates_all_blog_keys(self, api, postgrest) -> None:
        """Blog writes clear listings, news and single-post entries."""
        postgrest.on("GET", "blog_posts", [POST_ROW])
        postgrest.on("PATCH", "blog_posts", [POST_ROW])
        postgrest.on("GET", "events", [EVENT_ROW])

        await api.get_blog_posts()
        await api.get_news()
        await api.get_snippets()
        await api.get_blog_post("p1")
        await api.get_events()

        updated = await api.update_blog_post("p1", {"title": "Charity walk"})

        assert isinstance(updated, BlogPost)
        assert api.client.cache.get_stats().keys == [CacheKeys.EVENTS]

    @pytest.mark.asyncio
    async def test_event_write_refreshes_next_event(self, api, postgrest) -> None:
        """Event writes drop both the event list and the next-event entry."""
        postgrest.on("GET", "events", [EVENT_ROW])
        postgrest.on("DELETE", "events", [])

        await api.get_events()
        await api.get_next_upcoming_event()
        await api.delete_event("e1")

        assert api.client.cache.get_stats().keys == []

    @pytest.mark.asyncio
    async def test_update_member_profile_cleans_payload(self, api, postgrest) -> None:
        """Non-string join dates are dropped and unknown roles coerced."""
        postgrest.on("GET", "member_profiles", [{"id": "m1", "user_id": "u1"}])
        postgrest.on("PATCH", "member_profiles", [{"id": "m1", "user_id": "u1", "role": "member"}])

        await api.get_all_members()
        await api.get_member_profile("u1")
        await api.update_member_profile("u1", {"join_date": None, "role": "grand_master"})

        body = postgrest.body(postgrest.calls("PATCH", "member_profiles")[0])
        assert body == {"role": "member"}
        assert api.client.cache.get_stats().keys == []

    @pytest.mark.asyncio
    async def test_create_member_profile_defaults(self, api, postgrest) -> None:
        """New profiles start active with the member role."""
        postgrest.on("POST", "member_profiles", [{"id": "m2", "user_id": "u2", "full_name": "New"}])

        profile = await api.create_member_profile("u2", "New")

        body = postgrest.body(postgrest.requests[0])
        assert body["status"] == "active"
        assert body["role"] == "member"
        assert isinstance(body["join_date"], str)
        assert profile.user_id == "u2"

    @pytest.mark.asyncio
    async def test_minutes_write_invalidates_minutes(self, api, postgrest) -> None:
        postgrest.on(
            "GET",
            "meeting_minutes",
            [{"id": "mm1", "title": "March", "meeting_date": "2026-03-20", "url": "u"}],
        )
        postgrest.on(
            "POST",
            "meeting_minutes",
            [{"id": "mm2", "title": "April", "meeting_date": "2026-04-17", "url": "u"}],
        )

        minutes = await api.get_meeting_minutes()
        assert minutes[0].file_url == "u"

        await api.create_minutes({"title": "April", "meeting_date": "2026-04-17"})

        assert CacheKeys.MEETING_MINUTES not in api.client.cache.get_stats().keys


class TestResilience:
    """The API inherits the circuit breaker from the data-access client."""

    @pytest.mark.asyncio
    async def test_breaker_opens_after_server_errors(self, api, postgrest) -> None:
        """Three failing reads open the circuit and stop remote calls."""
        postgrest.on("GET", "events", {"message": "upstream error"}, status=500)

        for _ in range(3):
            with pytest.raises(RemoteDataError):
                await api.get_events()

        with pytest.raises(CircuitOpenError):
            await api.get_testimonials()

        assert len(postgrest.requests) == 3

    @pytest.mark.asyncio
    async def test_breaker_recovers_after_timeout(self, api, postgrest, clock) -> None:
        """After the reset timeout a successful read closes the circuit."""
        postgrest.on("GET", "events", {"message": "upstream error"}, status=500)
        for _ in range(3):
            with pytest.raises(RemoteDataError):
                await api.get_events()

        clock.advance(seconds=31)
        postgrest.on("GET", "events", [EVENT_ROW])

        events = await api.get_events()

        assert events[0].id == "e1"
        assert api.client.get_circuit_status()["state"] == "CLOSED"

    @pytest.mark.asyncio
    async def test_check_connection(self, api, postgrest) -> None:
        postgrest.on("GET", "member_profiles", [{"id": "m1"}])
        assert await api.check_connection() is True


class TestSiteContent:
    """Officers, FAQ, page sections and site settings."""

    @pytest.mark.asyncio
    async def test_officers_cached_and_named(self, api, postgrest) -> None:
        """Officers are ordered, cached and fall back to full_name."""
        postgrest.on(
            "GET",
            "officers",
            [{"id": "o1", "position": "Worshipful Master", "full_name": "J Smith", "sort_order": 1}],
        )

        first = await api.get_officers()
        second = await api.get_officers()

        assert first is second
        assert first[0].name == "J Smith"
        assert postgrest.requests[0].url.params["order"] == "sort_order.asc"
        assert len(postgrest.calls("GET", "officers")) == 1
        assert api.client.cache.get_stats().keys == [CacheKeys.OFFICERS]

    @pytest.mark.asyncio
    async def test_faq_items_cached(self, api, postgrest) -> None:
        postgrest.on(
            "GET",
            "faq_items",
            [{"id": "f1", "question": "Who can join?", "answer": "Any man over 21", "is_published": None}],
        )

        items = await api.get_faq_items()
        await api.get_faq_items()

        assert items[0].question == "Who can join?"
        assert items[0].is_published is False
        assert len(postgrest.calls("GET", "faq_items")) == 1
        assert api.client.cache.get_stats().keys == [CacheKeys.FAQ_ITEMS]

    @pytest.mark.asyncio
    async def test_page_content_keyed_per_page(self, api, postgrest) -> None:
        """Each page is cached under its own key and filtered server side."""
        postgrest.on(
            "GET",
            "page_content",
            [{"id": "s1", "page_name": "about", "section_name": "intro", "content": "<p>Hi</p>"}],
        )

        sections = await api.get_page_content("about")

        params = postgrest.requests[0].url.params
        assert params["page_name"] == "eq.about"
        assert params["order"] == "section_name.asc"
        assert sections[0].section_name == "intro"
        assert api.client.cache.get_stats().keys == [CacheKeys.page_content("about")]

    @pytest.mark.asyncio
    async def test_update_page_content_invalidates_that_page(self, api, postgrest) -> None:
        """Editing a section drops only the cached page it belongs to."""
        section = {"id": "s1", "page_name": "about", "section_name": "intro", "content": "old"}
        postgrest.on("GET", "page_content", [section])
        postgrest.on("PATCH", "page_content", [{**section, "content": "new"}])

        await api.get_page_content("about")
        await api.get_page_content("history")

        updated = await api.update_page_content("about", "s1", {"content": "new"})

        patch = postgrest.calls("PATCH", "page_content")[0]
        assert patch.url.params["id"] == "eq.s1"
        assert postgrest.body(patch) == {"content": "new"}
        assert updated.content == "new"
        assert api.client.cache.get_stats().keys == [CacheKeys.page_content("history")]

    @pytest.mark.asyncio
    async def test_update_site_setting_invalidates_settings(self, api, postgrest) -> None:
        """Changing a setting refetches the settings map on next read."""
        postgrest.on(
            "GET", "site_settings", [{"setting_key": "lodge_name", "setting_value": "Old"}]
        )
        postgrest.on(
            "PATCH", "site_settings", [{"setting_key": "lodge_name", "setting_value": "New"}]
        )
        postgrest.on("GET", "events", [EVENT_ROW])

        await api.get_site_settings()
        await api.get_events()

        row = await api.update_site_setting("lodge_name", "New")

        patch = postgrest.calls("PATCH", "site_settings")[0]
        assert patch.url.params["setting_key"] == "eq.lodge_name"
        assert postgrest.body(patch) == {"setting_value": "New"}
        assert row["setting_value"] == "New"
        assert api.client.cache.get_stats().keys == [CacheKeys.EVENTS]
