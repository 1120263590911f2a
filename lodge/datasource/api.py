"""
Lodge API - cached reads and invalidating writes over the Supabase tables.

Every read goes through DataAccessClient.read with a key from CacheKeys.
Every write goes through DataAccessClient.write and names the keys whose
data it may have changed.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from loguru import logger

from lodge.datasource.models import (
    BlogPost,
    Event,
    FAQItem,
    LodgeDocument,
    MeetingMinutes,
    MemberProfile,
    Officer,
    PageSection,
    PaginatedDocuments,
    Testimonial,
)
from lodge.datasource.supabase import SupabaseClient
from lodge.services.client import DataAccessClient
from lodge.services.keys import CacheKeys
from lodge.settings import Settings

BLOG_TABLE = "blog_posts"
DOCUMENTS_TABLE = "lodge_documents"
MINUTES_TABLE = "meeting_minutes"
EVENTS_TABLE = "events"
MEMBERS_TABLE = "member_profiles"
SETTINGS_TABLE = "site_settings"
TESTIMONIALS_TABLE = "testimonials"
OFFICERS_TABLE = "officers"
FAQ_TABLE = "faq_items"
PAGE_CONTENT_TABLE = "page_content"

# Per-resource TTL overrides; anything else uses the cache default
NEXT_EVENT_TTL = timedelta(minutes=1)
PAGINATED_TTL = timedelta(minutes=2)
SITE_SETTINGS_TTL = timedelta(minutes=30)

DOCUMENT_KEYS = [CacheKeys.DOCUMENTS]
DOCUMENT_PATTERNS = [
    CacheKeys.children_pattern(CacheKeys.DOCUMENTS),
    CacheKeys.resource_pattern("documents_paginated"),
]
BLOG_KEYS = [CacheKeys.BLOG_POSTS, CacheKeys.NEWS_ARTICLES]
BLOG_PATTERNS = [
    CacheKeys.children_pattern(CacheKeys.BLOG_POSTS),
    CacheKeys.children_pattern("blog_post"),
]
EVENT_KEYS = [CacheKeys.EVENTS, CacheKeys.NEXT_EVENT]


class LodgeApi:
    """
    Data access for the lodge website.

    Usage:
        api = LodgeApi.from_settings(global_settings)
        events = await api.get_events()
        await api.create_document({"title": "Bylaws", "category": "lodge", "url": "..."})
        await api.close()
    """

    def __init__(self, client: DataAccessClient, remote: SupabaseClient):
        self.client = client
        self.remote = remote

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "LodgeApi":
        """Build the remote client and the data-access stack from configuration."""
        remote = SupabaseClient(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.request_timeout_seconds,
            transport=kwargs.pop("transport", None),
        )
        client = DataAccessClient.from_settings(
            settings, service_id=SupabaseClient.SERVICE_ID, on_close=remote.close, **kwargs
        )
        return cls(client, remote)

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "LodgeApi":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def check_connection(self) -> bool:
        return await self.remote.ping()

    # ------------------------------------------------------------------
    # Blog / news

    async def get_blog_posts(self, category: str | None = None) -> list[BlogPost]:
        """Published posts, newest first, optionally limited to one category."""
        key = (
            CacheKeys.blog_posts_by_category(category)
            if category
            else CacheKeys.BLOG_POSTS
        )
        return await self.client.read(key, lambda: self._published_posts(category))

    async def get_news(self) -> list[BlogPost]:
        return await self.client.read(
            CacheKeys.NEWS_ARTICLES, lambda: self._published_posts("news")
        )

    async def get_snippets(self) -> list[BlogPost]:
        return await self.get_blog_posts("snippets")

    async def get_charity(self) -> list[BlogPost]:
        return await self.get_blog_posts("charity")

    async def get_blog_post(self, post_id: str) -> BlogPost | None:
        async def fetch() -> BlogPost | None:
            row = await self.remote.select_one(BLOG_TABLE, {"id": post_id})
            return BlogPost.model_validate(row) if row else None

        return await self.client.read(CacheKeys.blog_post(post_id), fetch)

    async def _published_posts(self, category: str | None) -> list[BlogPost]:
        filters: dict[str, Any] = {"is_published": True}
        if category:
            filters["category"] = category
        result = await self.remote.select(
            BLOG_TABLE, filters=filters, order="publish_date.desc"
        )
        return [BlogPost.model_validate(row) for row in result.rows]

    async def create_blog_post(self, post: dict[str, Any]) -> BlogPost:
        row = await self.client.write(
            lambda: self.remote.insert(BLOG_TABLE, post),
            invalidate=BLOG_KEYS,
            invalidate_patterns=BLOG_PATTERNS,
        )
        return BlogPost.model_validate(row)

    async def update_blog_post(self, post_id: str, updates: dict[str, Any]) -> BlogPost:
        row = await self.client.write(
            lambda: self.remote.update(BLOG_TABLE, {"id": post_id}, updates),
            invalidate=BLOG_KEYS,
            invalidate_patterns=BLOG_PATTERNS,
        )
        return BlogPost.model_validate(row)

    async def delete_blog_post(self, post_id: str) -> None:
        await self.client.write(
            lambda: self.remote.delete(BLOG_TABLE, {"id": post_id}),
            invalidate=BLOG_KEYS,
            invalidate_patterns=BLOG_PATTERNS,
        )

    # ------------------------------------------------------------------
    # Events

    async def get_events(self) -> list[Event]:
        async def fetch() -> list[Event]:
            result = await self.remote.select(EVENTS_TABLE, order="event_date.asc")
            return [Event.model_validate(row) for row in result.rows]

        return await self.client.read(CacheKeys.EVENTS, fetch)

    async def get_next_upcoming_event(self) -> Event | None:
        async def fetch() -> Event | None:
            now = datetime.now(timezone.utc).isoformat()
            result = await self.remote.select(
                EVENTS_TABLE,
                filters={"event_date": f"gt.{now}"},
                order="event_date.asc",
                limit=1,
            )
            return Event.model_validate(result.rows[0]) if result.rows else None

        return await self.client.read(CacheKeys.NEXT_EVENT, fetch, ttl=NEXT_EVENT_TTL)

    async def create_event(self, event: dict[str, Any]) -> Event:
        row = await self.client.write(
            lambda: self.remote.insert(EVENTS_TABLE, event), invalidate=EVENT_KEYS
        )
        return Event.model_validate(row)

    async def update_event(self, event_id: str, updates: dict[str, Any]) -> Event:
        row = await self.client.write(
            lambda: self.remote.update(EVENTS_TABLE, {"id": event_id}, updates),
            invalidate=EVENT_KEYS,
        )
        return Event.model_validate(row)

    async def delete_event(self, event_id: str) -> None:
        await self.client.write(
            lambda: self.remote.delete(EVENTS_TABLE, {"id": event_id}),
            invalidate=EVENT_KEYS,
        )

    # ------------------------------------------------------------------
    # Documents

    async def get_lodge_documents(self, category: str | None = None) -> list[LodgeDocument]:
        key = CacheKeys.documents_by_category(category) if category else CacheKeys.DOCUMENTS

        async def fetch() -> list[LodgeDocument]:
            result = await self.remote.select(
                DOCUMENTS_TABLE,
                filters={"category": category} if category else None,
                order="created_at.desc",
            )
            return [LodgeDocument.model_validate(row) for row in result.rows]

        return await self.client.read(key, fetch)

    async def get_lodge_documents_paginated(
        self,
        page: int,
        page_size: int,
        category: str | None = None,
    ) -> PaginatedDocuments:
        """
        One page of documents, newest first.

        Args:
            page: 1-based page number
            page_size: Documents per page
            category: Restrict to one category
        """
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")

        offset = (page - 1) * page_size
        last = offset + page_size - 1

        async def fetch() -> PaginatedDocuments:
            result = await self.remote.select(
                DOCUMENTS_TABLE,
                filters={"category": category} if category else None,
                order="created_at.desc",
                limit=page_size,
                offset=offset,
                count=True,
            )
            total = result.total or 0
            return PaginatedDocuments(
                documents=[LodgeDocument.model_validate(row) for row in result.rows],
                total=total,
                has_more=last + 1 < total,
            )

        return await self.client.read(
            CacheKeys.documents_paginated(page, page_size, category),
            fetch,
            ttl=PAGINATED_TTL,
        )

    async def create_document(self, doc: dict[str, Any]) -> LodgeDocument:
        row = await self.client.write(
            lambda: self.remote.insert(DOCUMENTS_TABLE, doc),
            invalidate=DOCUMENT_KEYS,
            invalidate_patterns=DOCUMENT_PATTERNS,
        )
        return LodgeDocument.model_validate(row)

    async def update_document(self, doc_id: str, updates: dict[str, Any]) -> LodgeDocument:
        row = await self.client.write(
            lambda: self.remote.update(DOCUMENTS_TABLE, {"id": doc_id}, updates),
            invalidate=DOCUMENT_KEYS,
            invalidate_patterns=DOCUMENT_PATTERNS,
        )
        return LodgeDocument.model_validate(row)

    async def delete_document(self, doc_id: str) -> None:
        await self.client.write(
            lambda: self.remote.delete(DOCUMENTS_TABLE, {"id": doc_id}),
            invalidate=DOCUMENT_KEYS,
            invalidate_patterns=DOCUMENT_PATTERNS,
        )

    # ------------------------------------------------------------------
    # Meeting minutes

    async def get_meeting_minutes(self) -> list[MeetingMinutes]:
        async def fetch() -> list[MeetingMinutes]:
            result = await self.remote.select(MINUTES_TABLE, order="meeting_date.desc")
            return [MeetingMinutes.model_validate(row) for row in result.rows]

        return await self.client.read(CacheKeys.MEETING_MINUTES, fetch)

    async def create_minutes(self, minutes: dict[str, Any]) -> MeetingMinutes:
        row = await self.client.write(
            lambda: self.remote.insert(MINUTES_TABLE, minutes),
            invalidate=[CacheKeys.MEETING_MINUTES],
        )
        return MeetingMinutes.model_validate(row)

    async def update_minutes(self, minutes_id: str, updates: dict[str, Any]) -> MeetingMinutes:
        row = await self.client.write(
            lambda: self.remote.update(MINUTES_TABLE, {"id": minutes_id}, updates),
            invalidate=[CacheKeys.MEETING_MINUTES],
        )
        return MeetingMinutes.model_validate(row)

    async def delete_minutes(self, minutes_id: str) -> None:
        await self.client.write(
            lambda: self.remote.delete(MINUTES_TABLE, {"id": minutes_id}),
            invalidate=[CacheKeys.MEETING_MINUTES],
        )

    # ------------------------------------------------------------------
    # Members

    async def get_all_members(self) -> list[MemberProfile]:
        async def fetch() -> list[MemberProfile]:
            result = await self.remote.select(MEMBERS_TABLE, order="full_name.asc")
            return [MemberProfile.model_validate(row) for row in result.rows]

        return await self.client.read(CacheKeys.MEMBERS, fetch)

    async def get_member_profile(self, user_id: str) -> MemberProfile | None:
        async def fetch() -> MemberProfile | None:
            row = await self.remote.select_one(MEMBERS_TABLE, {"user_id": user_id})
            return MemberProfile.model_validate(row) if row else None

        return await self.client.read(CacheKeys.member_profile(user_id), fetch)

    async def create_member_profile(
        self,
        user_id: str,
        full_name: str,
        **fields: Any,
    ) -> MemberProfile:
        now = datetime.now(timezone.utc).isoformat()
        payload = {
            "user_id": user_id,
            "full_name": full_name,
            "status": "active",
            "role": "member",
            "join_date": now,
            **_clean_member_updates(fields),
        }
        row = await self.client.write(
            lambda: self.remote.insert(MEMBERS_TABLE, payload),
            invalidate=[CacheKeys.MEMBERS, CacheKeys.member_profile(user_id)],
        )
        logger.info(f"Created member profile for {user_id}")
        return MemberProfile.model_validate(row)

    async def update_member_profile(
        self,
        user_id: str,
        updates: dict[str, Any],
    ) -> MemberProfile:
        payload = _clean_member_updates(updates)
        row = await self.client.write(
            lambda: self.remote.update(MEMBERS_TABLE, {"user_id": user_id}, payload),
            invalidate=[CacheKeys.MEMBERS, CacheKeys.member_profile(user_id)],
        )
        return MemberProfile.model_validate(row)

    async def delete_member_profile(self, user_id: str) -> None:
        # Only the profile row; the auth user needs the service role
        await self.client.write(
            lambda: self.remote.delete(MEMBERS_TABLE, {"user_id": user_id}),
            invalidate=[CacheKeys.MEMBERS, CacheKeys.member_profile(user_id)],
        )

    # ------------------------------------------------------------------
    # Site content

    async def get_site_settings(self) -> dict[str, str]:
        async def fetch() -> dict[str, str]:
            result = await self.remote.select(
                SETTINGS_TABLE, columns="setting_key,setting_value"
            )
            return {row["setting_key"]: row["setting_value"] for row in result.rows}

        return await self.client.read(
            CacheKeys.SITE_SETTINGS, fetch, ttl=SITE_SETTINGS_TTL
        )

    async def get_testimonials(self) -> list[Testimonial]:
        async def fetch() -> list[Testimonial]:
            result = await self.remote.select(
                TESTIMONIALS_TABLE, filters={"is_published": True}, order="sort_order.asc"
            )
            return [Testimonial.model_validate(row) for row in result.rows]

        return await self.client.read(CacheKeys.TESTIMONIALS, fetch)

    async def get_officers(self) -> list[Officer]:
        async def fetch() -> list[Officer]:
            result = await self.remote.select(OFFICERS_TABLE, order="sort_order.asc")
            return [Officer.model_validate(row) for row in result.rows]

        return await self.client.read(CacheKeys.OFFICERS, fetch)

    async def get_faq_items(self) -> list[FAQItem]:
        async def fetch() -> list[FAQItem]:
            result = await self.remote.select(FAQ_TABLE, order="sort_order.asc")
            return [FAQItem.model_validate(row) for row in result.rows]

        return await self.client.read(CacheKeys.FAQ_ITEMS, fetch)

    async def get_page_content(self, page_name: str) -> list[PageSection]:
        """Sections of one page, ordered by section name."""

        async def fetch() -> list[PageSection]:
            result = await self.remote.select(
                PAGE_CONTENT_TABLE,
                filters={"page_name": page_name},
                order="section_name.asc",
            )
            return [PageSection.model_validate(row) for row in result.rows]

        return await self.client.read(CacheKeys.page_content(page_name), fetch)

    async def update_page_content(
        self,
        page_name: str,
        section_id: str,
        updates: dict[str, Any],
    ) -> PageSection:
        row = await self.client.write(
            lambda: self.remote.update(PAGE_CONTENT_TABLE, {"id": section_id}, updates),
            invalidate=[CacheKeys.page_content(page_name)],
        )
        return PageSection.model_validate(row)

    async def update_site_setting(self, key: str, value: str) -> dict[str, Any]:
        return await self.client.write(
            lambda: self.remote.update(
                SETTINGS_TABLE, {"setting_key": key}, {"setting_value": value}
            ),
            invalidate=[CacheKeys.SITE_SETTINGS],
        )


def _clean_member_updates(updates: dict[str, Any]) -> dict[str, Any]:
    """Drop a non-string join_date and coerce unknown roles to member."""
    cleaned = dict(updates)
    if not isinstance(cleaned.get("join_date"), str):
        cleaned.pop("join_date", None)
    if "role" in cleaned and cleaned["role"] not in ("member", "admin"):
        cleaned["role"] = "member"
    return cleaned
