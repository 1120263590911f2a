"""Cache key schema for the lodge data-access layer.

Key format: {resource}[:{part}...]

Where:
- resource: logical dataset name ("documents", "blog_posts", ...)
- part: filter or pagination value, None renders as "all"

Read call sites and invalidation call sites must build keys through this
module; invalidation works by matching these strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

SEPARATOR = ":"
ALL = "all"


@dataclass(frozen=True)
class CacheKey:
    """Structured cache key with a canonical string form."""

    resource: str
    parts: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if not self.resource or SEPARATOR in self.resource:
            raise ValueError(f"Invalid cache key resource: {self.resource!r}")

    def __str__(self) -> str:
        rendered = [ALL if part is None else str(part) for part in self.parts]
        return SEPARATOR.join([self.resource, *rendered])

    @classmethod
    def parse(cls, key: str) -> CacheKey:
        """Split a key string back into resource and string parts."""
        resource, *parts = key.split(SEPARATOR)
        return cls(resource, tuple(parts))


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    DOCUMENTS = "documents"
    MEETING_MINUTES = "meeting_minutes"
    MEMBERS = "members"
    EVENTS = "events"
    NEXT_EVENT = "next_event"
    NEWS_ARTICLES = "news_articles"
    OFFICERS = "officers"
    TESTIMONIALS = "testimonials"
    FAQ_ITEMS = "faq_items"
    SITE_SETTINGS = "site_settings"
    BLOG_POSTS = "blog_posts"

    @staticmethod
    def build(resource: str, *parts: Any) -> str:
        return str(CacheKey(resource, parts))

    @classmethod
    def documents_by_category(cls, category: str) -> str:
        """Key for the full document list of one category."""
        return cls.build(cls.DOCUMENTS, category)

    @classmethod
    def documents_paginated(cls, page: int, page_size: int, category: str | None = None) -> str:
        """Key for one page of the document listing."""
        return cls.build("documents_paginated", page, page_size, category)

    @classmethod
    def blog_posts_by_category(cls, category: str) -> str:
        return cls.build(cls.BLOG_POSTS, category)

    @classmethod
    def blog_post(cls, post_id: str) -> str:
        return cls.build("blog_post", post_id)

    @classmethod
    def member_profile(cls, user_id: str) -> str:
        return cls.build("member_profile", user_id)

    @classmethod
    def page_content(cls, page: str) -> str:
        return cls.build("page_content", page)

    @staticmethod
    def resource_pattern(resource: str) -> str:
        """Pattern matching the bare resource key and every key under it.

        Use with DataCache.invalidate_pattern.
        """
        return f"^{re.escape(resource)}(?:{SEPARATOR}|$)"

    @staticmethod
    def children_pattern(resource: str) -> str:
        """Pattern matching only keys that carry parts after the resource."""
        return f"^{re.escape(resource)}{SEPARATOR}"
