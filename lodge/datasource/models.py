"""
Lodge records returned by the remote data service.
"""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Record(BaseModel):
    """Base record; unknown columns are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


def _file_url_from_url(data: Any) -> Any:
    # The tables store the link in `url`
    if isinstance(data, dict) and not data.get("file_url") and data.get("url"):
        return {**data, "file_url": data["url"]}
    return data


class BlogPost(Record):
    """Blog, news, snippet or charity post."""

    title: str
    summary: str | None = None
    content: str = ""
    publish_date: datetime | None = None
    category: str = "blog"
    tags: list[str] = Field(default_factory=list)
    is_published: bool = False
    is_members_only: bool = False
    image_url: str | None = None

    @field_validator("is_published", "is_members_only", mode="before")
    @classmethod
    def null_is_false(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("tags", mode="before")
    @classmethod
    def null_tags(cls, value: Any) -> Any:
        return value or []


class LodgeDocument(Record):
    """Document in the members' library."""

    title: str
    category: str
    file_url: str = ""
    description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def map_url_column(cls, data: Any) -> Any:
        return _file_url_from_url(data)


class MeetingMinutes(Record):
    """Minutes of a lodge meeting."""

    title: str
    meeting_date: date
    file_url: str = ""

    @model_validator(mode="before")
    @classmethod
    def map_url_column(cls, data: Any) -> Any:
        return _file_url_from_url(data)


class Event(Record):
    """Lodge event."""

    title: str
    description: str = ""
    event_date: datetime
    location: str | None = None
    is_members_only: bool = False
    is_past_event: bool = False
    image_url: str | None = None

    @field_validator("is_members_only", "is_past_event", mode="before")
    @classmethod
    def null_is_false(cls, value: Any) -> bool:
        return bool(value)


class MemberProfile(Record):
    """Profile of a lodge member."""

    id: str = ""
    user_id: str
    full_name: str = ""
    contact_email: str | None = None
    contact_phone: str | None = None
    address: str | None = None
    join_date: str | None = None
    position: str | None = None
    role: Literal["member", "admin"] = "member"
    status: Literal["active", "pending", "inactive"] = "active"
    notes: str | None = None
    email_verified: bool | None = None
    grand_lodge_rank: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def known_role(cls, value: Any) -> str:
        return "admin" if value == "admin" else "member"

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, value: Any) -> Any:
        return value or "active"


class Testimonial(Record):
    """Published member testimonial."""

    content: str = ""
    author_name: str | None = None
    sort_order: int | None = None
    is_published: bool = False

    @field_validator("is_published", mode="before")
    @classmethod
    def null_is_false(cls, value: Any) -> bool:
        return bool(value)


class PaginatedDocuments(BaseModel):
    """One page of the document listing."""

    documents: list[LodgeDocument]
    total: int
    has_more: bool


class Officer(Record):
    """Lodge officer shown on the officers page."""

    name: str = ""
    position: str = ""
    image_url: str | None = None
    sort_order: int | None = None

    @model_validator(mode="before")
    @classmethod
    def name_from_full_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("full_name"):
            return {**data, "name": data["full_name"]}
        return data


class FAQItem(Record):
    question: str
    answer: str = ""
    is_published: bool = False
    sort_order: int | None = None

    @field_validator("is_published", mode="before")
    @classmethod
    def null_is_false(cls, value: Any) -> bool:
        return bool(value)


class PageSection(Record):
    """One editable section of a site page."""

    page_name: str
    section_name: str
    content_type: Literal["html", "json", "text"] = "text"
    content: str = ""
