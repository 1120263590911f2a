"""
Supabase-backed data source for the lodge website.
"""

from lodge.datasource.api import LodgeApi
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
from lodge.datasource.supabase import SelectResult, SupabaseClient

__all__ = [
    "LodgeApi",
    "SupabaseClient",
    "SelectResult",
    "BlogPost",
    "Event",
    "FAQItem",
    "LodgeDocument",
    "MeetingMinutes",
    "MemberProfile",
    "Officer",
    "PageSection",
    "PaginatedDocuments",
    "Testimonial",
]
