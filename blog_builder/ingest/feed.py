from __future__ import annotations

import datetime as _dt
import logging
from email.utils import format_datetime
from typing import List, Optional
from urllib.parse import quote
from xml.sax.saxutils import escape

from .models import FeedEntry
from .repository import DatasetRepository

logger = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 50


def _rfc822(value: _dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=_dt.timezone.utc)
    return format_datetime(value)


class FeedGenerator:
    """
    Renders an RSS 2.0 document from the committed dataset. Documents without
    a creation date are never syndicated.
    """

    def __init__(
        self,
        repository: DatasetRepository,
        site_url: str,
        title: str,
        description: str,
        language: str = "ko",
        limit: int = DEFAULT_FEED_LIMIT,
    ):
        self.repo = repository
        self.site_url = site_url.rstrip("/")
        self.title = title
        self.description = description
        self.language = language
        self.limit = limit

    def post_url(self, slug: str) -> str:
        return f"{self.site_url}/blog/{quote(slug, safe='/')}"

    def entries(self) -> List[FeedEntry]:
        entries: List[FeedEntry] = []
        for record in self.repo.list_feed_documents(limit=self.limit):
            if record.created_at is None:
                continue
            link = self.post_url(record.slug)
            entries.append(
                FeedEntry(
                    title=record.title,
                    link=link,
                    guid=link,
                    published_at=record.created_at,
                    description=record.excerpt,
                )
            )
        return entries

    def render(
        self,
        build_time: Optional[_dt.datetime] = None,
        entries: Optional[List[FeedEntry]] = None,
    ) -> str:
        build_time = build_time or _dt.datetime.now(_dt.timezone.utc)
        items = []
        for entry in entries if entries is not None else self.entries():
            items.append(
                "    <item>\n"
                f"      <title>{escape(entry.title)}</title>\n"
                f"      <link>{escape(entry.link)}</link>\n"
                f'      <guid isPermaLink="true">{escape(entry.guid)}</guid>\n'
                f"      <pubDate>{_rfc822(entry.published_at)}</pubDate>\n"
                f"      <description>{escape(entry.description)}</description>\n"
                "    </item>\n"
            )
        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<rss version="2.0">\n'
            "  <channel>\n"
            f"    <title>{escape(self.title)}</title>\n"
            f"    <link>{escape(self.site_url)}</link>\n"
            f"    <description>{escape(self.description)}</description>\n"
            f"    <language>{escape(self.language)}</language>\n"
            f"    <lastBuildDate>{_rfc822(build_time)}</lastBuildDate>\n"
            + "".join(items)
            + "  </channel>\n"
            "</rss>\n"
        )
