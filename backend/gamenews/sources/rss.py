"""
RSS/Atom syndication support shared by feed-based publishers.

Handles fetching and parsing RSS 2.0 and Atom feeds into plain FeedEntry
records; subclasses decide how an entry maps onto a NewsItem.
"""

import logging
import re
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional
from xml.etree import ElementTree

from gamenews.errors import SourceFetchError
from gamenews.models.domain import NewsItem
from gamenews.sources.base import NewsSourceAdapter

logger = logging.getLogger(__name__)

# XML namespaces
ATOM_NS = "{http://www.w3.org/2005/Atom}"
DC_NS = "{http://purl.org/dc/elements/1.1/}"
CONTENT_NS = "{http://purl.org/rss/1.0/modules/content/}"
MEDIA_NS = "{http://search.yahoo.com/mrss/}"

IMG_SRC_RE = re.compile(r'<img[^>]+src="([^">]+)"', re.IGNORECASE)

MAX_BODY_LENGTH = 2000
MAX_SYNTHETIC_ID_LENGTH = 100


@dataclass
class FeedEntry:
    """One <item>/<entry> from a feed, before publisher-specific mapping."""
    title: str
    link: Optional[str] = None
    guid: Optional[str] = None
    description: str = ""
    content: str = ""
    author: Optional[str] = None
    categories: list[str] = field(default_factory=list)
    published_at: Optional[datetime] = None
    media_content_url: Optional[str] = None
    media_thumbnail_url: Optional[str] = None
    enclosure_url: Optional[str] = None


def clean_html(html: str) -> str:
    """Strip HTML tags from content."""
    if not html:
        return ""

    # Remove HTML tags
    clean = re.sub(r'<[^>]+>', ' ', html)
    # Normalize whitespace
    clean = ' '.join(clean.split())
    # Decode common entities
    clean = clean.replace('&amp;', '&')
    clean = clean.replace('&lt;', '<')
    clean = clean.replace('&gt;', '>')
    clean = clean.replace('&quot;', '"')
    clean = clean.replace('&#39;', "'")
    clean = clean.replace('&nbsp;', ' ')

    return clean.strip()


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_atom_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse Atom/ISO date format."""
    if not date_str:
        return None

    try:
        return to_naive_utc(datetime.fromisoformat(date_str.strip().replace("Z", "+00:00")))
    except ValueError:
        pass

    try:
        # Try without timezone
        return datetime.fromisoformat(date_str.strip()[:19])
    except ValueError:
        return None


def parse_rss_date(date_str: Optional[str]) -> Optional[datetime]:
    """Parse RSS date format (RFC 822)."""
    if not date_str:
        return None

    try:
        return to_naive_utc(parsedate_to_datetime(date_str))
    except (ValueError, TypeError):
        pass

    # Try ISO format as fallback
    return parse_atom_date(date_str)


def synthesize_external_id(
    publisher_id: str,
    title: str,
    published_at: Optional[datetime],
) -> str:
    """
    Deterministic id for entries that carry neither guid nor link.

    Built from title and timestamp only, so re-fetching the same entry
    always yields the same id.
    """
    slug = re.sub(r"[^a-z0-9]", "-", title.lower())
    if published_at is not None:
        stamp = int(published_at.replace(tzinfo=timezone.utc).timestamp() * 1000)
    else:
        stamp = 0
    return f"{publisher_id}-{slug}-{stamp}"[:MAX_SYNTHETIC_ID_LENGTH]


def parse_feed(xml_content: str) -> list[FeedEntry]:
    """
    Parse an RSS 2.0 or Atom document.

    Raises:
        ElementTree.ParseError: if the document is not well-formed XML
    """
    root = ElementTree.fromstring(xml_content)
    if root.tag == f"{ATOM_NS}feed":
        return [_parse_atom_entry(e) for e in root.findall(f"{ATOM_NS}entry")]
    return [_parse_rss_item(i) for i in root.findall(".//item")]


def _parse_rss_item(item: ElementTree.Element) -> FeedEntry:
    """Parse a single RSS item."""
    enclosure = item.find("enclosure")
    media_content = item.find(f"{MEDIA_NS}content")
    media_thumbnail = item.find(f"{MEDIA_NS}thumbnail")

    return FeedEntry(
        title=(item.findtext("title") or "").strip(),
        link=(item.findtext("link") or "").strip() or None,
        guid=(item.findtext("guid") or "").strip() or None,
        description=item.findtext("description") or "",
        content=item.findtext(f"{CONTENT_NS}encoded") or "",
        author=item.findtext("author") or item.findtext(f"{DC_NS}creator"),
        categories=[cat.text.strip() for cat in item.findall("category") if cat.text],
        published_at=parse_rss_date(item.findtext("pubDate") or item.findtext(f"{DC_NS}date")),
        media_content_url=media_content.get("url") if media_content is not None else None,
        media_thumbnail_url=media_thumbnail.get("url") if media_thumbnail is not None else None,
        enclosure_url=enclosure.get("url") if enclosure is not None else None,
    )


def _parse_atom_entry(entry: ElementTree.Element) -> FeedEntry:
    """Parse a single Atom entry."""
    link = None
    for link_elem in entry.findall(f"{ATOM_NS}link"):
        rel = link_elem.get("rel", "alternate")
        if rel == "alternate":
            link = link_elem.get("href")
            break

    authors = [
        name for name in (
            a.findtext(f"{ATOM_NS}name") for a in entry.findall(f"{ATOM_NS}author")
        ) if name
    ]

    categories = []
    for cat in entry.findall(f"{ATOM_NS}category"):
        term = cat.get("term") or cat.get("label")
        if term:
            categories.append(term)

    published_str = entry.findtext(f"{ATOM_NS}published")
    updated_str = entry.findtext(f"{ATOM_NS}updated")

    return FeedEntry(
        title=(entry.findtext(f"{ATOM_NS}title") or "").strip(),
        link=link,
        guid=(entry.findtext(f"{ATOM_NS}id") or "").strip() or None,
        description=entry.findtext(f"{ATOM_NS}summary") or "",
        content=entry.findtext(f"{ATOM_NS}content") or "",
        author=authors[0] if authors else None,
        categories=categories,
        published_at=parse_atom_date(published_str or updated_str),
    )


class RSSFeedSource(NewsSourceAdapter):
    """
    Publisher backed by one or more syndication feeds.

    Feeds are tried in order; the first one that yields entries wins. If
    every feed fails to load the fetch fails as a whole, so the publisher is
    reported unhealthy instead of silently looking empty.
    """

    feed_urls: tuple[str, ...] = ()

    async def _fetch(self) -> list[NewsItem]:
        last_error: Optional[Exception] = None
        reachable = False

        async with self._client() as client:
            for url in self.feed_urls:
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                    entries = parse_feed(response.text)
                except Exception as e:
                    logger.info(f"[{self.publisher_id}] Failed to fetch from {url}: {e}")
                    last_error = e
                    continue

                reachable = True
                if entries:
                    return self._build_items(entries[: self.max_items], self.entry_to_item)

        if not reachable and last_error is not None:
            raise SourceFetchError(self.publisher_id, f"all feeds failed: {last_error}")

        logger.warning(f"[{self.publisher_id}] All feeds were empty")
        return []

    @abstractmethod
    def entry_to_item(self, entry: FeedEntry) -> Optional[NewsItem]:
        """Map a parsed feed entry to a NewsItem (None to skip it)."""
        pass

    def external_id_for(self, entry: FeedEntry) -> str:
        """guid, then link, then a deterministic id from title and date."""
        return entry.guid or entry.link or synthesize_external_id(
            self.publisher_id, entry.title, entry.published_at
        )

    def extract_image(self, entry: FeedEntry) -> Optional[str]:
        """Try media:content, media:thumbnail, enclosure, then the first <img>."""
        if entry.media_content_url:
            return entry.media_content_url
        if entry.media_thumbnail_url:
            return entry.media_thumbnail_url
        if entry.enclosure_url:
            return entry.enclosure_url

        for html in (entry.content, entry.description):
            if html:
                match = IMG_SRC_RE.search(html)
                if match:
                    return match.group(1)

        return None

    def entry_body(self, entry: FeedEntry) -> str:
        return clean_html(entry.description or entry.content)[:MAX_BODY_LENGTH]
