"""
RSS scraper for Yahoo Finance ticker headlines.
Returns NewsHeadline models filtered by recency.
"""
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import feedparser

from libs.domain_models.market import NewsHeadline
from libs.errors import ProviderError

YAHOO_FEED = "https://feeds.finance.yahoo.com/rss/2.0/headline?s={symbol}&region=US&lang=en-US"


def _parse_pub_date(entry) -> Optional[datetime]:
    """Try to parse published date from an RSS entry."""
    published = getattr(entry, "published", None)
    if not published:
        return None
    try:
        parsed = parsedate_to_datetime(published)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _is_recent(pub_date: Optional[datetime], days_back: int) -> bool:
    if pub_date is None:
        return True  # include if we can't determine age
    cutoff = datetime.now(timezone.utc) - timedelta(days=days_back)
    return pub_date >= cutoff


def fetch_headlines(symbol: str, days_back: int = 7, limit: int = 30) -> list[NewsHeadline]:
    url = YAHOO_FEED.format(symbol=symbol.upper().strip())
    feed = feedparser.parse(url)
    if feed.bozo and not feed.entries:
        raise ProviderError(
            "NEWS_UNAVAILABLE",
            f"News feed unavailable: {getattr(feed, 'bozo_exception', 'unknown error')}",
            recoverable=True, provider="yahoo_rss",
        )

    headlines = []
    for entry in feed.entries:
        title = getattr(entry, "title", "").strip()
        if not title:
            continue
        pub_date = _parse_pub_date(entry)
        if not _is_recent(pub_date, days_back):
            continue
        headlines.append(NewsHeadline(
            title=title,
            source=getattr(getattr(entry, "source", None), "title", None) or "Yahoo Finance",
            published_at=pub_date.isoformat() if pub_date else None,
            url=getattr(entry, "link", None),
        ))
    return headlines[:limit]
