from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
from bs4 import BeautifulSoup, Tag

from gator.core.errors import MalformedFeedError

@dataclass
class RSSItem:
    title: Optional[str]
    link: Optional[str]
    description: Optional[str]
    pub_date: Optional[str]

@dataclass
class RSSFeed:
    title: Optional[str]
    link: Optional[str]
    description: Optional[str]
    items: list[RSSItem] = field(default_factory=list)

def _element_to_value(el: Tag) -> Any:
    """Element -> text for leaves, dict for elements with child elements.

    A tag name seen once maps to a single value and one seen repeatedly maps to
    a list, so a channel with one <item> yields a dict rather than a list.
    The full text of a dict element is kept under ``#text`` for mixed content.
    """
    children = [c for c in el.children if isinstance(c, Tag)]
    if not children:
        return el.get_text().strip()
    out: dict[str, Any] = {"#text": el.get_text().strip()}
    for child in children:
        # keep prefixes so <atom:link> does not collide with <link>
        name = f"{child.prefix}:{child.name}" if child.prefix else child.name
        value = _element_to_value(child)
        if name not in out:
            out[name] = value
        elif isinstance(out[name], list):
            out[name].append(value)
        else:
            out[name] = [out[name], value]
    return out

def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        # duplicated field, first one wins
        return _text(value[0]) if value else None
    if isinstance(value, dict):
        return value.get("#text") or None
    return str(value)

def as_items(raw: Any) -> list[Any]:
    """Absent -> [], a single item -> [item], a list -> itself."""
    if raw is None:
        return []
    if isinstance(raw, list):
        return raw
    return [raw]

def _item(raw: Any) -> RSSItem:
    if not isinstance(raw, dict):
        # <item>text</item> carries no fields
        raw = {}
    return RSSItem(
        title=_text(raw.get("title")),
        link=_text(raw.get("link")),
        description=_text(raw.get("description")),
        pub_date=_text(raw.get("pubDate")),
    )

def parse_feed(text: str) -> RSSFeed:
    soup = BeautifulSoup(text, "xml")
    root = soup.find("rss", recursive=False)
    if root is None:
        raise MalformedFeedError("Invalid RSS feed: missing rss element")

    doc = _element_to_value(root)
    channel = doc.get("channel") if isinstance(doc, dict) else None
    if isinstance(channel, list):
        channel = channel[0]
    if not isinstance(channel, dict):
        raise MalformedFeedError("Invalid RSS feed: missing channel field")

    return RSSFeed(
        title=_text(channel.get("title")),
        link=_text(channel.get("link")),
        description=_text(channel.get("description")),
        items=[_item(raw) for raw in as_items(channel.get("item"))],
    )
