"""HTML parsing helpers for the novel listing pages (``/html/{page}.html``)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from utils.text import strip_spaces
from utils.time import parse_update_time

LOGGER = logging.getLogger(__name__)

UNKNOWN_TITLE = "未知标题"
UNKNOWN_AUTHOR = "未知作者"
UNKNOWN_CATEGORY = "未知分类"
UNKNOWN_STATUS = "未知状态"
UNKNOWN_UPDATE_TIME = "未知时间"

WORD_COUNT_UNIT = "万字"
WORD_COUNT_MULTIPLIER = 10000

LISTING_ITEM_SELECTOR = "ul.flex li"
TITLE_SELECTOR = "h2"
LINK_SELECTOR = "a[href]"
LABEL_SELECTOR = "span"
AUTHOR_SELECTOR = "i.fa-user-circle-o"
WORD_COUNT_SELECTOR = "em.orange"
UPDATE_TIME_SELECTOR = "em.blue"
DESCRIPTION_SELECTOR = "p.indent"

_NOVEL_ID_RE = re.compile(r"[0-9]+")


@dataclass
class Novel:
    id: int
    title: str
    author: str
    category: str
    status: str
    word_count: int
    description: str
    source_url: str
    updated_at: datetime
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "category": self.category,
            "status": self.status,
            "word_count": self.word_count,
            "description": self.description,
            "source_url": self.source_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _node_text(item: Tag, selector: str) -> Optional[str]:
    node = item.select_one(selector)
    if node is None:
        return None
    return node.get_text()


def extract_novel_id(novel_url: str) -> Optional[int]:
    """Return the numeric id from the last path segment (``.../123.html``)."""
    if not novel_url:
        return None
    path = urlparse(novel_url).path
    segment = path.split("/")[-1].replace(".html", "")
    if not _NOVEL_ID_RE.fullmatch(segment):
        return None
    return int(segment)


def parse_word_count(text: Optional[str]) -> int:
    """Convert a ``"12万字"`` token into characters; missing or bad input is 0."""
    if text is None:
        return 0
    raw = text.strip().replace(WORD_COUNT_UNIT, "").strip()
    try:
        return int(raw) * WORD_COUNT_MULTIPLIER
    except ValueError:
        LOGGER.debug("Unparsable word count token: %r", text)
        return 0


def _split_label(text: Optional[str]) -> Tuple[str, str]:
    if text is None:
        return UNKNOWN_CATEGORY, UNKNOWN_STATUS
    parts = [part.strip() for part in text.strip().split("/")]
    category = parts[0] if parts and parts[0] else UNKNOWN_CATEGORY
    status = parts[1] if len(parts) > 1 and parts[1] else UNKNOWN_STATUS
    return category, status


def select_listing_items(document: Tag) -> List[Tag]:
    """Listing entries are ``li`` nodes that carry both a title and a blurb."""
    return [
        item
        for item in document.select(LISTING_ITEM_SELECTOR)
        if item.select_one(TITLE_SELECTOR) is not None and item.select_one(DESCRIPTION_SELECTOR) is not None
    ]


def parse_novel_item(item: Tag, *, base_url: str, now: datetime) -> Optional[Novel]:
    """Build a ``Novel`` from one listing entry, or ``None`` when it must be skipped."""
    try:
        title = (_node_text(item, TITLE_SELECTOR) or "").strip() or UNKNOWN_TITLE

        link = item.select_one(LINK_SELECTOR)
        if link is None:
            return None
        href = (link.get("href") or "").strip()
        novel_url = href if href.startswith("http") else urljoin(base_url + "/", href)

        novel_id = extract_novel_id(novel_url)
        if novel_id is None:
            LOGGER.warning("Cannot parse novel id from url: %s", novel_url)
            return None

        category, status = _split_label(_node_text(item, LABEL_SELECTOR))

        author_text = _node_text(item, AUTHOR_SELECTOR)
        author = strip_spaces(author_text) if author_text is not None else UNKNOWN_AUTHOR

        word_count = parse_word_count(_node_text(item, WORD_COUNT_SELECTOR))

        update_text = _node_text(item, UPDATE_TIME_SELECTOR)
        updated_at = parse_update_time(
            update_text.strip() if update_text is not None else UNKNOWN_UPDATE_TIME,
            now,
        )

        description = (_node_text(item, DESCRIPTION_SELECTOR) or "").strip()

        return Novel(
            id=novel_id,
            title=title,
            author=author,
            category=category,
            status=status,
            word_count=word_count,
            description=description,
            source_url=novel_url,
            updated_at=updated_at,
        )
    except Exception:
        LOGGER.error("Failed to parse novel item", exc_info=True)
        return None


def parse_novel_list(document: Tag, *, base_url: str, now: datetime) -> Tuple[List[Novel], int]:
    """Parse every listing entry on a page. Returns ``(novels, skipped_count)``."""
    novels: List[Novel] = []
    skipped = 0
    for item in select_listing_items(document):
        novel = parse_novel_item(item, base_url=base_url, now=now)
        if novel is None:
            skipped += 1
            continue
        novels.append(novel)
    return novels, skipped
