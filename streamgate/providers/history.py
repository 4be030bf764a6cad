"""
streamgate - Conversation History Adapters

Two strategies, chosen per backend:
- StructuredHistory: map a JSON list from a REST endpoint
- ScrapedHistory: regex over an HTML page fetched with the session cookie

Scraping depends on undocumented third-party markup. When the markup
changes the pattern stops matching and the adapter returns an empty list
(logged as a warning) rather than failing.
"""

import html
import re
import time
from datetime import datetime
from typing import Any, List, Optional, Pattern, Sequence, Union

from ..core.models import ConversationSummary
from ..observability.logging import get_logger


logger = get_logger("streamgate.history")


def parse_timestamp(value: Any) -> Optional[float]:
    """
    Normalize a timestamp to epoch seconds.

    Accepts epoch seconds, epoch milliseconds and ISO-8601 strings.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value / 1000.0 if value > 1e11 else float(value)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
        except ValueError:
            return None
    return None


def _first(item: dict, keys: Sequence[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


class StructuredHistory:
    """Maps JSON conversation lists to summaries."""

    def __init__(
        self,
        id_keys: Sequence[str] = ("id", "_id"),
        title_keys: Sequence[str] = ("title",),
        timestamp_keys: Sequence[str] = ("updatedAt", "updated_at", "createdAt", "created_at"),
        default_title: str = "Untitled",
    ):
        self.id_keys = id_keys
        self.title_keys = title_keys
        self.timestamp_keys = timestamp_keys
        self.default_title = default_title

    def parse(self, items: Any, limit: Optional[int] = None) -> List[ConversationSummary]:
        if not isinstance(items, list):
            return []

        seen = set()
        result = []
        for item in items:
            if not isinstance(item, dict):
                continue
            conversation_id = _first(item, self.id_keys)
            if conversation_id is None or str(conversation_id) in seen:
                continue
            seen.add(str(conversation_id))
            title = _first(item, self.title_keys)
            result.append(ConversationSummary(
                id=str(conversation_id),
                title=str(title).strip() if title else self.default_title,
                timestamp=parse_timestamp(_first(item, self.timestamp_keys)),
            ))
            if limit is not None and len(result) >= limit:
                break
        return result


class ScrapedHistory:
    """
    Extracts conversation anchors from HTML.

    The pattern must capture the id and the title (groups 1 and 2 by
    default). Duplicate ids keep their first occurrence.
    """

    def __init__(
        self,
        pattern: Union[str, Pattern[str]],
        id_group: int = 1,
        title_group: int = 2,
        provider: str = "",
    ):
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.id_group = id_group
        self.title_group = title_group
        self.provider = provider

    def parse(self, document: str, limit: int = 30) -> List[ConversationSummary]:
        fetched_at = time.time()
        seen = set()
        result = []

        for match in self.pattern.finditer(document or ""):
            conversation_id = match.group(self.id_group)
            title = html.unescape(match.group(self.title_group) or "").strip()
            if not conversation_id or not title or conversation_id in seen:
                continue
            seen.add(conversation_id)
            result.append(ConversationSummary(id=conversation_id, title=title, timestamp=fetched_at))

        if not result:
            logger.warning(
                "History page matched no conversations; markup may have changed",
                provider=self.provider,
                document_length=len(document or ""),
            )
        return result[:max(limit, 0)]

