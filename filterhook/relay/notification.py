"""
Notification Builder

Renders an EnrichedEvent as a webhook embed.
Third stage of the relay pipeline; deterministic, no I/O.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..common.markup import (
    wiki_url,
    wikitext_to_markdown,
    link_user,
    insert_filter_description,
)
from .enrichment import EnrichedEvent

BOLD_DELTA_THRESHOLD = 500
DESCRIPTION_LIMIT = 4096  # Discord embed description limit

ICON_BASE = "https://commons.wikimedia.org/wiki/Special:FilePath/"


# ============================================================================
# Categories
# ============================================================================

class Category(str, Enum):
    """Size-change category of the filtered edit"""
    ADD = "add"
    REMOVE = "remove"
    ZERO = "zero"
    LOG = "log"  # no revision or no diff available


@dataclass(frozen=True)
class CategoryStyle:
    """Embed colour and author icon for a category"""
    color: int
    icon_url: str


CATEGORY_STYLES: Dict[Category, CategoryStyle] = {
    Category.ADD: CategoryStyle(
        color=0x00AF89,
        icon_url=ICON_BASE + "OOjs_UI_icon_add.svg",
    ),
    Category.REMOVE: CategoryStyle(
        color=0xD73333,
        icon_url=ICON_BASE + "OOjs_UI_icon_subtract.svg",
    ),
    Category.ZERO: CategoryStyle(
        color=0xA2A9B1,
        icon_url=ICON_BASE + "OOjs_UI_icon_edit.svg",
    ),
    Category.LOG: CategoryStyle(
        color=4156110,
        icon_url=(
            "https://upload.wikimedia.org/wikipedia/commons/thumb/e/ec/"
            "OOjs_UI_icon_information-progressive.svg/"
            "240px-OOjs_UI_icon_information-progressive.svg.png"
        ),
    ),
}


def categorize(byte_delta: Optional[int], new_page: bool = False) -> Category:
    """Page creations are always ADD; a missing delta is LOG."""
    if new_page:
        return Category.ADD
    if byte_delta is None:
        return Category.LOG
    if byte_delta > 0:
        return Category.ADD
    if byte_delta < 0:
        return Category.REMOVE
    return Category.ZERO


# ============================================================================
# Payload Models
# ============================================================================

class EmbedAuthor(BaseModel):
    """Embed author block: the affected page"""
    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    icon_url: str


class EmbedFooter(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str


class Embed(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    color: int
    author: EmbedAuthor
    footer: EmbedFooter


class Notification(BaseModel):
    """
    Webhook payload for one filter hit.

    ``category`` is kept for logging and stats; it is not sent.
    """
    model_config = ConfigDict(frozen=True)

    embeds: List[Embed]
    avatar_url: str
    username: str
    category: Category = Field(default=Category.LOG, exclude=True)

    def to_payload(self) -> dict:
        """JSON body for the webhook POST"""
        return self.model_dump(mode="json")


# ============================================================================
# Formatting helpers
# ============================================================================

def format_delta(byte_delta: int) -> str:
    """Signed, thousands-separated delta; bold at 500 bytes or more either way"""
    text = "0" if byte_delta == 0 else f"{byte_delta:+,}"
    if abs(byte_delta) >= BOLD_DELTA_THRESHOLD:
        return f"**{text}**"
    return text


def format_timestamp(moment: datetime) -> str:
    """Long US-style UTC timestamp, e.g. "March 5, 2025 at 4:07:09 PM UTC" """
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return f"{moment:%B} {moment.day}, {moment.year} at {hour}:{moment:%M:%S} {meridiem} UTC"


def _truncate(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


class NotificationBuilder:
    """
    Builds Notifications from enriched events.

    Description layout:
        (log | diff | hist) . . (+250) . . *(comment)* . . (edit summary)

    The bracketed middle part falls back to "log_type . . log_action" when
    no diff is available.
    """

    def __init__(self, username: str, avatar_url: str):
        """
        Initialize notification builder.

        Args:
            username: Webhook display name
            avatar_url: Webhook avatar image
        """
        self._username = username
        self._avatar_url = avatar_url

    def build(self, enriched: EnrichedEvent) -> Notification:
        """
        Build a Notification.

        Args:
            enriched: Enriched event

        Returns:
            Immutable Notification ready for the delivery queue
        """
        event = enriched.event
        category = categorize(enriched.byte_delta, enriched.new_page)
        style = CATEGORY_STYLES[category]

        embed = Embed(
            description=_truncate(self.build_description(enriched)),
            color=style.color,
            author=EmbedAuthor(
                name=event.title,
                url=wiki_url(event.domain, event.title),
                icon_url=style.icon_url,
            ),
            footer=EmbedFooter(
                text=f"Filter #{event.filter_id} • {format_timestamp(event.datetime)}",
            ),
        )

        return Notification(
            embeds=[embed],
            avatar_url=self._avatar_url,
            username=self._username,
            category=category,
        )

    def build_description(self, enriched: EnrichedEvent) -> str:
        """Assemble the embed description text"""
        event = enriched.event

        if enriched.byte_delta is not None:
            middle = format_delta(enriched.byte_delta)
        else:
            middle = f"{event.log_type} . . {event.log_action}"

        description = f"({self.build_links(enriched)}) . . ({middle})"

        comment = self.build_comment(enriched)
        if comment:
            description += f" . . *({comment})*"

        edit_comment = wikitext_to_markdown(enriched.edit_comment, event.domain)
        if edit_comment:
            description += f" . . ({edit_comment})"

        return description

    def build_links(self, enriched: EnrichedEvent) -> str:
        """Leading links in fixed order: log, diff/new, hist"""
        event = enriched.event
        links = [f"[log]({wiki_url(event.domain, f'Special:AbuseLog/{event.log_id}')})"]

        if enriched.revision_id:
            if enriched.new_page:
                url = wiki_url(event.domain, f"Special:Permalink/{enriched.revision_id}")
                links.append(f"[new]({url})")
            else:
                url = wiki_url(event.domain, f"Special:Diff/{enriched.revision_id}")
                links.append(f"[diff]({url})")

        links.append(f"[hist]({wiki_url(event.domain, f'Special:PageHistory/{event.title}')})")
        return " | ".join(links)

    def build_comment(self, enriched: EnrichedEvent) -> Optional[str]:
        """Log comment as Markdown, with user links and the filter description"""
        event = enriched.event
        comment = wikitext_to_markdown(event.comment, event.domain)
        comment = link_user(comment, event.user, event.domain)
        return insert_filter_description(comment, enriched.filter_description)
