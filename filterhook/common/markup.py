"""
Wikitext to Markdown

Rewrites the small subset of wikitext that appears in log and edit
comments into Discord-flavoured Markdown.
"""

import re
from typing import Optional
from urllib.parse import quote

PIPED_LINK = re.compile(r"\[\[([^|\]]+)\|([^\]]+)\]\]")
PLAIN_LINK = re.compile(r"\[\[([^\]]+)\]\]")
SECTION_MARKER = re.compile(r"/\*\s*(.+?)\s*\*/")
DETAILS_MARKER = re.compile(r"(\s*\(\[details)")


def wiki_url(domain: str, target: str) -> str:
    """Article URL for a page title (spaces become underscores)"""
    return f"https://{domain}/wiki/" + quote(target.replace(" ", "_"), safe=":/")


def wikitext_to_markdown(comment: Optional[str], domain: str) -> Optional[str]:
    """
    Convert wiki links and section markers to Markdown links.

    - ``[[Target|Text]]`` -> ``[Text](url)``
    - ``[[Target]]`` -> ``[Target](url)``
    - ``/* Section */`` -> ``[→Section:](url)``

    Args:
        comment: Raw comment text
        domain: Wiki domain the links point into

    Returns:
        Converted text, or None if the comment is empty
    """
    if comment is None or not comment.strip():
        return None

    text = PIPED_LINK.sub(
        lambda m: f"[{m.group(2)}]({wiki_url(domain, m.group(1))})", comment
    )
    text = PLAIN_LINK.sub(
        lambda m: f"[{m.group(1)}]({wiki_url(domain, m.group(1))})", text
    )
    text = SECTION_MARKER.sub(
        lambda m: f"[→{m.group(1)}:]({wiki_url(domain, m.group(1))})", text
    )
    return text.strip()


def link_user(comment: Optional[str], user: str, domain: str) -> Optional[str]:
    """
    Link the acting user's name when it opens the comment.

    Only a leading occurrence is rewritten; it gains links to the user page,
    talk page, and contributions.
    """
    if not comment or not user or not comment.startswith(user):
        return comment
    # the name must be the whole first token, not a prefix of a longer one
    following = comment[len(user):len(user) + 1]
    if following.isalnum() or following == "_":
        return comment

    user_url = wiki_url(domain, f"User:{user}")
    talk_url = wiki_url(domain, f"User talk:{user}")
    contribs_url = wiki_url(domain, f"Special:Contributions/{user}")
    linked = f"[{user}]({user_url}) ([talk]({talk_url}) | [contribs]({contribs_url}))"
    return linked + comment[len(user):]


def insert_filter_description(comment: Optional[str], description: Optional[str]) -> Optional[str]:
    """Splice the filter description in front of the ``([details`` link."""
    if not comment or not description:
        return comment
    return DETAILS_MARKER.sub(
        lambda m: f". Filter description: {description} {m.group(1)}", comment, count=1
    )
