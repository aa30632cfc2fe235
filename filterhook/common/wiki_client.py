"""
Wiki Query API Client

Read-only async client for the three MediaWiki API lookups the relay needs:

- abuse filter description by filter id
- revision id of an abuse log entry
- size delta and edit summary of a revision against its predecessor

All lookups raise WikiApiError on transport failures, API errors, or
responses missing the expected fields, so callers have a single failure
type to degrade on.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger("filterhook.common.wiki_client")


class WikiApiError(Exception):
    """A query API lookup failed or returned an unusable response."""
    pass


class FilterNotFound(WikiApiError):
    """The filter does not exist or its details are private."""
    pass


@dataclass
class RevisionDiff:
    """Comparison of a revision with the one before it"""
    byte_delta: int
    edit_comment: Optional[str] = None
    new_page: bool = False


class WikiClient:
    """
    Async client for MediaWiki's ``api.php``.

    One instance serves every wiki; the API endpoint is derived from the
    event's domain on each call.

    Usage:
        client = WikiClient(user_agent="filterhook/0.1.0")
        description = await client.get_filter_description("en.wikipedia.org", 42)
        await client.close()
    """

    def __init__(
        self,
        user_agent: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize wiki client.

        Args:
            user_agent: Value for the User-Agent header (required by Wikimedia policy)
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests inject a MockTransport here)
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=httpx.Timeout(timeout),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @staticmethod
    def api_url(domain: str) -> str:
        return f"https://{domain}/w/api.php"

    async def _query(self, domain: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Issue one GET against api.php and return the decoded body."""
        request_params = {"format": "json", "formatversion": "2", **params}
        try:
            response = await self._client.get(
                self.api_url(domain),
                params=request_params,
                headers={"User-Agent": self.user_agent},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise WikiApiError(f"{params.get('action')} request to {domain} failed: {e}")
        except ValueError as e:
            raise WikiApiError(f"{params.get('action')} response from {domain} is not JSON: {e}")

        if not isinstance(data, dict):
            raise WikiApiError(f"Unexpected response from {domain}: {data!r}")
        if "error" in data:
            error = data["error"] or {}
            raise WikiApiError(
                f"API error from {domain}: {error.get('code', 'unknown')}: {error.get('info', '')}"
            )
        return data

    async def get_filter_description(self, domain: str, filter_id: int) -> str:
        """
        Fetch the public description of an abuse filter.

        Args:
            domain: Wiki domain (e.g. "en.wikipedia.org")
            filter_id: Numeric filter id

        Returns:
            Filter description

        Raises:
            FilterNotFound: If the filter is missing or private
            WikiApiError: If the lookup fails
        """
        data = await self._query(domain, {
            "action": "query",
            "list": "abusefilters",
            "abfstartid": str(filter_id),
            "abflimit": "1",
            "abfprop": "id|description",
        })

        filters = (data.get("query") or {}).get("abusefilters") or []
        # abfstartid lists from the given id onward; a different first id means ours is hidden
        match = filters[0] if filters else None
        if not match or match.get("id") != filter_id or not match.get("description"):
            raise FilterNotFound(f"Could not find abuse filter {filter_id} on {domain}")

        return match["description"]

    async def get_log_revision(self, domain: str, log_id: int) -> Optional[int]:
        """
        Resolve the revision saved by the edit an abuse log entry refers to.

        Args:
            domain: Wiki domain
            log_id: Abuse log entry id

        Returns:
            Revision id, or None if the entry has none (e.g. the edit was disallowed)

        Raises:
            WikiApiError: If the lookup fails or the entry is not visible yet
        """
        data = await self._query(domain, {
            "action": "query",
            "list": "abuselog",
            "afllogid": str(log_id),
            "afllimit": "1",
            "aflprop": "ids|revid",
        })

        entries = (data.get("query") or {}).get("abuselog") or []
        entry = entries[0] if entries else None
        if not entry or entry.get("id") != log_id:
            raise WikiApiError(f"Abuse log entry {log_id} not found on {domain}")

        revid = entry.get("revid")
        if not revid:
            return None
        try:
            return int(revid)
        except (TypeError, ValueError):
            raise WikiApiError(f"Abuse log entry {log_id} has malformed revid {revid!r}")

    async def compare_with_previous(self, domain: str, revision_id: int) -> RevisionDiff:
        """
        Compare a revision with its predecessor.

        A revision without a predecessor is a page creation; its delta is
        its full size.

        Args:
            domain: Wiki domain
            revision_id: Revision to inspect

        Returns:
            RevisionDiff with byte delta, edit summary, and new-page flag

        Raises:
            WikiApiError: If the comparison fails or sizes are missing
        """
        data = await self._query(domain, {
            "action": "compare",
            "fromrev": str(revision_id),
            "torelative": "prev",
            "prop": "ids|size|comment",
        })

        compare = data.get("compare")
        if not isinstance(compare, dict) or "tosize" not in compare:
            raise WikiApiError(f"Comparison for revision {revision_id} on {domain} has no size")

        # torelative=prev swaps sides: "to" is our revision, "from" its parent
        new_page = "fromrevid" not in compare
        from_size = 0 if new_page else compare.get("fromsize")
        if from_size is None:
            raise WikiApiError(f"Comparison for revision {revision_id} on {domain} has no parent size")

        return RevisionDiff(
            byte_delta=int(compare["tosize"]) - int(from_size),
            edit_comment=compare.get("tocomment") or None,
            new_page=new_page,
        )
