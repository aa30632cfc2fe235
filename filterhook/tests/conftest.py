"""Shared fixtures: recentchange payloads and a fake query API."""

import json
from typing import Any, Dict, Optional

import httpx
import pytest


def make_payload(
    offset: int = 1000,
    wiki: str = "enwiki",
    type: str = "log",
    log_type: Optional[str] = "abusefilter",
    log_action: Optional[str] = "hit",
    log_id: Any = 555,
    filter_id: Any = "100",
    title: str = "Example Page",
    user: str = "Vandal99",
    comment: Optional[str] = None,
) -> Dict[str, Any]:
    """A mediawiki.recentchange payload for an abuse filter hit."""
    if comment is None:
        comment = (
            f"{user} triggered [[Special:AbuseFilter/{filter_id}|filter {filter_id}]], "
            f"performing the action \"edit\" on [[{title}]]. Actions taken: Tag "
            f"([[Special:AbuseLog/{log_id}|details]])"
        )
    log_params: Dict[str, Any] = {}
    if log_id is not None:
        log_params["log"] = log_id
    if filter_id is not None:
        log_params["filter"] = filter_id
    return {
        "meta": {
            "domain": "en.wikipedia.org",
            "topic": "eqiad.mediawiki.recentchange",
            "partition": 0,
            "offset": offset,
        },
        "wiki": wiki,
        "type": type,
        "log_type": log_type,
        "log_action": log_action,
        "log_params": log_params,
        "title": title,
        "user": user,
        "timestamp": 1741190829,  # March 5, 2025 4:07:09 PM UTC
        "log_action_comment": comment,
        "comment": "",
    }


class FakeWikiApi:
    """
    httpx.MockTransport handler emulating the three api.php lookups.

    Unset entries answer like the real API does for unknown ids.
    """

    def __init__(self):
        self.filters: Dict[int, str] = {}
        self.revisions: Dict[int, Optional[int]] = {}
        self.comparisons: Dict[int, Dict[str, Any]] = {}
        self.fail_actions: set = set()
        self.requests = []

    def calls(self, **params) -> int:
        """Number of recorded requests whose query contains ``params``"""
        return sum(
            1 for r in self.requests
            if all(r.url.params.get(k) == v for k, v in params.items())
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        action = params.get("action")
        list_name = params.get("list")

        if (list_name or action) in self.fail_actions:
            return httpx.Response(503, text="Service Unavailable")

        if list_name == "abusefilters":
            start = int(params["abfstartid"])
            found = sorted(i for i in self.filters if i >= start)
            rows = [{"id": found[0], "description": self.filters[found[0]]}] if found else []
            return httpx.Response(200, json={"query": {"abusefilters": rows}})

        if list_name == "abuselog":
            log_id = int(params["afllogid"])
            if log_id not in self.revisions:
                return httpx.Response(200, json={"query": {"abuselog": []}})
            row: Dict[str, Any] = {"id": log_id, "filter_id": "100"}
            if self.revisions[log_id] is not None:
                row["revid"] = self.revisions[log_id]
            return httpx.Response(200, json={"query": {"abuselog": [row]}})

        if action == "compare":
            rev = int(params["fromrev"])
            if rev not in self.comparisons:
                return httpx.Response(200, json={
                    "error": {"code": "nosuchrevid", "info": f"There is no revision with ID {rev}."}
                })
            return httpx.Response(200, json={"compare": self.comparisons[rev]})

        return httpx.Response(400, json={"error": {"code": "badrequest", "info": "unexpected"}})


@pytest.fixture
def payload():
    return make_payload


@pytest.fixture
def wiki_api():
    return FakeWikiApi()


@pytest.fixture
def wiki_client(wiki_api):
    from filterhook.common.wiki_client import WikiClient

    client = httpx.AsyncClient(transport=httpx.MockTransport(wiki_api))
    return WikiClient(user_agent="filterhook-tests/1.0", client=client)


def sse_body(*payloads: Dict[str, Any]) -> bytes:
    """Encode payloads as an EventStreams text/event-stream body."""
    chunks = []
    for data in payloads:
        meta = data.get("meta", {})
        event_id = json.dumps([{
            "topic": meta.get("topic"),
            "partition": meta.get("partition"),
            "offset": meta.get("offset"),
        }])
        chunks.append(f"event: message\nid: {event_id}\ndata: {json.dumps(data)}\n\n")
    return "".join(chunks).encode("utf-8")


@pytest.fixture
def sse():
    return sse_body
