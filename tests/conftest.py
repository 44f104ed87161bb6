from typing import Callable, Dict, List

import httpx
import pytest

from jira_rest_client.clients.jira_client import JiraClient
from jira_rest_client.clients.search import PageFetcher
from jira_rest_client.clients.transport import JiraTransport

BASE_URL = "https://jira.example.com"


def make_issue(index: int) -> Dict:
    return {
        "id": str(10000 + index),
        "key": f"ABC-{index}",
        "self": f"{BASE_URL}/rest/api/2/issue/{10000 + index}",
        "fields": {"summary": f"Issue {index}"},
    }


def paged_search(total: int, calls: List[Dict]) -> Callable[[httpx.Request], httpx.Response]:
    """Handler serving ``total`` issues honoring startAt/maxResults, recording each call."""

    def handler(request: httpx.Request) -> httpx.Response:
        start = int(request.url.params["startAt"])
        size = int(request.url.params["maxResults"])
        calls.append(dict(request.url.params))
        issues = [make_issue(i) for i in range(start, min(start + size, total))]
        return httpx.Response(200, json={"startAt": start, "maxResults": size, "total": total, "issues": issues})

    return handler


@pytest.fixture
def make_fetcher():
    def _make(handler) -> PageFetcher:
        transport = JiraTransport(BASE_URL, "user", "token", transport=httpx.MockTransport(handler))
        return PageFetcher(transport)

    return _make


@pytest.fixture
def make_client():
    clients: List[JiraClient] = []

    def _make(handler, **kwargs) -> JiraClient:
        client = JiraClient(BASE_URL, "user", "token", transport=httpx.MockTransport(handler), **kwargs)
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()
