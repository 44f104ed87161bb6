import base64
import json
import threading

import httpx
import pytest

from jira_rest_client.core.config import Settings
from jira_rest_client.core.errors import (
    AmbiguityFailure,
    ErrorKind,
    NotFound,
    QueryFailure,
    Result,
    StatusMismatch,
)
from jira_rest_client.clients.jira_client import JiraClient
from jira_rest_client.models.fields import default_registry
from jira_rest_client.models.issue import Comment, IssueFields, IssueRef, RemoteLink, Transition

from .conftest import BASE_URL, paged_search

API = "/rest/api/2/"

ISSUE = {
    "id": "10001",
    "key": "ABC-1",
    "self": f"{BASE_URL}/rest/api/2/issue/10001",
    "fields": {
        "summary": "First",
        "labels": ["a"],
        "issuelinks": [
            {"id": "77", "type": {"name": "Blocks"}, "outwardIssue": {"id": "10002", "key": "ABC-2"}},
        ],
        "customfield_10016": 3,
    },
}


class FakeJira:
    """Routes (method, path) to canned responses and records every request."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(API):]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"errorMessages": [f"no route {request.method} {path}"]})
        return route(request) if callable(route) else route

    def bodies(self, method, path):
        return [json.loads(r.content) for r in self.requests if r.method == method and r.url.path == API + path]


def _issue_routes(issue=ISSUE):
    return {
        ("GET", f"issue/{issue['id']}"): httpx.Response(200, json=issue),
        ("GET", f"issue/{issue['key']}"): httpx.Response(200, json=issue),
        ("GET", f"issue/{issue['id']}/comment"): httpx.Response(200, json={"comments": [{"id": "1", "body": "hi"}]}),
        ("GET", f"issue/{issue['id']}/watchers"): httpx.Response(200, json={"watchers": [{"name": "bob"}]}),
    }


def test_basic_auth_header(make_client):
    fake = FakeJira({("GET", "serverInfo"): httpx.Response(200, json={"version": "9.4.0", "buildNumber": 940})})
    client = make_client(fake)

    info = client.get_server_info()

    assert info.version == "9.4.0"
    expected = base64.b64encode(b"user:token").decode("ascii")
    assert fake.requests[0].headers["Authorization"] == f"Basic {expected}"


def test_load_issue_fills_comments_watchers_and_links(make_client):
    client = make_client(FakeJira(_issue_routes()))

    issue = client.load_issue("ABC-1")

    assert issue.id == "10001"
    assert issue.fields.summary == "First"
    assert issue.fields.comments[0].body == "hi"
    assert issue.fields.watchers[0].name == "bob"
    link = issue.fields.issue_links[0]
    assert (link.inwardIssue.id, link.inwardIssue.key) == ("10001", "ABC-1")
    assert link.outwardIssue.id == "10002"
    assert issue.fields.extensions == {"customfield_10016": 3}


def test_load_issue_not_found_is_status_mismatch(make_client):
    client = make_client(FakeJira({}))

    with pytest.raises(StatusMismatch) as exc_info:
        client.load_issue(IssueRef(key="ABC-404"))

    assert exc_info.value.status_code == 404
    assert exc_info.value.operation == "Could not load issue"
    assert "no route" in exc_info.value.details


def test_enumerate_issues_builds_jql_and_normalizes_links(make_client):
    def search(request):
        assert request.url.params["jql"] == "project=ABC AND issueType=Bug"
        return httpx.Response(200, json={"startAt": 0, "maxResults": 50, "total": 1, "issues": [ISSUE]})

    client = make_client(FakeJira({("GET", "search"): search}))

    issues = list(client.enumerate_issues("ABC", "Bug"))

    assert [i.key for i in issues] == ["ABC-1"]
    assert issues[0].fields.issue_links[0].inwardIssue.id == "10001"


def test_get_issues_uses_configured_page_size(make_client):
    calls = []
    client = make_client(FakeJira({("GET", "search"): paged_search(5, calls)}), page_size=2)

    assert len(client.get_issues("ABC")) == 5
    assert [c["startAt"] for c in calls] == ["0", "2", "4"]
    assert all(c["maxResults"] == "2" for c in calls)


def test_enumerate_by_query_with_fields_and_start(make_client):
    calls = []
    client = make_client(FakeJira({("GET", "search"): paged_search(4, calls)}))

    keys = [i.key for i in client.enumerate_issues_by_query("order by key", ["summary"], start_at=2)]

    assert keys == ["ABC-2", "ABC-3"]
    assert calls[0]["fields"] == "summary"


def test_create_issue_posts_sparse_fields_and_reloads(make_client):
    routes = _issue_routes()
    routes[("POST", "issue")] = httpx.Response(201, json={"id": "10001", "key": "ABC-1", "self": "x"})
    fake = FakeJira(routes)
    client = make_client(fake)

    fields = IssueFields(summary="First", labels=["a"], extensions={"customfield_10016": 3})
    issue = client.create_issue("ABC", "Task", fields)

    assert issue.key == "ABC-1"
    assert fake.bodies("POST", "issue") == [
        {
            "fields": {
                "summary": "First",
                "labels": ["a"],
                "customfield_10016": 3,
                "project": {"key": "ABC"},
                "issuetype": {"name": "Task"},
            }
        }
    ]


def test_create_issue_with_summary_only(make_client):
    routes = _issue_routes()
    routes[("POST", "issue")] = httpx.Response(201, json={"id": "10001", "key": "ABC-1"})
    fake = FakeJira(routes)

    make_client(fake).create_issue("ABC", "Bug", "Just a title")

    assert fake.bodies("POST", "issue")[0]["fields"]["summary"] == "Just a title"


def test_create_issue_wrong_status(make_client):
    fake = FakeJira({("POST", "issue"): httpx.Response(400, json={"errors": {"summary": "required"}})})

    with pytest.raises(StatusMismatch) as exc_info:
        make_client(fake).create_issue("ABC", "Bug", IssueFields())

    assert exc_info.value.operation == "Could not create issue"
    assert "required" in exc_info.value.details


def test_update_issue_sends_set_operations(make_client):
    routes = _issue_routes()
    routes[("PUT", "issue/10001")] = httpx.Response(204)
    fake = FakeJira(routes)
    client = make_client(fake)

    issue = client.load_issue("10001")
    issue.fields.summary = "Renamed"
    client.update_issue(issue)

    assert fake.bodies("PUT", "issue/10001") == [
        {
            "update": {
                "summary": [{"set": "Renamed"}],
                "labels": [{"set": ["a"]}],
                "customfield_10016": [{"set": 3}],
            }
        }
    ]


def test_delete_issue_includes_subtasks(make_client):
    fake = FakeJira({("DELETE", "issue/10001"): httpx.Response(204)})

    make_client(fake).delete_issue(IssueRef(id="10001"))

    assert fake.requests[0].url.params["deleteSubtasks"] == "true"


def test_transitions(make_client):
    routes = _issue_routes()
    routes[("GET", "issue/10001/transitions")] = httpx.Response(
        200, json={"transitions": [{"id": "31", "name": "Done", "to": {"name": "Closed"}}]}
    )
    routes[("POST", "issue/10001/transitions")] = httpx.Response(204)
    fake = FakeJira(routes)
    client = make_client(fake)

    transitions = client.get_transitions(IssueRef(id="10001"))
    assert transitions[0].to.name == "Closed"
    assert fake.requests[0].url.params["expand"] == "transitions.fields"

    client.transition_issue(IssueRef(id="10001"), Transition(id="31", fields={"resolution": {"name": "Fixed"}}))
    assert fake.bodies("POST", "issue/10001/transitions") == [
        {"transition": {"id": "31"}, "fields": {"resolution": {"name": "Fixed"}}}
    ]


def test_comments(make_client):
    fake = FakeJira(
        {
            ("POST", "issue/10001/comment"): httpx.Response(201, json={"id": "5", "body": "hello"}),
            ("DELETE", "issue/10001/comment/5"): httpx.Response(204),
        }
    )
    client = make_client(fake)

    comment = client.create_comment(IssueRef(id="10001"), "hello")
    client.delete_comment(IssueRef(id="10001"), comment)

    assert comment == Comment(id="5", body="hello")
    assert fake.bodies("POST", "issue/10001/comment") == [{"body": "hello"}]


def test_create_attachment(make_client):
    fake = FakeJira(
        {("POST", "issue/10001/attachments"): httpx.Response(200, json=[{"id": "3", "filename": "log.txt"}])}
    )

    attachment = make_client(fake).create_attachment(IssueRef(id="10001"), b"data", "log.txt")

    assert attachment.filename == "log.txt"
    request = fake.requests[0]
    assert request.headers["X-Atlassian-Token"] == "nocheck"
    assert request.headers["Content-Type"].startswith("multipart/form-data")


def test_create_attachment_requires_exactly_one(make_client):
    fake = FakeJira({("POST", "issue/10001/attachments"): httpx.Response(200, json=[])})

    with pytest.raises(NotFound):
        make_client(fake).create_attachment(IssueRef(id="10001"), b"data", "log.txt")


def test_create_issue_link_returns_stored_link(make_client):
    parent = dict(ISSUE)
    routes = _issue_routes(parent)
    routes[("POST", "issueLink")] = httpx.Response(201)
    fake = FakeJira(routes)

    link = make_client(fake).create_issue_link(IssueRef(id="10001"), IssueRef(id="10002"), "Blocks")

    assert link.id == "77"
    assert fake.bodies("POST", "issueLink") == [
        {"type": {"name": "Blocks"}, "inwardIssue": {"id": "10001"}, "outwardIssue": {"id": "10002"}}
    ]


def test_load_issue_link_ambiguous(make_client):
    issue = json.loads(json.dumps(ISSUE))
    issue["fields"]["issuelinks"].append(
        {"id": "78", "type": {"name": "Blocks"}, "outwardIssue": {"id": "10002", "key": "ABC-2"}}
    )
    client = make_client(FakeJira(_issue_routes(issue)))

    with pytest.raises(AmbiguityFailure) as exc_info:
        client.load_issue_link(IssueRef(id="10001"), IssueRef(id="10002"), "Blocks")
    assert exc_info.value.operation == "Could not load issue link"


def test_load_issue_link_missing(make_client):
    client = make_client(FakeJira(_issue_routes()))
    assert client.load_issue_link(IssueRef(id="10001"), IssueRef(id="10003"), "Blocks") is None


def test_remote_links(make_client):
    stored = [{"id": 100, "object": {"url": "https://ci.example.com/1", "title": "Build 1"}}]
    fake = FakeJira(
        {
            ("GET", "issue/10001/remotelink"): httpx.Response(200, json=stored),
            ("POST", "issue/10001/remotelink"): httpx.Response(201, json={"id": 100, "self": "x"}),
            ("PUT", "issue/10001/remotelink/100"): httpx.Response(204),
        }
    )
    client = make_client(fake)
    ref = IssueRef(id="10001")

    created = client.create_remote_link(ref, RemoteLink(url="https://ci.example.com/1", title="Build 1"))
    assert created == RemoteLink(id="100", url="https://ci.example.com/1", title="Build 1")

    client.update_remote_link(ref, RemoteLink(id="100", title="Build 1 (green)"))
    assert fake.bodies("PUT", "issue/10001/remotelink/100") == [{"object": {"title": "Build 1 (green)"}}]
    assert fake.bodies("POST", "issue/10001/remotelink")[0]["application"]["name"] == "JIRA REST client"


def test_metadata_lists(make_client):
    fake = FakeJira(
        {
            ("GET", "issuetype"): httpx.Response(200, json=[{"id": "1", "name": "Bug", "subtask": False}]),
            ("GET", "status"): httpx.Response(200, json=[{"id": "3", "name": "In Progress"}]),
            ("GET", "priority"): httpx.Response(200, json=[{"id": "2", "name": "High"}]),
            ("GET", "project"): httpx.Response(200, json=[{"id": "9", "key": "ABC", "name": "Alpha"}]),
            ("GET", "user/search"): httpx.Response(200, json=[{"name": "bob"}, {"name": "bobby"}]),
        }
    )
    client = make_client(fake)

    assert client.get_issue_types()[0].name == "Bug"
    assert client.get_issue_statuses()[0].name == "In Progress"
    assert client.get_issue_priorities()[0].name == "High"
    assert client.get_projects()[0].key == "ABC"
    assert client.find_user("bob").name == "bob"


def test_get_field_mappings_feeds_registry(make_client):
    fake = FakeJira(
        {
            ("GET", "field"): httpx.Response(
                200,
                json=[
                    {"id": "summary", "name": "Summary"},
                    {"id": "customfield_10016", "name": "Story Points"},
                    {"id": "customfield_10014", "name": "Epic Link"},
                ],
            )
        }
    )
    client = make_client(fake)

    mappings = client.get_field_mappings({"story_points": "Story points", "sprint": "Sprint"})

    assert mappings == {"story_points": "customfield_10016"}
    registry = default_registry().with_alias("story_points", mappings["story_points"])
    assert registry.lookup("story_points").wire_key == "customfield_10016"


def test_unexpected_body_is_query_failure(make_client):
    fake = FakeJira({("GET", "serverInfo"): httpx.Response(200, text="<html>maintenance</html>")})

    with pytest.raises(QueryFailure) as exc_info:
        make_client(fake).get_server_info()
    assert "maintenance" in exc_info.value.details


def test_result_capture(make_client):
    client = make_client(FakeJira({}))

    result = Result.capture(client.load_issue, "ABC-404")

    assert not result.ok
    assert result.kind is ErrorKind.STATUS_MISMATCH
    with pytest.raises(StatusMismatch):
        result.unwrap()
    assert Result.capture(lambda: 42).unwrap() == 42


def test_from_settings():
    settings = Settings(JIRA_BASE_URL="https://jira.example.com/", JIRA_EMAIL="u", JIRA_API_TOKEN="t", JIRA_PAGE_SIZE=25)

    client = JiraClient.from_settings(settings)

    assert client.page_size == 25
    assert client.transport.api_base_url == "https://jira.example.com/rest/api/2/"
    client.close()


def test_from_settings_incomplete():
    with pytest.raises(ValueError, match="JIRA_API_TOKEN"):
        JiraClient.from_settings(Settings(JIRA_BASE_URL="https://jira.example.com", JIRA_EMAIL="u"))


@pytest.mark.parametrize(
    "call,path,body",
    [
        (lambda c: c.get_transitions(IssueRef(id="1")), "issue/1/transitions", []),
        (lambda c: c.get_comments(IssueRef(id="1")), "issue/1/comment", ["not", "a", "container"]),
        (lambda c: c.load_issue("1"), "issue/1", []),
        (lambda c: c.get_issue_types(), "issuetype", {"values": []}),
    ],
)
def test_wrong_body_shape_is_query_failure(make_client, call, path, body):
    client = make_client(FakeJira({("GET", path): httpx.Response(200, json=body)}))

    with pytest.raises(QueryFailure) as exc_info:
        call(client)

    assert exc_info.value.kind is ErrorKind.QUERY
    assert exc_info.value.operation is not None
    assert isinstance(exc_info.value.__cause__, (AttributeError, TypeError, ValueError))


def test_enumeration_failure_carries_operation(make_client):
    client = make_client(FakeJira({("GET", "search"): httpx.Response(500, text="boom")}))

    with pytest.raises(StatusMismatch) as exc_info:
        list(client.enumerate_issues("ABC"))
    assert exc_info.value.operation == "Could not load issues"


def test_transport_shares_one_http_client_across_threads(make_client):
    client = make_client(FakeJira({}))
    barrier = threading.Barrier(8)
    seen = []

    def grab():
        barrier.wait()
        seen.append(client.transport._get_client())

    threads = [threading.Thread(target=grab) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(seen) == 8
    assert len({id(http_client) for http_client in seen}) == 1
