"""Tests for DevOpsClient (in-memory mode) and its payload helpers."""

import pytest
import requests

from docgen_skins.devops_client import (
    DevOpsClient,
    QueryResult,
    link_pairs,
    order_suites,
    parse_steps_xml,
    requirement_tree,
)
from docgen_skins.exceptions import UpstreamFetchError
from docgen_skins.models import (
    AttachmentRef,
    LinkPair,
    RelationRef,
    RequirementNode,
    RequirementTree,
    ScalarValue,
    SourceTargetEntry,
    TestCaseNode,
    WorkItemRef,
)


@pytest.fixture
def client():
    """DevOpsClient without credentials uses in-memory store."""
    return DevOpsClient()


class _Response:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Client Error", response=self)

    def json(self):
        return self._payload


# ── Configuration ─────────────────────────────────────────────────────────────

def test_in_memory_without_credentials(client):
    assert client.in_memory is True
    assert client.auth is None


def test_configure_switches_to_rest():
    client = DevOpsClient()
    client.configure("org", "Proj", "secret")
    assert client.in_memory is False
    assert client.auth.password == "secret"
    assert client.base_url == "https://dev.azure.com/org/Proj/_apis/wit"
    assert client.work_item_html_url(5) == "https://dev.azure.com/org/Proj/_workitems/edit/5"


# ── Suites ────────────────────────────────────────────────────────────────────

def test_order_suites_depth_first():
    raw = [
        {"id": 1, "name": "Root"},
        {"id": 3, "name": "B", "parentSuite": {"id": 1}},
        {"id": 2, "name": "A", "parentSuite": {"id": 1}},
        {"id": 4, "name": "B.1", "parentSuite": {"id": 3}},
    ]
    suites = order_suites(raw)
    assert [(s.id, s.level) for s in suites] == [(1, 1), (3, 2), (4, 3), (2, 2)]
    assert suites[2].parent_id == 3


def test_order_suites_unknown_parent_is_root():
    suites = order_suites([{"id": 7, "name": "Orphan", "parentSuite": {"id": 99}}])
    assert suites[0].level == 1
    assert suites[0].parent_id is None


def test_get_test_suites(client):
    client.add_suite(10, 1, "Root")
    client.add_suite(10, 2, "Child", parent_id=1)
    suites = client.get_test_suites(10)
    assert [s.name for s in suites] == ["Root", "Child"]
    assert [s.level for s in suites] == [1, 2]


def test_get_test_suites_missing_plan(client):
    with pytest.raises(UpstreamFetchError, match="No test suites for plan id 10"):
        client.get_test_suites(10)


# ── Test cases ────────────────────────────────────────────────────────────────

def test_get_test_cases_fills_attachments_and_relations(client):
    client.add_test_case(2, TestCaseNode(id=100, title="Boot"))
    client.add_attachment(100, AttachmentRef(file_name="log.txt"))
    client.add_relation(100, RelationRef(type="requirement", id=1, title="Power"))
    cases = client.get_test_cases(10, 2)
    assert cases[0].suite_id == 2
    assert [a.file_name for a in cases[0].attachments] == ["log.txt"]
    assert [r.id for r in cases[0].relations] == [1]


def test_get_test_cases_returns_copies(client):
    stored = TestCaseNode(id=100)
    client.add_test_case(2, stored)
    client.get_test_cases(10, 2)
    assert stored.suite_id is None


def test_get_test_cases_empty_suite(client):
    assert client.get_test_cases(10, 99) == []


# ── Steps XML ─────────────────────────────────────────────────────────────────

STEPS_XML = (
    '<steps id="0" last="5">'
    '<step id="2" type="ValidateStep">'
    '<parameterizedString isformatted="true">Open app</parameterizedString>'
    '<parameterizedString isformatted="true">App shown</parameterizedString>'
    '</step>'
    '<compref id="3" ref="55">'
    '<step id="4" type="ActionStep">'
    '<parameterizedString isformatted="true">Login</parameterizedString>'
    '<parameterizedString isformatted="true"></parameterizedString>'
    '</step>'
    '</compref>'
    '<step id="5" type="ActionStep">'
    '<parameterizedString isformatted="true">Logout</parameterizedString>'
    '</step>'
    '</steps>'
)


def test_parse_steps_xml():
    steps = parse_steps_xml(STEPS_XML, {"55": "Sign in"})
    assert [s.action for s in steps] == ["Open app", "Sign in", "Login", "Logout"]
    assert [s.position for s in steps] == [0, 1, 2, 3]
    assert [s.identifier for s in steps] == [2, 3, 4, 5]
    assert steps[0].expected == "App shown"
    assert steps[1].is_shared_step_title is True
    assert steps[3].expected == ""


def test_parse_steps_xml_unknown_shared_step():
    steps = parse_steps_xml(STEPS_XML)
    assert steps[1].action == "Shared step 55"


def test_parse_steps_xml_empty_and_malformed():
    assert parse_steps_xml(None) == []
    assert parse_steps_xml("") == []
    assert parse_steps_xml("<steps><step>") == []


# ── Work items, history and queries ───────────────────────────────────────────

def test_get_work_items_batch(client):
    client.add_work_item(WorkItemRef(id=1))
    client.add_work_item(WorkItemRef(id=2))
    assert [i.id for i in client.get_work_items_batch([2, 3, 1])] == [2, 1]


def test_get_history(client):
    client.add_comment(100, "Looks good", created_by="Dana", created_date="2025-01-01T10:00:00Z")
    history = client.get_history(100)
    assert history[0].created_by == "Dana"
    assert history[0].text == "Looks good"
    assert client.get_history(200) == []


def test_run_query(client):
    result = QueryResult(
        mapping=[SourceTargetEntry(source=WorkItemRef(id=1), targets=[WorkItemRef(id=2)])],
        source_map={"System.Title": "Title"},
    )
    client.add_query("q-1", result)
    assert client.run_query("q-1").mapping[0].targets[0].id == 2


def test_run_query_missing(client):
    with pytest.raises(UpstreamFetchError, match="Query q-9 not found"):
        client.run_query("q-9")


# ── Requirement trees ─────────────────────────────────────────────────────────

def test_link_pairs_from_id_lists():
    pairs = link_pairs({"sourceIds": [0, 1, 1], "targetIds": [1, 2, 3, 4]})
    assert pairs == [LinkPair(source=0, target=1), LinkPair(source=1, target=2), LinkPair(source=1, target=3)]


def test_link_pairs_from_relations():
    pairs = link_pairs({"workItemRelations": [
        {"rel": None, "source": None, "target": {"id": 1}},
        {"rel": "System.LinkTypes.Hierarchy-Forward", "source": {"id": 1}, "target": {"id": 2}},
        {"rel": None, "source": None, "target": {"id": 5}},
    ]})
    assert [(p.source, p.target) for p in pairs] == [(0, 1), (1, 2), (0, 5)]


def test_link_pairs_empty():
    assert link_pairs({}) == []


def test_requirement_tree_nests_children():
    items = {
        i: WorkItemRef(id=i, html_url=f"https://x/{i}", fields={"System.Title": ScalarValue(value=f"R{i}")})
        for i in (1, 2, 3)
    }
    pairs = [LinkPair(source=0, target=1), LinkPair(source=1, target=2), LinkPair(source=2, target=3),
             LinkPair(source=2, target=99)]
    tree = requirement_tree(pairs, items)
    assert [r.id for r in tree.roots] == [1]
    child = tree.roots[0].children[0]
    assert (child.id, child.title, child.url) == (2, "R2", "https://x/2")
    assert [c.id for c in child.children] == [3]
    assert tree.links == pairs


def test_get_requirement_tree(client):
    tree = RequirementTree(roots=[RequirementNode(id=1, title="Power")])
    client.add_requirement_tree("q-req", tree)
    assert client.get_requirement_tree("q-req").roots[0].title == "Power"


def test_get_requirement_tree_missing(client):
    with pytest.raises(UpstreamFetchError, match="Query q-9 not found"):
        client.get_requirement_tree("q-9")


def test_get_requirement_tree_over_rest(monkeypatch):
    payloads = {
        "wiql/q-req": {"workItemRelations": [
            {"rel": None, "source": None, "target": {"id": 1}},
            {"rel": "System.LinkTypes.Hierarchy-Forward", "source": {"id": 1}, "target": {"id": 2}},
        ]},
        "workitems": {"value": [
            {"id": 1, "fields": {"System.Title": "Power", "System.Description": "<p>Main</p>"}},
            {"id": 2, "fields": {"System.Title": "Battery"}},
        ]},
    }
    calls = []

    def _get(url, params=None, **kwargs):
        calls.append((url, params))
        return _Response(payload=next(v for k, v in payloads.items() if url.endswith(k)))

    monkeypatch.setattr(requests, "get", _get)
    tree = DevOpsClient("org", "Proj", "secret").get_requirement_tree("q-req")
    root = tree.roots[0]
    assert (root.title, root.description) == ("Power", "<p>Main</p>")
    assert root.url == "https://dev.azure.com/org/Proj/_workitems/edit/1"
    assert [c.title for c in root.children] == ["Battery"]
    assert calls[1][1]["ids"] == "1,2"


# ── Transport ─────────────────────────────────────────────────────────────────

def test_request_failure_is_wrapped(monkeypatch):
    def _fail(*args, **kwargs):
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr(requests, "get", _fail)
    client = DevOpsClient("org", "Proj", "secret")
    with pytest.raises(UpstreamFetchError) as excinfo:
        client.get_test_suites(10)
    assert excinfo.value.operation == "read test suites"
    assert "offline" in str(excinfo.value)


def test_validate_connection_reports_errors(monkeypatch):
    def _fail(*args, **kwargs):
        raise requests.exceptions.Timeout("slow")

    monkeypatch.setattr(requests, "get", _fail)
    ok, message = DevOpsClient("org", "Proj", "secret").validate_connection()
    assert ok is False
    assert "slow" in message


def test_validate_connection_without_credentials(client):
    assert client.validate_connection() == (False, "No Azure DevOps credentials configured.")


def test_validate_connection_ok(monkeypatch):
    calls = []

    def _get(url, params=None, **kwargs):
        calls.append((url, params))
        return _Response(payload={"name": "Avionics"})

    monkeypatch.setattr(requests, "get", _get)
    ok, message = DevOpsClient("org", "Proj", "secret").validate_connection()
    assert (ok, message) == (True, "Connected to project: Avionics")
    assert calls == [("https://dev.azure.com/org/_apis/projects/Proj", {"api-version": "7.1"})]


@pytest.mark.parametrize("status, expected", [
    (401, "personal access token was rejected"),
    (404, "Project 'Proj' not found in organization 'org'"),
    (500, "Failed to validate connection"),
])
def test_validate_connection_http_errors(monkeypatch, status, expected):
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: _Response(status))
    ok, message = DevOpsClient("org", "Proj", "secret").validate_connection()
    assert ok is False
    assert expected in message
