"""
Azure DevOps REST API client for the test-plan and query readers.

Every reader returns the typed records of :mod:`docgen_skins.models`.  REST
failures are wrapped in :class:`UpstreamFetchError`; whether they are fatal
is decided by the caller.

Without an organization or PAT the client serves data from an in-memory store
that tests seed through the ``add_*`` methods.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Optional

import requests
from pydantic import BaseModel, Field
from requests.auth import HTTPBasicAuth

from .exceptions import UpstreamFetchError
from .models import (
    AttachmentRef,
    HistoryEntry,
    LinkPair,
    RelationRef,
    RequirementNode,
    RequirementTree,
    SourceTargetEntry,
    StepNode,
    SuiteNode,
    TestCaseNode,
    WorkItemRef,
    work_item_from_api,
)


logger = logging.getLogger(__name__)

TESTED_BY_REVERSE = "Microsoft.VSTS.Common.TestedBy-Reverse"
ATTACHED_FILE = "AttachedFile"

RELATION_FIELDS = [
    "System.Id", "System.Title", "System.WorkItemType", "System.State",
    "Microsoft.VSTS.Common.Severity",
]


class QueryResult(BaseModel):
    """A one-hop query result: the pairings plus the column map of each side."""

    mapping: list[SourceTargetEntry] = Field(default_factory=list)
    source_map: dict[str, str] = Field(default_factory=dict)
    target_map: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def order_suites(raw_suites: list[dict]) -> list[SuiteNode]:
    """Order raw suites depth first and assign tree levels (roots are 1)."""
    by_parent: dict[Optional[int], list[dict]] = {}
    ids = {s["id"] for s in raw_suites}
    for suite in raw_suites:
        parent_id = (suite.get("parentSuite") or {}).get("id")
        if parent_id not in ids:
            parent_id = None
        by_parent.setdefault(parent_id, []).append(suite)

    ordered: list[SuiteNode] = []

    def _walk(parent_id, level):
        for suite in by_parent.get(parent_id, []):
            ordered.append(SuiteNode(
                id=suite["id"],
                name=suite.get("name", ""),
                url=suite.get("url"),
                level=level,
                parent_id=parent_id,
            ))
            _walk(suite["id"], level + 1)

    _walk(None, 1)
    return ordered


def parse_steps_xml(steps_xml: Optional[str], shared_titles: Optional[dict] = None) -> list[StepNode]:
    """Parse the ``Microsoft.VSTS.TCM.Steps`` XML into ordered steps.

    A shared-step reference (``<compref>``) becomes a title step followed by
    the steps it contains.
    """
    if not steps_xml:
        return []
    try:
        root = ET.fromstring(steps_xml)
    except ET.ParseError as e:
        logger.warning("Could not parse test steps: %s", e)
        return []

    shared_titles = shared_titles or {}
    steps: list[StepNode] = []

    def _walk(element):
        for child in element:
            if child.tag == "step":
                strings = [p.text or "" for p in child.findall("parameterizedString")]
                steps.append(StepNode(
                    position=len(steps),
                    action=strings[0] if strings else "",
                    expected=strings[1] if len(strings) > 1 else "",
                    step_id=int(child.get("id")) if child.get("id", "").isdigit() else None,
                ))
            elif child.tag == "compref":
                ref = child.get("ref", "")
                steps.append(StepNode(
                    position=len(steps),
                    action=shared_titles.get(ref, f"Shared step {ref}"),
                    is_shared_step_title=True,
                    step_id=int(child.get("id")) if child.get("id", "").isdigit() else None,
                ))
                _walk(child)

    _walk(root)
    return steps


def link_pairs(links: dict) -> list[LinkPair]:
    """``source -> target`` pairs of a tree query, in query order.

    Accepts parallel ``sourceIds``/``targetIds`` lists or the WIQL
    ``workItemRelations`` list, where a link with no source opens a new root
    (source 0).
    """
    source_ids = links.get("sourceIds") or []
    target_ids = links.get("targetIds") or []
    if source_ids and target_ids:
        return [LinkPair(source=s, target=t) for s, t in zip(source_ids, target_ids)]

    pairs = []
    for relation in links.get("workItemRelations") or []:
        source = relation.get("source")
        target = relation.get("target")
        if not target:
            continue
        if source is None:
            if relation.get("rel") is None:
                pairs.append(LinkPair(source=0, target=int(target["id"])))
        else:
            pairs.append(LinkPair(source=int(source["id"]), target=int(target["id"])))
    return pairs


def requirement_tree(pairs: list[LinkPair], items: dict[int, WorkItemRef]) -> RequirementTree:
    """Assemble the requirement tree described by *pairs* from the fetched *items*."""
    nodes: dict[int, RequirementNode] = {}

    def _node(work_item_id):
        if work_item_id not in nodes:
            item = items[work_item_id]
            nodes[work_item_id] = RequirementNode(
                id=item.id,
                title=item.display("System.Title"),
                description=item.display("System.Description"),
                url=item.html_url,
            )
        return nodes[work_item_id]

    roots = []
    for pair in pairs:
        if pair.target not in items:
            continue
        if pair.source == 0:
            roots.append(_node(pair.target))
        elif pair.source in items:
            _node(pair.source).children.append(_node(pair.target))
    return RequirementTree(roots=roots, links=pairs)


def _relation_id(url: str) -> Optional[int]:
    tail = (url or "").rstrip("/").rsplit("/", 1)[-1]
    return int(tail) if tail.isdigit() else None


class DevOpsClient:
    """Reader for test plans, work items, attachments, comments and queries."""

    def __init__(self, organization=None, project=None, pat=None, api_version="7.1"):
        self.organization = organization
        self.project = project
        self.pat = pat
        self.api_version = api_version
        self._auth = None
        # In-memory store for testing
        self._plans: dict[int, list[dict]] = {}
        self._test_cases: dict[int, list[TestCaseNode]] = {}
        self._items: dict[int, WorkItemRef] = {}
        self._attachments: dict[int, list[AttachmentRef]] = {}
        self._relations: dict[int, list[RelationRef]] = {}
        self._comments: dict[int, list[dict]] = {}
        self._queries: dict[str, QueryResult] = {}
        self._requirement_trees: dict[str, RequirementTree] = {}

    @property
    def auth(self):
        """Get HTTPBasicAuth object."""
        if self._auth is None and self.pat:
            self._auth = HTTPBasicAuth("", self.pat)
        return self._auth

    @property
    def in_memory(self) -> bool:
        return not self.organization or not self.pat

    @property
    def project_url(self):
        return f"https://dev.azure.com/{self.organization}/{self.project}"

    @property
    def base_url(self):
        """Get base URL for the work-item tracking API."""
        return f"{self.project_url}/_apis/wit"

    def configure(self, organization, project, pat):
        """Configure the client with Azure DevOps credentials."""
        self.organization = organization
        self.project = project
        self.pat = pat
        self._auth = None

    def work_item_html_url(self, work_item_id) -> str:
        return f"{self.project_url}/_workitems/edit/{work_item_id}"

    # ------------------------------------------------------------------
    # In-memory seeding
    # ------------------------------------------------------------------

    def add_suite(self, plan_id, suite_id, name, parent_id=None):
        self._plans.setdefault(plan_id, []).append({
            "id": suite_id,
            "name": name,
            "url": f"https://example.invalid/suites/{suite_id}",
            "parentSuite": {"id": parent_id} if parent_id is not None else None,
        })

    def add_test_case(self, suite_id, test_case: TestCaseNode):
        self._test_cases.setdefault(suite_id, []).append(test_case)

    def add_work_item(self, item: WorkItemRef):
        self._items[item.id] = item

    def add_attachment(self, work_item_id, attachment: AttachmentRef):
        self._attachments.setdefault(work_item_id, []).append(attachment)

    def add_relation(self, work_item_id, relation: RelationRef):
        self._relations.setdefault(work_item_id, []).append(relation)

    def add_comment(self, work_item_id, text, created_by="", created_date=""):
        self._comments.setdefault(work_item_id, []).append({
            "text": text,
            "createdBy": {"displayName": created_by},
            "createdDate": created_date,
        })

    def add_query(self, query_id, result: QueryResult):
        self._queries[query_id] = result

    def add_requirement_tree(self, query_id, tree: RequirementTree):
        self._requirement_trees[query_id] = tree

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _get_json(self, url, operation, params=None):
        try:
            resp = requests.get(url, params=params, auth=self.auth, timeout=30)
            resp.raise_for_status()
            return resp.json()
        except requests.exceptions.RequestException as e:
            raise UpstreamFetchError(operation, e) from e
        except ValueError as e:
            raise UpstreamFetchError(operation, f"invalid JSON response: {e}") from e

    # ------------------------------------------------------------------
    # Test plans
    # ------------------------------------------------------------------

    def get_test_suites(self, plan_id) -> list[SuiteNode]:
        """All suites of *plan_id*, depth first, with their tree levels.

        Raises:
            UpstreamFetchError: the request failed or the plan has no suites.
        """
        if self.in_memory:
            raw = list(self._plans.get(plan_id, []))
        else:
            url = f"{self.project_url}/_apis/testplan/Plans/{plan_id}/suites"
            raw = self._get_json(
                url, "read test suites", {"asTreeView": "false", "api-version": self.api_version}
            ).get("value", [])
            for suite in raw:
                suite["url"] = (
                    f"{self.project_url}/_testManagement?planId={plan_id}&suiteId={suite['id']}"
                )

        if not raw:
            raise UpstreamFetchError("read test suites", f"No test suites for plan id {plan_id} were found")
        return order_suites(raw)

    def get_test_cases(self, plan_id, suite_id) -> list[TestCaseNode]:
        """Test cases of one suite with steps, relations and attachments."""
        if self.in_memory:
            return [
                tc.model_copy(update={
                    "suite_id": suite_id,
                    "attachments": tc.attachments or self.get_attachments(tc.id),
                    "relations": tc.relations or self.get_relations(tc.id),
                })
                for tc in self._test_cases.get(suite_id, [])
            ]

        url = f"{self.project_url}/_apis/testplan/Plans/{plan_id}/Suites/{suite_id}/TestCase"
        payload = self._get_json(url, "read test cases", {"api-version": self.api_version})
        test_cases = []
        for entry in payload.get("value", []):
            work_item = entry.get("workItem") or {}
            fields = {}
            for field in work_item.get("workItemFields", []):
                fields.update(field)
            test_case_id = work_item["id"]
            test_cases.append(TestCaseNode(
                id=test_case_id,
                title=work_item.get("name", ""),
                description=fields.get("System.Description") or "",
                url=self.work_item_html_url(test_case_id),
                suite_id=suite_id,
                steps=parse_steps_xml(fields.get("Microsoft.VSTS.TCM.Steps")),
                relations=self.get_relations(test_case_id),
                attachments=self.get_attachments(test_case_id),
            ))
        return test_cases

    # ------------------------------------------------------------------
    # Work items
    # ------------------------------------------------------------------

    def get_work_items_batch(self, ids, fields=None) -> list[WorkItemRef]:
        """Fetch work items in batches of 200 (API limit)."""
        if self.in_memory:
            return [self._items[i] for i in ids if i in self._items]

        items = []
        for i in range(0, len(ids), 200):
            batch = ids[i:i + 200]
            params = {"ids": ",".join(map(str, batch)), "api-version": self.api_version}
            if fields:
                params["fields"] = ",".join(fields)
            payload = self._get_json(f"{self.base_url}/workitems", "read work items", params)
            for raw in payload.get("value", []):
                item = work_item_from_api(raw)
                if item.html_url is None:
                    item.html_url = self.work_item_html_url(item.id)
                items.append(item)
        return items

    def _get_raw_relations(self, work_item_id) -> list[dict]:
        url = f"{self.base_url}/workitems/{work_item_id}"
        payload = self._get_json(
            url, f"read relations of work item {work_item_id}",
            {"$expand": "relations", "api-version": self.api_version},
        )
        return payload.get("relations") or []

    def get_relations(self, work_item_id) -> list[RelationRef]:
        """Linked work items of *work_item_id* (requirements, bugs, others)."""
        if self.in_memory:
            return list(self._relations.get(work_item_id, []))

        raw_relations = [
            r for r in self._get_raw_relations(work_item_id) if r.get("rel") != ATTACHED_FILE
        ]
        linked_ids = [i for i in (_relation_id(r.get("url")) for r in raw_relations) if i is not None]
        linked = {item.id: item for item in self.get_work_items_batch(linked_ids, RELATION_FIELDS)}

        relations = []
        for raw in raw_relations:
            linked_id = _relation_id(raw.get("url"))
            item = linked.get(linked_id)
            if item is None:
                continue
            work_item_type = item.display("System.WorkItemType")
            if raw.get("rel") == TESTED_BY_REVERSE:
                kind = "requirement"
            elif work_item_type == "Bug":
                kind = "bug"
            else:
                kind = "related"
            relations.append(RelationRef(
                type=kind,
                id=item.id,
                title=item.display("System.Title"),
                url=item.html_url,
                work_item_type=work_item_type,
                state=item.display("System.State"),
                severity=item.display("Microsoft.VSTS.Common.Severity") or None,
                fields={k: v.display() for k, v in item.fields.items()},
            ))
        return relations

    def get_attachments(self, work_item_id) -> list[AttachmentRef]:
        """Attachments stored on *work_item_id* (``AttachedFile`` relations)."""
        if self.in_memory:
            return list(self._attachments.get(work_item_id, []))

        attachments = []
        for raw in self._get_raw_relations(work_item_id):
            if raw.get("rel") != ATTACHED_FILE:
                continue
            attributes = raw.get("attributes") or {}
            attachments.append(AttachmentRef(
                file_name=attributes.get("name", ""),
                link=raw.get("url", ""),
                comment=attributes.get("comment") or "",
            ))
        return attachments

    def get_history(self, work_item_id) -> list[HistoryEntry]:
        """Discussion comments of *work_item_id*, as history entries."""
        if self.in_memory:
            raw_comments = list(self._comments.get(work_item_id, []))
        else:
            url = f"{self.base_url}/workItems/{work_item_id}/comments"
            raw_comments = self._get_json(
                url, f"read history of work item {work_item_id}",
                {"api-version": f"{self.api_version}-preview.4"},
            ).get("comments", [])

        return [
            HistoryEntry(
                created_date=c.get("createdDate") or "",
                created_by=(c.get("createdBy") or {}).get("displayName") or "",
                text=c.get("text") or "",
            )
            for c in raw_comments
        ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def run_query(self, query_id) -> QueryResult:
        """Run a saved one-hop (linked work items) query.

        Returns the ``source -> targets`` pairings in query order plus the
        column map of each side.
        """
        if self.in_memory:
            if query_id not in self._queries:
                raise UpstreamFetchError("run query", f"Query {query_id} not found")
            return self._queries[query_id]

        payload = self._get_json(
            f"{self.base_url}/wiql/{query_id}", "run query", {"api-version": self.api_version}
        )
        column_map = {c["referenceName"]: c["name"] for c in payload.get("columns", [])}

        pairs: dict[int, list[int]] = {}
        for relation in payload.get("workItemRelations", []):
            source = relation.get("source")
            target = (relation.get("target") or {}).get("id")
            if source is None:
                pairs.setdefault(target, [])
            else:
                pairs.setdefault(source["id"], []).append(target)

        ids = list(dict.fromkeys(list(pairs) + [t for ts in pairs.values() for t in ts]))
        items = {item.id: item for item in self.get_work_items_batch(ids, list(column_map))}
        mapping = [
            SourceTargetEntry(
                source=items[source_id],
                targets=[items[t] for t in targets if t in items],
            )
            for source_id, targets in pairs.items()
            if source_id in items
        ]
        return QueryResult(mapping=mapping, source_map=column_map, target_map=dict(column_map))

    def get_requirement_tree(self, query_id) -> RequirementTree:
        """Run a saved tree (parent/child) query of requirements.

        The roots carry their child requirements; the links keep the order
        the query returned them in.
        """
        if self.in_memory:
            if query_id not in self._requirement_trees:
                raise UpstreamFetchError("run requirement query", f"Query {query_id} not found")
            return self._requirement_trees[query_id]

        payload = self._get_json(
            f"{self.base_url}/wiql/{query_id}", "run requirement query", {"api-version": self.api_version}
        )
        pairs = link_pairs(payload)
        ids = list(dict.fromkeys(i for p in pairs for i in (p.source, p.target) if i))
        items = {
            item.id: item
            for item in self.get_work_items_batch(ids, ["System.Id", "System.Title", "System.Description"])
        }
        return requirement_tree(pairs, items)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    def validate_connection(self) -> tuple[bool, str]:
        """Check the credentials against the project endpoint.

        Returns ``(ok, message)``. Failures are reported in the message, not
        raised.
        """
        if self.in_memory:
            return False, "No Azure DevOps credentials configured."

        url = f"https://dev.azure.com/{self.organization}/_apis/projects/{self.project}"
        try:
            payload = self._get_json(url, "validate connection", {"api-version": self.api_version})
        except UpstreamFetchError as e:
            status = getattr(getattr(e.__cause__, "response", None), "status_code", None)
            if status == 401:
                return False, "Authentication failed: the personal access token was rejected."
            if status == 404:
                return False, f"Project '{self.project}' not found in organization '{self.organization}'."
            logger.warning("Connection check failed: %s", e)
            return False, str(e)
        return True, f"Connected to project: {payload.get('name', self.project)}"
