"""Tests for requirement, MOM and bug relation tables."""

import pytest

from docgen_skins.models import RelationRef, TestCaseNode
from docgen_skins.relations import (
    MOM_WORK_ITEM_TYPES,
    RequirementSource,
    adapt_bugs,
    adapt_linked_mom,
    adapt_requirements,
    customer_id_of,
)


@pytest.fixture
def test_case():
    return TestCaseNode(id=100, title="Boot", relations=[
        RelationRef(type="requirement", id=1, title="Power", url="u1",
                    fields={"Custom.CustomerReqId": "CUS-1"}),
        RelationRef(type="bug", id=2, title="Crash", work_item_type="Bug", state="Active",
                    severity="2 - High"),
        RelationRef(type="requirement", id=3, title="Display"),
        RelationRef(type="related", id=4, title="Design review", work_item_type="Review", state="Done"),
        RelationRef(type="related", id=5, title="Spec", work_item_type="Requirement"),
    ])


# ── Requirements ─────────────────────────────────────────────────────────────

class TestAdaptRequirements:
    def test_by_relation(self, test_case):
        rows = adapt_requirements(test_case)
        assert [r.values for r in rows] == [[1, 1, "Power"], [2, 3, "Display"]]
        assert rows[0].cell("Req ID").width == "13.6%"
        assert rows[0].cell("Req ID").url == "u1"

    def test_customer_id_spliced_before_title(self, test_case):
        rows = adapt_requirements(test_case, include_customer_id=True)
        assert rows[0].names == ["#", "Req ID", "Customer ID", "Req Title"]
        assert rows[0].cell("Customer ID").value == "CUS-1"
        assert rows[0].cell("Customer ID").width == "18%"
        assert rows[1].names == ["#", "Req ID", "Req Title"]

    def test_by_query(self, test_case):
        lookup = {100: [RelationRef(type="requirement", id=9, title="From query")]}
        rows = adapt_requirements(test_case, RequirementSource.BY_QUERY, lookup=lookup)
        assert [r.values for r in rows] == [[1, 9, "From query"]]

    def test_by_query_without_entry(self, test_case):
        assert adapt_requirements(test_case, RequirementSource.BY_QUERY, lookup={}) == []
        assert adapt_requirements(test_case, RequirementSource.BY_QUERY) == []

    def test_customer_key_is_case_insensitive(self):
        relation = RelationRef(type="requirement", id=1, fields={"CUSTOMER ID": None})
        assert customer_id_of(relation) == ""
        assert customer_id_of(RelationRef(type="requirement", id=1)) is None


# ── Linked MOM ───────────────────────────────────────────────────────────────

class TestAdaptLinkedMom:
    def test_allow_list_size(self):
        assert len(MOM_WORK_ITEM_TYPES) == 15

    def test_rows(self, test_case):
        rows = adapt_linked_mom(test_case)
        assert [r.names for r in rows][0] == ["Index", "ID", "Type", "Title", "Status"]
        assert [r.values for r in rows] == [
            [1, 2, "Bug", "Crash", "Active"],
            [2, 4, "Review", "Design review", "Done"],
        ]


# ── Bugs ─────────────────────────────────────────────────────────────────────

class TestAdaptBugs:
    def test_without_severity(self, test_case):
        rows = adapt_bugs(test_case)
        assert rows[0].names == ["#", "Bug ID", "Bug Title"]

    def test_with_severity(self, test_case):
        rows = adapt_bugs(test_case, include_severity=True)
        assert rows[0].values == [1, 2, "Crash", "2 - High"]
