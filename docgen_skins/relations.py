"""
Per-test-case relation tables: requirements, linked MOM items and bugs.

Requirements can come from two places:

* ``RequirementSource.BY_QUERY`` -- a lookup built from a requirements query,
  keyed by test-case id;
* ``RequirementSource.BY_RELATION`` -- the test case's own links of type
  ``requirement``.

Rows are numbered from 1 in the order the relations are given.
"""

from __future__ import annotations

import enum
import logging
from typing import Iterable, Mapping, Optional

from .models import Cell, RelationRef, Row, TestCaseNode


logger = logging.getLogger(__name__)

REQ_ID_WIDTH = "13.6%"
CUSTOMER_ID_WIDTH = "18%"

#: Work-item types a test case may link to as minutes-of-meeting items.
MOM_WORK_ITEM_TYPES = frozenset({
    "task",
    "bug",
    "change request",
    "epic",
    "feature",
    "user story",
    "feedback request",
    "feedback response",
    "issue",
    "risk",
    "review",
    "test plan",
    "test suite",
    "code review request",
    "code review response",
})


class RequirementSource(str, enum.Enum):
    BY_QUERY = "query"
    BY_RELATION = "relation"


def customer_id_of(relation: RelationRef) -> Optional[str]:
    """Value of the first field whose key mentions ``customer``, if any."""
    for key, value in relation.fields.items():
        if "customer" in key.lower():
            return "" if value is None else str(value)
    return None


# ---------------------------------------------------------------------------
# Requirements
# ---------------------------------------------------------------------------

def requirements_for(
    test_case: TestCaseNode,
    source: RequirementSource,
    lookup: Optional[Mapping[int, Iterable[RelationRef]]] = None,
) -> list[RelationRef]:
    if source == RequirementSource.BY_QUERY:
        if lookup is None:
            logger.debug("No requirements lookup for test case %s", test_case.id)
            return []
        return list(lookup.get(test_case.id, []))
    return [r for r in test_case.relations if r.type.lower() == "requirement"]


def adapt_requirements(
    test_case: TestCaseNode,
    source: RequirementSource = RequirementSource.BY_RELATION,
    include_customer_id: bool = False,
    lookup: Optional[Mapping[int, Iterable[RelationRef]]] = None,
) -> list[Row]:
    """Numbered ``#`` / ``Req ID`` / [``Customer ID``] / ``Req Title`` rows."""
    rows = []
    for index, requirement in enumerate(requirements_for(test_case, source, lookup), start=1):
        cells = [
            Cell(name="#", value=index),
            Cell(name="Req ID", value=requirement.id, width=REQ_ID_WIDTH, url=requirement.url),
            Cell(name="Req Title", value=requirement.title),
        ]
        if include_customer_id:
            customer_id = customer_id_of(requirement)
            if customer_id is not None:
                cells.insert(2, Cell(name="Customer ID", value=customer_id, width=CUSTOMER_ID_WIDTH))
        rows.append(Row(cells=cells))
    return rows


# ---------------------------------------------------------------------------
# Linked MOM
# ---------------------------------------------------------------------------

def is_mom_relation(relation: RelationRef) -> bool:
    return relation.work_item_type.strip().lower() in MOM_WORK_ITEM_TYPES


def adapt_linked_mom(test_case: TestCaseNode) -> list[Row]:
    """``Index`` / ``ID`` / ``Type`` / ``Title`` / ``Status`` rows of MOM links."""
    rows = []
    linked = [r for r in test_case.relations if is_mom_relation(r)]
    for index, relation in enumerate(linked, start=1):
        rows.append(Row(cells=[
            Cell(name="Index", value=index),
            Cell(name="ID", value=relation.id, url=relation.url),
            Cell(name="Type", value=relation.work_item_type),
            Cell(name="Title", value=relation.title),
            Cell(name="Status", value=relation.state),
        ]))
    return rows


# ---------------------------------------------------------------------------
# Bugs
# ---------------------------------------------------------------------------

def adapt_bugs(test_case: TestCaseNode, include_severity: bool = False) -> list[Row]:
    """``#`` / ``Bug ID`` / ``Bug Title`` rows, plus ``Severity`` when known."""
    rows = []
    bugs = [r for r in test_case.relations if r.type.lower() == "bug"]
    for index, bug in enumerate(bugs, start=1):
        cells = [
            Cell(name="#", value=index),
            Cell(name="Bug ID", value=bug.id, url=bug.url),
            Cell(name="Bug Title", value=bug.title),
        ]
        if include_severity and bug.severity:
            cells.append(Cell(name="Severity", value=bug.severity))
        rows.append(Row(cells=cells))
    return rows
