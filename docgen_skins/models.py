"""
Pydantic models for the skin data handed to the document renderer.

Two groups of models live here:

* **Input records** produced once by the readers: ``WorkItemRef``,
  ``SourceTargetEntry``, ``SuiteNode``, ``TestCaseNode``, ``StepNode``,
  ``AttachmentRef``, ``RelationRef``, ``HistoryEntry`` and the typed trace
  snapshots (``TraceSnapshot``, ``PcrSnapshot``), plus the requirement tree
  of a tree query (``RequirementNode``, ``LinkPair``, ``RequirementTree``).
* **Output records** (``Cell`` and ``Row``) built fresh on every adapter call.
  The ``Cell`` shape (name / value / width / color / url) is the contract the
  renderer depends on.

Field values on a ``WorkItemRef`` are resolved at ingestion into a tagged
union: a ``ScalarValue`` or a ``ReferenceValue`` (identity fields such as
``System.AssignedTo`` that carry a display name).
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Field values
# ---------------------------------------------------------------------------

class ScalarValue(BaseModel):
    """A plain field value (string, number, bool)."""

    kind: Literal["scalar"] = "scalar"
    value: Any = None

    def display(self) -> Any:
        return "" if self.value is None else self.value


class ReferenceValue(BaseModel):
    """A reference-like field value exposing a display name (users, nodes)."""

    kind: Literal["reference"] = "reference"
    display_name: str = ""
    id: Optional[str] = None

    def display(self) -> str:
        return self.display_name or ""


FieldValue = Union[ScalarValue, ReferenceValue]


def to_field_value(raw: Any) -> Optional[FieldValue]:
    """Resolve a raw API value into a ``FieldValue``.

    Dicts exposing ``displayName`` (or ``name``) become references, ``None``
    stays missing and everything else is kept as a scalar.
    """
    if raw is None:
        return None
    if isinstance(raw, (ScalarValue, ReferenceValue)):
        return raw
    if isinstance(raw, dict):
        name = raw.get("displayName") or raw.get("name") or ""
        ref_id = raw.get("id") or raw.get("uniqueName")
        return ReferenceValue(display_name=str(name), id=str(ref_id) if ref_id is not None else None)
    return ScalarValue(value=raw)


# ---------------------------------------------------------------------------
# Work items and trace mappings
# ---------------------------------------------------------------------------

class WorkItemRef(BaseModel):
    """A work item as seen by the trace adapters."""

    id: int
    url: Optional[str] = None
    html_url: Optional[str] = None
    fields: dict[str, FieldValue] = Field(default_factory=dict)

    def get(self, reference_name: str) -> Optional[FieldValue]:
        return self.fields.get(reference_name)

    def has(self, reference_name: str) -> bool:
        return reference_name in self.fields

    def display(self, reference_name: str) -> Any:
        value = self.fields.get(reference_name)
        return value.display() if value is not None else ""


def work_item_from_api(raw: dict) -> WorkItemRef:
    """Build a ``WorkItemRef`` from an Azure DevOps work-item payload."""
    fields = {}
    for name, value in (raw.get("fields") or {}).items():
        resolved = to_field_value(value)
        if resolved is not None:
            fields[name] = resolved
    links = raw.get("_links") or {}
    html_url = (links.get("html") or {}).get("href")
    return WorkItemRef(id=raw["id"], url=raw.get("url"), html_url=html_url, fields=fields)


class TraceSnapshot(BaseModel):
    """Precomputed requirement / test-case summary used by linked traces."""

    id: int
    title: str = ""
    customer_id: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_json(cls, text: str) -> "TraceSnapshot":
        return cls.model_validate_json(text)


class PcrSnapshot(BaseModel):
    """Precomputed PCR (change request / bug) summary used by linked traces."""

    pcr_id: Optional[int] = None
    title: str = ""
    work_item_type: str = ""
    severity: str = ""
    url: Optional[str] = None

    @classmethod
    def from_json(cls, text: str) -> "PcrSnapshot":
        return cls.model_validate_json(text)


class SourceTargetEntry(BaseModel):
    """One ``source -> targets`` pairing of a trace mapping."""

    source: Any
    targets: list[Any] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Test plan hierarchy
# ---------------------------------------------------------------------------

class AttachmentRef(BaseModel):
    """An attachment stored for a test case (optionally scoped to a step)."""

    file_name: str
    link: str = ""
    step_no: Optional[str] = None
    comment: str = ""
    thumbnail: Optional[str] = None

    @property
    def extension(self) -> str:
        _, dot, ext = self.file_name.rpartition(".")
        return ext.lower() if dot else ""


class RelationRef(BaseModel):
    """A link from a test case to another work item."""

    type: str
    id: int
    title: str = ""
    url: Optional[str] = None
    work_item_type: str = ""
    state: str = ""
    severity: Optional[str] = None
    fields: dict[str, Any] = Field(default_factory=dict)


class StepNode(BaseModel):
    """A single test step.

    ``step_id`` is the identifier Azure DevOps uses when it tags attachments
    with ``TestStep=<id>``; it starts at 2 for the first step.
    """

    position: int
    action: str = ""
    expected: str = ""
    status: str = ""
    comment: str = ""
    is_shared_step_title: bool = False
    step_id: Optional[int] = None

    @property
    def identifier(self) -> int:
        return self.step_id if self.step_id is not None else self.position + 2


class HistoryEntry(BaseModel):
    created_date: str = ""
    created_by: str = ""
    text: str = ""

    def is_empty(self) -> bool:
        return not (self.created_date or self.created_by or self.text)


class TestCaseNode(BaseModel):
    """A test case with its steps, attachments and relations."""

    __test__ = False

    id: int
    title: str = ""
    description: str = ""
    url: Optional[str] = None
    suite_id: Optional[int] = None
    steps: list[StepNode] = []
    attachments: list[AttachmentRef] = []
    relations: list[RelationRef] = []
    history: Union[list[HistoryEntry], str, None] = None


class SuiteNode(BaseModel):
    """A test suite. ``level`` starts at 1 for the plan's top suite."""

    id: int
    name: str = ""
    url: Optional[str] = None
    level: int = Field(default=1, ge=1)
    parent_id: Optional[int] = None
    test_cases: list[TestCaseNode] = []


# ---------------------------------------------------------------------------
# Requirement documents
# ---------------------------------------------------------------------------

class RequirementNode(BaseModel):
    """A requirement of a tree query, with its child requirements."""

    id: int
    title: str = ""
    description: str = ""
    url: Optional[str] = None
    children: list["RequirementNode"] = []


class LinkPair(BaseModel):
    """One ``source -> target`` link of a tree query; ``source`` 0 opens a new root."""

    source: int
    target: int


class RequirementTree(BaseModel):
    """A tree query result: the root requirements and, when known, the link order."""

    roots: list[RequirementNode] = []
    links: list[LinkPair] = []


# ---------------------------------------------------------------------------
# Renderer contract
# ---------------------------------------------------------------------------

def _dump(value: Any) -> Any:
    """Convert nested models (attachment lists, document blocks) to plain data."""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


class Cell(BaseModel):
    """One table cell handed to the renderer."""

    name: str
    value: Any = ""
    width: Optional[str] = None
    color: Optional[str] = None
    url: Optional[str] = None

    def to_skin(self) -> dict:
        """Return the renderer record, shading included when a color is set."""
        skin: dict = {"name": self.name, "value": _dump(self.value)}
        if self.width is not None:
            skin["width"] = self.width
        if self.url is not None:
            skin["url"] = self.url
        if self.color is not None:
            skin["color"] = self.color
            skin["shading"] = {"color": "auto", "fill": self.color}
        return skin


class Row(BaseModel):
    """An ordered sequence of cells, optionally tagged with a heading level."""

    cells: list[Cell] = []
    level: Optional[int] = None

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.cells]

    @property
    def values(self) -> list[Any]:
        return [c.value for c in self.cells]

    def cell(self, name: str) -> Optional[Cell]:
        """Return the first cell named *name*, or ``None``."""
        for c in self.cells:
            if c.name == name:
                return c
        return None

    def to_skin(self) -> dict:
        skin: dict = {"fields": [c.to_skin() for c in self.cells]}
        if self.level is not None:
            skin["level"] = self.level
        return skin
