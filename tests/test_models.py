"""Tests for the skin data models."""

import pytest
from pydantic import ValidationError

from docgen_skins.models import (
    AttachmentRef,
    Cell,
    PcrSnapshot,
    ReferenceValue,
    Row,
    ScalarValue,
    StepNode,
    SuiteNode,
    TraceSnapshot,
    WorkItemRef,
    to_field_value,
    work_item_from_api,
)


# ── Field values ─────────────────────────────────────────────────────────────

class TestToFieldValue:
    def test_none_stays_missing(self):
        assert to_field_value(None) is None

    def test_scalar(self):
        value = to_field_value("High")
        assert isinstance(value, ScalarValue)
        assert value.display() == "High"

    def test_identity_becomes_reference(self):
        value = to_field_value({"displayName": "Eden Levi", "id": "abc"})
        assert isinstance(value, ReferenceValue)
        assert value.display_name == "Eden Levi"
        assert value.id == "abc"

    def test_name_fallback(self):
        value = to_field_value({"name": "Area"})
        assert isinstance(value, ReferenceValue)
        assert value.display() == "Area"

    def test_numbers_are_scalars(self):
        assert to_field_value(2).display() == 2


class TestWorkItemFromApi:
    def test_reads_fields_and_links(self):
        item = work_item_from_api({
            "id": 7,
            "url": "https://api/7",
            "_links": {"html": {"href": "https://web/7"}},
            "fields": {
                "System.Title": "Login works",
                "System.AssignedTo": {"displayName": "Dana"},
                "System.Tags": None,
            },
        })
        assert item.id == 7
        assert item.html_url == "https://web/7"
        assert item.display("System.Title") == "Login works"
        assert item.display("System.AssignedTo") == "Dana"
        assert not item.has("System.Tags")

    def test_missing_field_displays_blank(self):
        item = WorkItemRef(id=1)
        assert item.display("System.Title") == ""
        assert item.get("System.Title") is None


# ── Snapshots ────────────────────────────────────────────────────────────────

class TestSnapshots:
    def test_trace_snapshot_from_json(self):
        snap = TraceSnapshot.from_json('{"id": 5, "title": "Req", "customer_id": "C-1"}')
        assert snap.id == 5
        assert snap.customer_id == "C-1"
        assert snap.url is None

    def test_pcr_snapshot_from_json(self):
        snap = PcrSnapshot.from_json('{"pcr_id": 9, "title": "Crash", "severity": "1 - Critical"}')
        assert snap.pcr_id == 9
        assert snap.work_item_type == ""


# ── Test plan nodes ──────────────────────────────────────────────────────────

class TestNodes:
    def test_suite_level_must_be_positive(self):
        with pytest.raises(ValidationError):
            SuiteNode(id=1, level=0)

    def test_step_identifier_defaults_to_position_plus_two(self):
        assert StepNode(position=0).identifier == 2
        assert StepNode(position=0, step_id=5).identifier == 5

    def test_attachment_extension(self):
        assert AttachmentRef(file_name="Report.DOCX").extension == "docx"
        assert AttachmentRef(file_name="noext").extension == ""


# ── Renderer contract ────────────────────────────────────────────────────────

class TestCellAndRow:
    def test_cell_to_skin_minimal(self):
        assert Cell(name="Title", value="x").to_skin() == {"name": "Title", "value": "x"}

    def test_cell_to_skin_with_color(self):
        skin = Cell(name="ID", value=1, width="6.8%", color="DBE5F1", url="u").to_skin()
        assert skin["width"] == "6.8%"
        assert skin["url"] == "u"
        assert skin["shading"] == {"color": "auto", "fill": "DBE5F1"}

    def test_cell_dumps_nested_models(self):
        skin = Cell(name="Attachments", value=[AttachmentRef(file_name="a.png")]).to_skin()
        assert skin["value"][0]["file_name"] == "a.png"

    def test_row_helpers(self):
        row = Row(cells=[Cell(name="A", value=1), Cell(name="B", value=2)], level=3)
        assert row.names == ["A", "B"]
        assert row.values == [1, 2]
        assert row.cell("B").value == 2
        assert row.cell("C") is None
        assert row.to_skin()["level"] == 3
