"""
Field-map reconciliation: turn one work item plus a column map into cells.

A column map is an ordered ``reference name -> display name`` dict describing
the fields the user selected for one side of a trace table (for example
``{"System.Title": "Title", "System.AreaPath": "Area Path"}``).  Source and
target sides carry independent maps, so each side is reconciled separately
and the resulting cell lists are laid side by side by the pair-row builder.

The cell layout produced for a map never depends on the item: a missing item
or a missing field only blanks the value, so rows of the same table always
line up.
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple, Optional

from .models import Cell, ReferenceValue, WorkItemRef


logger = logging.getLogger(__name__)


ColumnMap = dict[str, str]

#: Display names that are never reconciled as ordinary columns.
ALWAYS_SKIPPED = frozenset({"Title", "ID"})

#: Columns shared by requirement and test-case maps in query traces.
FIXED_COMMON_COLUMNS = frozenset({"Test Phase", "Verification Method", "System Discipline"})

TEST_CASE_LABEL = "Test Case"


# ---------------------------------------------------------------------------
# Formatter table
# ---------------------------------------------------------------------------

DEFAULT = "default"
FIXED_WIDTH = "fixed_width"
OBJECT_DISPLAY_NAME = "object_display_name"
PATH_TAIL = "path_tail"


class FieldFormatter(NamedTuple):
    """How one display name is turned into a cell."""

    kind: str = DEFAULT
    width: Optional[str] = None
    rename: Optional[str] = None


#: Display name -> formatter.  Anything not listed uses the default formatter.
FIELD_FORMATTERS: dict[str, FieldFormatter] = {
    "Priority": FieldFormatter(FIXED_WIDTH, width="6.5%"),
    "Assigned To": FieldFormatter(OBJECT_DISPLAY_NAME),
    "Area Path": FieldFormatter(PATH_TAIL, width="18%", rename="Node Name"),
    "Customer ID": FieldFormatter(FIXED_WIDTH, width="9.7%"),
}


def area_path_to_node_name(area_path) -> str:
    """Return the last segment of a backslash-separated area path."""
    if not area_path:
        return ""
    area_path = str(area_path)
    return area_path.split("\\")[-1] if "\\" in area_path else area_path


def _format_value(formatter: FieldFormatter, value) -> object:
    if value is None:
        return ""
    if formatter.kind == OBJECT_DISPLAY_NAME:
        return value.display_name if isinstance(value, ReferenceValue) else ""
    if formatter.kind == PATH_TAIL:
        return area_path_to_node_name(value.display())
    resolved = value.display()
    return "" if resolved is None else resolved


# ---------------------------------------------------------------------------
# Common columns
# ---------------------------------------------------------------------------

def common_columns(source_map: ColumnMap, target_map: ColumnMap) -> frozenset[str]:
    """Display names present in both column maps."""
    return frozenset(source_map.values()) & frozenset(target_map.values())


def title_reference(column_map: ColumnMap) -> Optional[str]:
    """Reference name mapped to the ``Title`` display name, if any."""
    for reference_name, display_name in column_map.items():
        if display_name == "Title":
            return reference_name
    return None


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def reconcile(
    item: Optional[WorkItemRef],
    color: Optional[str],
    column_map: ColumnMap,
    type_label: str,
    excluded: Iterable[str] = (),
    skip_work_item_type: Optional[bool] = None,
) -> list[Cell]:
    """Reconcile *item* against *column_map* into an ordered list of cells.

    Args:
        item: The work item, or ``None`` when the linked item is missing.
        color: Banding color applied to every emitted cell.
        column_map: Ordered ``reference name -> display name`` map of this side.
        type_label: ``"Req"``, ``"Test Case"``, ``"PCR"``...; prefixes the
            title cell and decides whether ``Work Item Type`` is skipped.
        excluded: Display names to drop (common columns shown on the other side).
        skip_work_item_type: Force skipping ``Work Item Type``.  By default it
            is skipped only for test-case sides.

    Returns:
        Cells in map order, led by ``"<type_label> Title"`` when the map has a
        Title column.  The name/width sequence is identical for ``None`` and
        real items.
    """
    excluded = frozenset(excluded)
    if skip_work_item_type is None:
        skip_work_item_type = type_label == TEST_CASE_LABEL

    cells: list[Cell] = []
    title_ref = title_reference(column_map)
    if title_ref is not None:
        title = item.display(title_ref) if item is not None else ""
        cells.append(Cell(name=f"{type_label} Title", value=title, color=color))

    for reference_name, display_name in column_map.items():
        if display_name in ALWAYS_SKIPPED:
            continue
        if skip_work_item_type and display_name == "Work Item Type":
            continue
        if display_name in excluded:
            continue

        formatter = FIELD_FORMATTERS.get(display_name, FieldFormatter())
        value = item.get(reference_name) if item is not None else None
        if item is not None and value is None:
            logger.debug("Work item %s has no field %s", item.id, reference_name)
        cells.append(
            Cell(
                name=formatter.rename or display_name,
                value=_format_value(formatter, value),
                width=formatter.width,
                color=color,
            )
        )
    return cells
