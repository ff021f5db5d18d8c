"""
Trace table adapters.

Each adapter turns a ``source -> targets`` mapping into rows through
:func:`pair_rows.build_pair_rows`.  They differ in the pairing modes they
accept and in the shape of their input:

==================================  ================  ==========================
adapter                             modes             input
==================================  ================  ==========================
``adapt_query_trace``               req <-> test      live ``WorkItemRef`` items
``adapt_open_pcr_trace``            pcr <-> test      live ``WorkItemRef`` items
``adapt_linked_requirement_trace``  req <-> test      ``TraceSnapshot`` records
``adapt_linked_pcr_trace``          pcr <-> test      ``PcrSnapshot`` / snapshots
``adapt_requirement_analysis_trace``  sys <-> soft    live ``WorkItemRef`` items
==================================  ================  ==========================

An unsupported mode never escapes an adapter: it is logged once and the
adapter returns no rows, leaving sibling tables unaffected.
"""

from __future__ import annotations

import logging
from typing import Optional

from .exceptions import UnsupportedModeError
from .field_map import (
    FIXED_COMMON_COLUMNS,
    ColumnMap,
    common_columns,
    reconcile,
    title_reference,
)
from .models import Cell, PcrSnapshot, Row, TraceSnapshot, WorkItemRef
from .pair_rows import (
    COLOR_PCR,
    COLOR_REQ_SYS,
    COLOR_TEST_SOFT,
    COLOR_WHITE,
    ID_WIDTH,
    PairSide,
    TraceMode,
    build_pair_rows,
    iter_entries,
)


logger = logging.getLogger(__name__)

#: ``include_common`` values: where common columns are shown.
COMMON_BOTH = "both"
COMMON_REQ_ONLY = "reqOnly"
COMMON_TEST_ONLY = "testOnly"
COMMON_OPEN_PCR_ONLY = "openPcrOnly"

QUERY_PALETTE = ("DBE5F1", COLOR_WHITE)


def _run(adapter_name: str, mapping, mode: Optional[str], modes: dict[str, TraceMode]) -> list[Row]:
    try:
        return build_pair_rows(mapping, mode, modes)
    except UnsupportedModeError as e:
        logger.error("Could not adapt %s: %s", adapter_name, e)
        return []


def _item_url(item) -> Optional[str]:
    if item is None:
        return None
    return getattr(item, "html_url", None) or getattr(item, "url", None)


# ---------------------------------------------------------------------------
# Column-map sides (live work items)
# ---------------------------------------------------------------------------

def _column_map_side(
    label: str,
    palette: tuple[str, str],
    column_map: ColumnMap,
    excluded: frozenset,
    skip_work_item_type: Optional[bool] = None,
    with_url: bool = False,
) -> PairSide:
    """A side made of an ID cell followed by the reconciled column map."""
    has_title = title_reference(column_map) is not None

    def cells(item: Optional[WorkItemRef], color: str) -> list[Cell]:
        id_cell = Cell(
            name=f"{label} ID",
            value=item.id if item is not None else "",
            width=ID_WIDTH,
            color=color,
            url=_item_url(item) if with_url else None,
        )
        reconciled = reconcile(item, color, column_map, label, excluded, skip_work_item_type)
        if item is None and not has_title:
            # the map has no Title column, keep the placeholder title visible
            reconciled.insert(0, Cell(name=f"{label} Title", value="", color=color))
        return [id_cell] + reconciled

    return PairSide(label, palette, cells)


def adapt_query_trace(
    mapping,
    source_map: ColumnMap,
    target_map: ColumnMap,
    mode: Optional[str] = "req-test",
    include_common: str = COMMON_BOTH,
) -> list[Row]:
    """Requirement <-> test-case trace built from a work-item query.

    Common columns are the fixed ``FIXED_COMMON_COLUMNS`` set.  With
    ``include_common="testOnly"`` they are dropped from the requirement side,
    with ``"reqOnly"`` from the test-case side.  ``Work Item Type`` is never
    shown.
    """
    req_excluded = FIXED_COMMON_COLUMNS if include_common == COMMON_TEST_ONLY else frozenset()
    test_excluded = FIXED_COMMON_COLUMNS if include_common == COMMON_REQ_ONLY else frozenset()

    def side(label, column_map, excluded):
        return _column_map_side(label, QUERY_PALETTE, column_map, excluded, skip_work_item_type=True)

    modes = {
        "req-test": TraceMode(
            "req-test",
            side("Req", source_map, req_excluded),
            side("Test Case", target_map, test_excluded),
        ),
        "test-req": TraceMode(
            "test-req",
            side("Test Case", source_map, test_excluded),
            side("Req", target_map, req_excluded),
        ),
    }
    return _run("query trace", mapping, mode, modes)


def adapt_open_pcr_trace(
    mapping,
    source_map: ColumnMap,
    target_map: ColumnMap,
    mode: Optional[str] = "open-pcr-to-test",
    include_common: str = COMMON_BOTH,
) -> list[Row]:
    """Open PCR <-> test-case trace built from a work-item query.

    Common columns are computed as the intersection of both column maps.
    ``"testOnly"`` drops them from the PCR side, ``"openPcrOnly"`` from the
    test-case side.  ID cells link to the work item.
    """
    shared = common_columns(source_map, target_map)
    pcr_excluded = shared if include_common == COMMON_TEST_ONLY else frozenset()
    test_excluded = shared if include_common == COMMON_OPEN_PCR_ONLY else frozenset()
    palette = (COLOR_PCR, COLOR_WHITE)

    modes = {
        "open-pcr-to-test": TraceMode(
            "open-pcr-to-test",
            _column_map_side("PCR", palette, source_map, pcr_excluded, with_url=True),
            _column_map_side("Test Case", palette, target_map, test_excluded, with_url=True),
        ),
        "test-to-open-pcr": TraceMode(
            "test-to-open-pcr",
            _column_map_side("Test Case", palette, source_map, test_excluded, with_url=True),
            _column_map_side("PCR", palette, target_map, pcr_excluded, with_url=True),
        ),
    }
    return _run("open PCR trace", mapping, mode, modes)


# ---------------------------------------------------------------------------
# Snapshot sides (linked traces)
# ---------------------------------------------------------------------------

def _requirement_snapshot_side(palette, with_customer_id: bool) -> PairSide:
    def cells(req: Optional[TraceSnapshot], color: str) -> list[Cell]:
        result = [
            Cell(name="Req ID", value=req.id if req else "", width=ID_WIDTH, color=color,
                 url=req.url if req else None),
            Cell(name="Title", value=req.title if req else "", color=color),
        ]
        if with_customer_id:
            result.append(
                Cell(name="Customer ID", value=(req.customer_id or "") if req else "", color=color)
            )
        return result

    return PairSide("Req", palette, cells)


def _test_snapshot_side(palette) -> PairSide:
    def cells(tc, color: str) -> list[Cell]:
        return [
            Cell(name="Test Case ID", value=tc.id if tc else "", width=ID_WIDTH, color=color,
                 url=tc.url if tc else None),
            Cell(name="Title", value=tc.title if tc else "", color=color),
        ]

    return PairSide("Test Case", palette, cells)


def adapt_linked_requirement_trace(mapping, mode: Optional[str] = "req-test") -> list[Row]:
    """Requirement <-> test-case trace from links found on the test cases.

    *mapping* pairs ``TraceSnapshot`` records.  The Customer ID column is
    shown when any requirement in the table carries a customer id.
    """
    req_palette = (COLOR_REQ_SYS, COLOR_WHITE)
    test_palette = (COLOR_TEST_SOFT, COLOR_WHITE)
    key = (mode or "").lower()

    with_customer_id = False
    for source, targets in iter_entries(mapping):
        requirements = [source] if key == "req-test" else targets
        if any(r is not None and r.customer_id is not None for r in requirements):
            with_customer_id = True
            break

    req_side = _requirement_snapshot_side(req_palette, with_customer_id)
    test_side = _test_snapshot_side(test_palette)
    modes = {
        "req-test": TraceMode("req-test", req_side, test_side),
        "test-req": TraceMode("test-req", test_side, req_side),
    }
    return _run("linked requirements trace", mapping, mode, modes)


def _pcr_snapshot_side(palette) -> PairSide:
    def cells(pcr: Optional[PcrSnapshot], color: str) -> list[Cell]:
        return [
            Cell(name="PCR ID", value=(pcr.pcr_id or "") if pcr else "", width=ID_WIDTH,
                 color=color, url=pcr.url if pcr else None),
            Cell(name="WI Type", value=pcr.work_item_type if pcr else "", width="11.9%", color=color),
            Cell(name="Severity", value=pcr.severity if pcr else "", width="10.4%", color=color),
            Cell(name="Title", value=pcr.title if pcr else "", color=color),
        ]

    return PairSide("PCR", palette, cells)


def adapt_linked_pcr_trace(mapping, mode: Optional[str] = "open-pcr-to-test") -> list[Row]:
    """Open PCR <-> test-case trace from links; *mapping* pairs snapshots."""
    palette = (COLOR_PCR, COLOR_WHITE)
    pcr_side = _pcr_snapshot_side(palette)
    test_side = _test_snapshot_side(palette)
    modes = {
        "open-pcr-to-test": TraceMode("open-pcr-to-test", pcr_side, test_side),
        "test-to-open-pcr": TraceMode("test-to-open-pcr", test_side, pcr_side),
    }
    return _run("linked PCR trace", mapping, mode, modes)


# ---------------------------------------------------------------------------
# System <-> software requirement analysis
# ---------------------------------------------------------------------------

SYSTEM_REQUIREMENT = "System Requirement"
SOFTWARE_REQUIREMENT = "Software Requirement"


def _requirement_kind_side(label: str, default_type: str, palette) -> PairSide:
    def cells(item: Optional[WorkItemRef], color: str) -> list[Cell]:
        if item is None:
            return [
                Cell(name="ID", value="", width="7%", color=color),
                Cell(name="WI Type", value=default_type, width="12%", color=color),
                Cell(name="Title", value="", color=color),
                Cell(name="State", value="", color=color),
            ]
        return [
            Cell(name="ID", value=item.id, width="7%", color=color, url=_item_url(item)),
            Cell(name="WI Type", value=item.display("System.WorkItemType") or default_type,
                 width="12%", color=color),
            Cell(name="Title", value=item.display("System.Title"), color=color),
            Cell(name="State", value=item.display("System.State"), color=color),
        ]

    return PairSide(label, palette, cells)


def adapt_requirement_analysis_trace(mapping, mode: Optional[str] = "sys-req-to-soft-req") -> list[Row]:
    """System requirement <-> software requirement trace."""
    sys_side = _requirement_kind_side("System", SYSTEM_REQUIREMENT, (COLOR_REQ_SYS, COLOR_WHITE))
    soft_side = _requirement_kind_side("Software", SOFTWARE_REQUIREMENT, (COLOR_TEST_SOFT, COLOR_WHITE))
    modes = {
        "sys-req-to-soft-req": TraceMode("sys-req-to-soft-req", sys_side, soft_side),
        "soft-req-to-sys-req": TraceMode("soft-req-to-sys-req", soft_side, sys_side),
    }
    return _run("requirement analysis trace", mapping, mode, modes)
