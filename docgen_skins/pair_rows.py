"""
Pair-row building: one table row per ``source -> target`` pairing.

A trace mapping is an ordered sequence of ``(source, targets)`` entries.
Every entry produces ``max(1, len(targets))`` rows:

* no targets  -> one row whose target side is the placeholder layout;
* N targets   -> N rows, the source cells repeated unchanged on each.

Each entry gets a banding color per side, picked by entry index modulo a
two-color palette, so consecutive source groups alternate visually.
Row order always mirrors mapping order.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, NamedTuple, Optional, Sequence

from .exceptions import UnsupportedModeError
from .models import Cell, Row, SourceTargetEntry


# ---------------------------------------------------------------------------
# Presentation constants
# ---------------------------------------------------------------------------

COLOR_REQ_SYS = "DBE5F1"  # requirements / system requirements / PCRs
COLOR_TEST_SOFT = "E4DFEC"  # test cases / software requirements
COLOR_PCR = COLOR_REQ_SYS
COLOR_WHITE = "FFFFFF"

ID_WIDTH = "6.8%"


def band_colors(palette: Sequence[str], index: int) -> str:
    """Banding color for the entry at *index*."""
    return palette[index % len(palette)]


def grouped_header(left_label: str, right_label: str, left_fill: str, right_fill: str) -> dict:
    """Two-column group header drawn above a trace table."""
    return {
        "leftLabel": left_label,
        "rightLabel": right_label,
        "leftShading": {"color": "auto", "fill": left_fill},
        "rightShading": {"color": "auto", "fill": right_fill},
    }


# ---------------------------------------------------------------------------
# Side layouts
# ---------------------------------------------------------------------------

class PairSide(NamedTuple):
    """One side of a pairing table.

    ``cells(item, color)`` returns the full cell list of that side for *item*;
    called with ``None`` it must return the placeholder cells.
    """

    label: str
    palette: tuple[str, str]
    cells: Callable[[Any, str], list[Cell]]


class TraceMode(NamedTuple):
    name: str
    source: PairSide
    target: PairSide


def parse_mode(mode: Optional[str], modes: dict[str, TraceMode]) -> TraceMode:
    """Look up *mode* (case-insensitive) among the supported *modes*.

    Raises:
        UnsupportedModeError: *mode* is not one of *modes*.
    """
    key = (mode or "").lower()
    if key not in modes:
        raise UnsupportedModeError(mode, sorted(modes))
    return modes[key]


def iter_entries(mapping) -> Iterable[tuple[Any, list]]:
    """Yield ``(source, targets)`` pairs from any supported mapping shape.

    Accepts a dict (insertion ordered), a sequence of ``SourceTargetEntry``
    or a sequence of 2-tuples.
    """
    if mapping is None:
        return
    if isinstance(mapping, dict):
        for source, targets in mapping.items():
            yield source, list(targets or [])
        return
    for entry in mapping:
        if isinstance(entry, SourceTargetEntry):
            yield entry.source, list(entry.targets)
        else:
            source, targets = entry
            yield source, list(targets or [])


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def build_pair_rows(mapping, mode: Optional[str], modes: dict[str, TraceMode]) -> list[Row]:
    """Build one row per pairing of *mapping* under *mode*.

    Raises:
        UnsupportedModeError: *mode* is not supported; no rows are built.
    """
    layout = parse_mode(mode, modes)
    rows: list[Row] = []
    for index, (source, targets) in enumerate(iter_entries(mapping)):
        source_color = band_colors(layout.source.palette, index)
        target_color = band_colors(layout.target.palette, index)
        source_cells = layout.source.cells(source, source_color)

        if not targets:
            rows.append(Row(cells=_copy(source_cells) + layout.target.cells(None, target_color)))
            continue
        for target in targets:
            rows.append(Row(cells=_copy(source_cells) + layout.target.cells(target, target_color)))
    return rows


def expected_row_count(mapping) -> int:
    """Number of rows ``build_pair_rows`` emits for *mapping*."""
    return sum(max(1, len(targets)) for _, targets in iter_entries(mapping))


def _copy(cells: list[Cell]) -> list[Cell]:
    return [c.model_copy() for c in cells]
