"""
Suite tree flattening and test-plan row assembly.

A test plan arrives as a flat, depth-first list of suites, each tagged with
its tree level (1 for the plan's top suite).  When the plan has a single top
suite its header adds nothing to the document, so flattening suppresses that
header and promotes every other suite one level up.

Flattening never mutates its input: it returns promoted copies, so running it
twice on the same list gives the same result.
"""

from __future__ import annotations

import logging
from typing import Iterable, NamedTuple, Optional

from .attachments import (
    calculate_column_width,
    classify_attachments,
    explicit_width,
    has_step_attachments,
)
from .html_utils import clean_html, html_to_plain_text
from .models import Cell, Row, StepNode, SuiteNode, TestCaseNode


logger = logging.getLogger(__name__)

NOT_RUN = "Not Run"
NO_RESULT = "No Result"
NO_DESCRIPTION = "No description"


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------

class FlattenResult(NamedTuple):
    suites: list[SuiteNode]
    header_suppressed: bool


def should_flatten(suites: list[SuiteNode], enabled: bool) -> bool:
    """Whether the sole level-1 suite at the head of *suites* can be dropped."""
    if not enabled or not suites:
        return False
    if suites[0].level != 1:
        return False
    return sum(1 for s in suites if s.level == 1) == 1


def flatten_suites(suites: Iterable[SuiteNode], enabled: bool) -> FlattenResult:
    """Suppress a lone root suite header and promote the rest one level.

    The root keeps its level, so its own test cases stay at their original
    depth.  Every other suite is copied with ``level - 1`` (never below 1).
    """
    suites = list(suites)
    if not should_flatten(suites, enabled):
        return FlattenResult(suites, False)

    promoted = [suites[0]]
    for suite in suites[1:]:
        promoted.append(suite.model_copy(update={"level": max(1, suite.level - 1)}))
    return FlattenResult(promoted, True)


# ---------------------------------------------------------------------------
# Header rows
# ---------------------------------------------------------------------------

def suite_header_row(suite: SuiteNode) -> Row:
    return Row(
        cells=[
            Cell(name="Title", value=f"{suite.name} - "),
            Cell(name="ID", value=suite.id, url=suite.url),
        ],
        level=suite.level,
    )


def test_case_header_row(test_case: TestCaseNode, suite_level: int, description: Optional[str] = None) -> Row:
    """Header row of a test case, one level below its suite.

    *description* overrides the cleaned test-case description (used when the
    caller already converted it).
    """
    if description is None:
        description = clean_html(test_case.description) if test_case.description else ""
    return Row(
        cells=[
            Cell(name="Title", value=f"{test_case.title} - "),
            Cell(name="ID", value=test_case.id, url=test_case.url),
            Cell(name="Test Description", value=description or NO_DESCRIPTION),
        ],
        level=suite_level + 1,
    )


# ---------------------------------------------------------------------------
# Step run data
# ---------------------------------------------------------------------------

def extract_step_status(step: StepNode) -> str:
    if step.is_shared_step_title:
        return ""
    return step.status or NOT_RUN


def extract_step_comment(step: StepNode) -> str:
    if step.is_shared_step_title:
        return ""
    if step.comment:
        return step.comment
    if extract_step_status(step) == NOT_RUN:
        return NO_RESULT
    return ""


# ---------------------------------------------------------------------------
# Step rows
# ---------------------------------------------------------------------------

def step_text(html: str) -> str:
    """Plain step text with line breaks kept as ``<BR/>``.

    Raises:
        DegradedDataWarning: the HTML cannot be converted.
    """
    if not html:
        return ""
    text = html_to_plain_text(clean_html(html), preserve_line_breaks=True)
    return text.replace("\n", "<BR/>")


def _step_cells(
    step: StepNode,
    action: str,
    expected: str,
    width: str,
    include_run_detail: bool,
    include_hard_copy_run: bool,
    attachments: Optional[list],
) -> list[Cell]:
    column_width = explicit_width(width)
    cells = [
        Cell(name="#", value=step.position + 1),
        Cell(name="Description", value=action, width=column_width),
        Cell(name="Expected Results", value=expected, width=column_width),
    ]
    if include_hard_copy_run:
        cells.append(Cell(name="Actual Result", value=""))
        cells.append(Cell(name="Run Status", value=""))
    elif include_run_detail:
        cells.append(Cell(name="Actual Result", value=extract_step_comment(step)))
        cells.append(Cell(name="Run Status", value=extract_step_status(step)))
    if attachments is not None:
        cells.append(Cell(name="Attachments", value=attachments))
    return cells


def step_row(
    step: StepNode,
    width: str,
    include_run_detail: bool = False,
    include_hard_copy_run: bool = False,
    attachments: Optional[list] = None,
) -> Optional[Row]:
    """Row of one step, or ``None`` when both its action and expected are blank.

    Raises:
        DegradedDataWarning: the step HTML cannot be converted.
    """
    action = step_text(step.action)
    expected = step_text(step.expected)
    if not action.strip() and not expected.strip():
        return None
    return Row(cells=_step_cells(
        step, action, expected, width, include_run_detail, include_hard_copy_run, attachments
    ))


def degraded_step_row(
    step: StepNode,
    width: str,
    include_run_detail: bool = False,
    include_hard_copy_run: bool = False,
    attachments: Optional[list] = None,
) -> Row:
    """Stand-in for a step whose text could not be converted.

    Same columns and widths as :func:`step_row`; the texts are blank.
    """
    return Row(cells=_step_cells(
        step, "", "", width, include_run_detail, include_hard_copy_run, attachments
    ))


def step_layout(
    test_case: TestCaseNode,
    include_attachments: bool = False,
    include_run_detail: bool = False,
    include_hard_copy_run: bool = False,
) -> tuple[str, bool]:
    """``(column width, show attachment column)`` shared by all step rows of a case."""
    with_attachments = include_attachments and has_step_attachments(test_case.attachments)
    width = calculate_column_width(include_run_detail, with_attachments, include_hard_copy_run)
    return width, with_attachments


def step_rows(
    test_case: TestCaseNode,
    include_attachments: bool = False,
    include_run_detail: bool = False,
    include_hard_copy_run: bool = False,
) -> list[Row]:
    """Rows of every non-blank step of *test_case*, in step order."""
    width, with_attachments = step_layout(
        test_case, include_attachments, include_run_detail, include_hard_copy_run
    )
    rows = []
    for step in test_case.steps:
        attachments = None
        if with_attachments:
            attachments = classify_attachments(test_case.attachments, step).step_scoped
        row = step_row(step, width, include_run_detail, include_hard_copy_run, attachments)
        if row is None:
            logger.debug("Skipping blank step %s of test case %s", step.position + 1, test_case.id)
            continue
        rows.append(row)
    return rows
