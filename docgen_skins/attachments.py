"""
Attachment classification for test cases and test steps.

Azure DevOps stores step attachments on the test case itself; a step
attachment is recognised either by its recorded step number or by the
``TestStep=<id>`` marker the web UI writes into the attachment comment.
Everything that is not tied to the step being rendered is a case attachment.

Word documents (``.doc``/``.docx``) can be inlined into the generated
document instead of being linked; they are split into a separate list of
document blocks, each with its own sub-heading.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from pydantic import BaseModel

from .models import AttachmentRef, Cell, Row, StepNode


DOCUMENT_EXTENSIONS = frozenset({"doc", "docx"})

#: Width of the Expected Results column that means "let the renderer decide".
NO_EXPLICIT_WIDTH = "45.8%"

_ANY_STEP_MARKER = re.compile(r"TestStep=\d+")


class DocumentBlock(BaseModel):
    """An inlined document attachment with its generated sub-heading."""

    heading: str
    attachment: AttachmentRef


class AttachmentPartition(BaseModel):
    step_scoped: list[AttachmentRef] = []
    case_scoped: list[AttachmentRef] = []
    doc_content: list[DocumentBlock] = []
    width: str = NO_EXPLICIT_WIDTH


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------

def _step_marker(step: StepNode) -> re.Pattern:
    return re.compile(rf"TestStep={step.identifier}(?!\d)")


def is_step_attachment(attachment: AttachmentRef, step: Optional[StepNode] = None) -> bool:
    """Whether *attachment* belongs to *step* (or to any step when ``None``)."""
    comment = attachment.comment or ""
    step_no = str(attachment.step_no).strip() if attachment.step_no not in (None, "") else ""
    if step is None:
        return bool(step_no) or bool(_ANY_STEP_MARKER.search(comment))
    if step_no and step_no == str(step.position):
        return True
    return bool(_step_marker(step).search(comment))


def has_step_attachments(attachments: Iterable[AttachmentRef]) -> bool:
    return any(is_step_attachment(a) for a in attachments)


def is_document(attachment: AttachmentRef) -> bool:
    return attachment.extension in DOCUMENT_EXTENSIONS


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def calculate_column_width(
    has_step_result_detail: bool,
    has_attachment: bool,
    include_hard_copy_run: bool,
) -> str:
    """Width of the Description/Expected Results columns of a step table."""
    if has_step_result_detail or include_hard_copy_run:
        return "20.8%" if has_attachment else "31%"
    return "26.9%" if has_attachment else NO_EXPLICIT_WIDTH


def explicit_width(width: str) -> Optional[str]:
    """``None`` for the no-explicit-width sentinel, *width* otherwise."""
    return None if width == NO_EXPLICIT_WIDTH else width


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_attachments(
    attachments: Iterable[AttachmentRef],
    step: Optional[StepNode] = None,
    include_content: bool = False,
    has_step_result_detail: bool = False,
    include_hard_copy_run: bool = False,
) -> AttachmentPartition:
    """Partition *attachments* for *step* (or for the case when ``None``).

    The active partition is the step partition when a step is given and the
    case partition otherwise.  With *include_content*, documents in the active
    partition move to ``doc_content``.
    """
    attachments = list(attachments or [])
    step_scoped: list[AttachmentRef] = []
    case_scoped: list[AttachmentRef] = []
    for attachment in attachments:
        if is_step_attachment(attachment, step):
            step_scoped.append(attachment)
        else:
            case_scoped.append(attachment)

    active = step_scoped if step is not None else case_scoped
    doc_content: list[DocumentBlock] = []
    if include_content:
        kept = []
        for attachment in active:
            if is_document(attachment):
                doc_content.append(
                    DocumentBlock(heading=f"{attachment.file_name} content", attachment=attachment)
                )
            else:
                kept.append(attachment)
        active[:] = kept

    width = calculate_column_width(
        has_step_result_detail, has_step_attachments(attachments), include_hard_copy_run
    )
    return AttachmentPartition(
        step_scoped=step_scoped,
        case_scoped=case_scoped,
        doc_content=doc_content,
        width=width,
    )


def attachment_rows(attachments: Iterable[AttachmentRef]) -> list[Row]:
    """One ``#`` / ``Attachments`` row per case attachment."""
    return [
        Row(cells=[
            Cell(name="#", value=index),
            Cell(name="Attachments", value=[attachment]),
        ])
        for index, attachment in enumerate(attachments, start=1)
    ]
