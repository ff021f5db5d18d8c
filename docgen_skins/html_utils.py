"""
Minimal HTML helpers for Azure DevOps rich-text fields.

Rich-text rendering itself belongs to the document renderer; these helpers
only normalise the markup before it is handed over and turn it into plain
text where a table cell or history line needs text.
"""

from __future__ import annotations

import html
import re

from .exceptions import DegradedDataWarning


_BLOCK_BREAK = re.compile(r"<\s*(div|p|li|tr|h[1-6])(\s[^>]*)?>", re.IGNORECASE)
_BLOCK_END = re.compile(r"<\s*/\s*(div|p|li|tr|h[1-6])\s*>", re.IGNORECASE)
_BR = re.compile(r"<\s*br\s*/?\s*>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_UNCLOSED_TAG = re.compile(r"<[a-zA-Z/][^>]*$")


def clean_html(text: str, trim_additional_spacing: bool = False) -> str:
    """Normalise Azure DevOps rich text before it reaches the renderer.

    Empty wrappers (``<div><br></div>``) become a single ``<br/>``, and with
    *trim_additional_spacing* runs of blank lines and ``&nbsp;`` padding are
    collapsed.
    """
    if not text:
        return ""
    text = re.sub(r"<(div|span|b|u|i|em|strong)>\s*<br\s*/?>\s*</\1>", "<br/>", text,
                  flags=re.IGNORECASE)
    text = re.sub(r"<br\s*/?>", "<br/>", text, flags=re.IGNORECASE)
    if trim_additional_spacing:
        text = re.sub(r"(&nbsp;| )+", " ", text)
        text = re.sub(r"(<br/>\s*){2,}", "<br/>", text)
        text = re.sub(r"[ \t]{2,}", " ", text)
    return text.strip()


def html_to_plain_text(text: str, preserve_line_breaks: bool = True) -> str:
    """Strip HTML tags from *text*.

    With *preserve_line_breaks* ``<br>`` and block boundaries become ``\\n``;
    otherwise they collapse to a single space.

    Raises:
        DegradedDataWarning: the markup ends inside an unterminated tag.
    """
    if not text:
        return ""
    if _UNCLOSED_TAG.search(text):
        raise DegradedDataWarning(f"Malformed HTML: {text[:40]!r}")

    newline = "\n" if preserve_line_breaks else " "
    text = _BR.sub(newline, text)
    text = _BLOCK_END.sub(newline, text)
    text = _BLOCK_BREAK.sub(newline, text)
    text = _TAG.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")

    lines = [line.strip() for line in text.split("\n")]
    if preserve_line_breaks:
        cleaned = "\n".join(line for line in lines if line)
    else:
        cleaned = " ".join(line for line in lines if line)
        cleaned = re.sub(r"\s{2,}", " ", cleaned)
    return cleaned.strip()
