"""
Requirements document: one heading row per requirement of a tree query.

Rows are emitted in one of two orders:

* **tree order** -- the requirement tree is walked depth first. Repeated
  siblings are emitted once and a node already on the current path is
  skipped, so cyclic links terminate. Levels start at ``ROOT_LEVEL`` and stop
  growing two levels below it.
* **link order** -- when the query also returned its ``source -> target``
  links, rows follow the links exactly and each row's level is its depth on
  the current link path.

A query larger than ``MAX_NODES`` (``MAX_NODES_EXTENDED`` when bigger results
are allowed) is refused with a :class:`ConfigurationError`.
"""

from __future__ import annotations

import logging
from typing import Optional

from .devops_client import DevOpsClient
from .exceptions import ConfigurationError
from .html_utils import clean_html
from .models import Cell, LinkPair, RequirementNode, Row


logger = logging.getLogger(__name__)

ROOT_LEVEL = 2
MAX_NODES = 500
MAX_NODES_EXTENDED = 1000


def count_tree_nodes(nodes: list[RequirementNode], ancestry: Optional[set] = None) -> int:
    """Number of rows the tree walk would emit."""
    ancestry = set() if ancestry is None else ancestry
    seen: set[int] = set()
    count = 0
    for node in nodes:
        if node.id in seen or node.id in ancestry:
            seen.add(node.id)
            continue
        seen.add(node.id)
        count += 1
        ancestry.add(node.id)
        count += count_tree_nodes(node.children, ancestry)
        ancestry.discard(node.id)
    return count


def requirement_row(node: RequirementNode, level: int, trim_additional_spacing: bool = False) -> Row:
    description = clean_html(node.description, trim_additional_spacing)
    return Row(
        cells=[
            Cell(name="Title", value=f"{node.title.strip()} - "),
            Cell(name="ID", value=node.id, url=node.url),
            Cell(name="WI Description", value=description or "No description"),
        ],
        level=level,
    )


def _index_nodes(nodes: list[RequirementNode]) -> dict[int, RequirementNode]:
    by_id: dict[int, RequirementNode] = {}

    def _walk(items):
        for node in items:
            if node.id in by_id:
                continue
            by_id[node.id] = node
            _walk(node.children)

    _walk(nodes)
    return by_id


def _rows_from_tree(nodes, level, base_level, ancestry, trim) -> list[Row]:
    rows: list[Row] = []
    seen: set[int] = set()
    for node in nodes:
        if node.id in seen:
            continue
        seen.add(node.id)
        if node.id in ancestry:
            logger.debug("Skipping requirement %s: already on the current path", node.id)
            continue
        rows.append(requirement_row(node, level, trim))
        if node.children:
            next_level = level + 1 if level - base_level < 2 else level
            ancestry.add(node.id)
            rows.extend(_rows_from_tree(node.children, next_level, base_level, ancestry, trim))
            ancestry.discard(node.id)
    return rows


def _rows_from_links(nodes, links: list[LinkPair], trim) -> list[Row]:
    by_id = _index_nodes(nodes)
    rows: list[Row] = []

    def _emit(work_item_id, level):
        node = by_id.get(work_item_id)
        if node is None:
            logger.debug("Link target %s is not in the query result", work_item_id)
            return
        rows.append(requirement_row(node, level, trim))

    path: list[int] = []
    for link in links:
        if link.source == 0:
            path = []
            _emit(link.target, ROOT_LEVEL)
            path.append(link.target)
            continue
        while path and path[-1] != link.source:
            path.pop()
        if not path:
            _emit(link.source, ROOT_LEVEL)
            path.append(link.source)
        _emit(link.target, ROOT_LEVEL + len(path))
        path.append(link.target)
    return rows


def adapt_requirements_document(
    nodes: list[RequirementNode],
    links: Optional[list[LinkPair]] = None,
    allow_bigger_than_500: bool = False,
    trim_additional_spacing: bool = False,
) -> list[Row]:
    """Heading rows (Title, ID, WI Description) for a requirement tree.

    Raises:
        ConfigurationError: the query holds more requirements than allowed.
    """
    total = len(links) if links else count_tree_nodes(nodes)
    limit = MAX_NODES_EXTENDED if allow_bigger_than_500 else MAX_NODES
    if total > limit:
        message = (
            f"Too many results to process: {total}. Maximum allowed is {limit}. "
            "Please narrow down the query parameters."
        )
        logger.error(message)
        raise ConfigurationError(message)

    if links:
        return _rows_from_links(nodes, links, trim_additional_spacing)
    return _rows_from_tree(nodes, ROOT_LEVEL, ROOT_LEVEL, set(), trim_additional_spacing)


def build_requirements_document(
    client: DevOpsClient,
    query_id: str,
    allow_bigger_than_500: bool = False,
    trim_additional_spacing: bool = False,
) -> list[Row]:
    """Read the tree query *query_id* and adapt it into heading rows."""
    tree = client.get_requirement_tree(query_id)
    logger.info("Requirement query %s: %d root(s), %d link(s)", query_id, len(tree.roots), len(tree.links))
    return adapt_requirements_document(
        tree.roots, tree.links, allow_bigger_than_500, trim_additional_spacing
    )
