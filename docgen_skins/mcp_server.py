"""
MCP Server for test-plan document skins.

Exposes skin generation as MCP tools so that any MCP-compatible client
(VS Code Copilot, Claude Desktop, etc.) can produce the row/cell data a
document renderer consumes.

Usage:
    # stdio transport (default – for VS Code / Claude Desktop)
    python -m docgen_skins.mcp_server

    # SSE transport (for browser / remote clients)
    python -m docgen_skins.mcp_server --transport sse --port 8000

Environment variables (or .env file): see :mod:`docgen_skins.config`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Optional

from mcp.server.fastmcp import FastMCP

# ---------------------------------------------------------------------------
# Local imports
# ---------------------------------------------------------------------------
from .config import configure_logging, load_settings
from .devops_client import DevOpsClient
from .exceptions import ConfigurationError, UpstreamFetchError
from .request_service import lint_yaml, load_request, save_skin_yaml
from .requirements_document import build_requirements_document
from .test_plan_service import SkinOptions, TestPlanSkinBuilder, TraceTableRequest

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)

SETTINGS = load_settings()

mcp = FastMCP(
    "Azure DevOps Document Skins",
    dependencies=["requests", "python-dotenv", "pyyaml", "yamllint", "pydantic"],
)

# Singleton client
_client: DevOpsClient | None = None


def _get_client() -> DevOpsClient:
    """Return a shared DevOpsClient configured from the settings."""
    global _client
    if _client is None:
        _client = SETTINGS.make_client()
    return _client


def _error(e: Exception) -> str:
    return json.dumps({"status": "error", "type": type(e).__name__, "message": str(e)})


# ═══════════════════════════════════════════════════════════════════════════
# MCP TOOLS
# ═══════════════════════════════════════════════════════════════════════════


@mcp.tool()
def validate_connection() -> str:
    """Test the Azure DevOps connection and return status."""
    ok, message = _get_client().validate_connection()
    return json.dumps({"connected": ok, "message": message})


@mcp.tool()
async def generate_test_plan_skin(
    plan_id: int,
    suite_ids: Optional[list[int]] = None,
    flatten: bool = False,
    include_requirements: bool = False,
    include_customer_id: bool = False,
    include_bugs: bool = False,
    include_attachments: bool = False,
    include_history: bool = False,
    output_path: Optional[str] = None,
) -> str:
    """
    Build the document skin of a test plan: suite and test-case headers,
    step tables, and optional requirement, bug, attachment and history
    tables.

    Args:
        plan_id: The test plan ID.
        suite_ids: Optional list of suite IDs to include (default: all suites).
        flatten: Drop the header of a sole root suite and promote its children.
        include_requirements: Add the linked-requirements table per test case.
        include_customer_id: Add the Customer ID column to requirement tables.
        include_bugs: Add the linked-bugs table (with severity) per test case.
        include_attachments: Add step and test-case attachments.
        include_history: Add the test-case history lines.
        output_path: Optional path to also write the skin as YAML.
    """
    options = SkinOptions(
        flatten=flatten,
        include_requirements=include_requirements,
        include_customer_id=include_customer_id,
        include_bugs=include_bugs,
        include_attachments=include_attachments,
        include_history=include_history,
        timezone=SETTINGS.timezone,
    )
    builder = TestPlanSkinBuilder(_get_client(), SETTINGS.project, plan_id, suite_ids, options)
    try:
        skin = (await builder.build()).to_skin()
    except (ConfigurationError, UpstreamFetchError) as e:
        return _error(e)

    result: dict = {"status": "ok", "skin": skin}
    if output_path:
        result["saved_file"] = save_skin_yaml(skin, output_path)
    return json.dumps(result, indent=2, default=str)


@mcp.tool()
async def generate_trace_table(
    query_id: str,
    kind: str = "query",
    mode: str = "req-test",
    include_common: str = "both",
) -> str:
    """
    Build a trace table from a saved one-hop Azure DevOps query.

    Args:
        query_id: The saved query ID (GUID).
        kind: "query" (requirements <-> test cases) or "open-pcr"
              (open PCRs <-> test cases).
        mode: Pairing direction, e.g. "req-test", "test-req",
              "open-pcr-to-test" or "test-to-open-pcr".
        include_common: Where shared columns are shown: "both", "reqOnly",
                        "testOnly" or "openPcrOnly".
    """
    request = TraceTableRequest(kind=kind, query_id=query_id, mode=mode, include_common=include_common)
    builder = TestPlanSkinBuilder(_get_client(), SETTINGS.project, None)
    rows = await builder.build_trace_table(request)
    return json.dumps({"rows": [r.to_skin() for r in rows], "count": len(rows)}, indent=2, default=str)


@mcp.tool()
async def generate_requirements_document(
    query_id: str,
    allow_bigger_than_500: bool = False,
    trim_additional_spacing: bool = False,
) -> str:
    """
    Build the requirements document from a saved tree query: one heading
    row (title, ID, description) per requirement.

    Args:
        query_id: The saved tree query ID (GUID).
        allow_bigger_than_500: Raise the result cap from 500 to 1000 requirements.
        trim_additional_spacing: Collapse extra blank lines in descriptions.
    """
    try:
        rows = await asyncio.to_thread(
            build_requirements_document,
            _get_client(), query_id, allow_bigger_than_500, trim_additional_spacing,
        )
    except (ConfigurationError, UpstreamFetchError) as e:
        return _error(e)
    return json.dumps(
        {"status": "ok", "rows": [r.to_skin() for r in rows], "count": len(rows)}, indent=2, default=str
    )


@mcp.tool()
async def generate_from_request(request_path: str) -> str:
    """
    Lint and run a YAML generation request file.

    Args:
        request_path: Path to the request YAML file.
    """
    if not os.path.exists(request_path):
        return json.dumps({"status": "error", "message": f"File not found: {request_path}"})

    ok, messages = lint_yaml(request_path)
    if not ok:
        return json.dumps({"status": "lint_failed", "messages": messages})

    try:
        request = load_request(request_path)
        builder = TestPlanSkinBuilder(
            _get_client(), request.project, request.plan_id, request.suite_ids, request.options
        )
        skin = (await builder.build()).to_skin()
    except (ConfigurationError, UpstreamFetchError) as e:
        return _error(e)

    result: dict = {"status": "ok", "lint_messages": messages, "skin": skin}
    if request.output:
        result["saved_file"] = save_skin_yaml(skin, request.output)
    return json.dumps(result, indent=2, default=str)


# ═══════════════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Azure DevOps Document Skins MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE transport (default: 8000)",
    )
    args = parser.parse_args()

    configure_logging(SETTINGS.log_level)
    if args.transport == "sse":
        mcp.settings.port = args.port
        mcp.run(transport="sse")
    else:
        mcp.run(transport="stdio")
