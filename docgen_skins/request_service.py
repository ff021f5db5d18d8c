"""
Generation request files.

A generation request is a YAML file naming the project, the test plan, the
selected suites and the skin options::

    project: Avionics
    plan_id: 1201
    suite_ids: [1202, 1205]
    options:
      flatten: true
      include_requirements: true
      trace_tables:
        - kind: query
          query_id: 5b0e...
          mode: req-test

Requests are linted with yamllint, checked, and loaded into a
``GenerationRequest``.  A produced skin can be written back as YAML for
inspection.
"""

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError
from yamllint import linter
from yamllint.config import YamlLintConfig

from .exceptions import ConfigurationError
from .test_plan_service import SkinOptions


class GenerationRequest(BaseModel):
    project: str
    plan_id: int
    suite_ids: Optional[list[int]] = None
    options: SkinOptions = Field(default_factory=SkinOptions)
    output: Optional[str] = None


# ---------------------------------------------------------------------------
# Custom YAML representer for block scalars
# ---------------------------------------------------------------------------

class _BlockStyleDumper(yaml.SafeDumper):
    """YAML dumper that keeps multi-line cell values readable.

    Multi-line values use a literal block scalar (|); single-line strings
    are emitted as plain scalars.
    """
    pass


def _str_representer(dumper: yaml.Dumper, data: str):
    """Choose the best YAML scalar style for *data*."""
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_BlockStyleDumper.add_representer(str, _str_representer)


# ---------------------------------------------------------------------------
# Loading and saving
# ---------------------------------------------------------------------------

def load_yaml(yaml_path):
    """Load and parse a YAML file."""
    with open(yaml_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def validate_request(data) -> list[str]:
    """Validate a raw request structure. Returns list of error strings."""
    errors = []
    if not isinstance(data, dict):
        return ["Request must be a mapping."]

    if not data.get("project"):
        errors.append("Request must name a project.")
    if not data.get("plan_id"):
        errors.append("Request must name a test plan id.")
    suite_ids = data.get("suite_ids")
    if suite_ids is not None and not suite_ids:
        errors.append("suite_ids is present but empty; omit it to include every suite.")

    options = data.get("options") or {}
    for i, table in enumerate(options.get("trace_tables") or []):
        if not table.get("query_id"):
            errors.append(f"Trace table {i+1}: missing query_id.")
        if table.get("kind", "query") not in ("query", "open-pcr"):
            errors.append(f"Trace table {i+1}: unknown kind {table.get('kind')!r}.")
    return errors


def load_request(yaml_path) -> GenerationRequest:
    """Load, check and parse a generation request file.

    Raises:
        ConfigurationError: the file is not a valid request.
    """
    data = load_yaml(yaml_path)
    errors = validate_request(data)
    if errors:
        raise ConfigurationError("; ".join(errors))
    try:
        return GenerationRequest.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid request {yaml_path}: {e}") from e


def save_skin_yaml(skin: dict, output_path):
    """Save skin data (``to_skin()`` output) as YAML and return the path."""
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(skin, f, Dumper=_BlockStyleDumper,
                  default_flow_style=False, allow_unicode=True,
                  sort_keys=False, width=120)
    return output_path


# ---------------------------------------------------------------------------
# Linting
# ---------------------------------------------------------------------------

#: yamllint rules for request files. A flag not spelled ``true``/``false`` is a
#: warning; an option left without a value is an error.
REQUEST_LINT_CONFIG = """\
extends: default
rules:
  line-length:
    max: 160
  indentation:
    spaces: 2
    indent-sequences: whatever
  document-start: disable
  comments-indentation: disable
  key-duplicates: enable
  truthy:
    allowed-values: ['true', 'false']
    check-keys: false
  empty-values:
    forbid-in-block-mappings: true
    forbid-in-flow-mappings: true
"""


def lint_yaml(file_path):
    """
    Lint a request file with :data:`REQUEST_LINT_CONFIG`.

    Only ``error`` level problems fail the lint; warnings such as a
    ``yes``/``no`` flag are returned with the messages.

    Returns:
        Tuple (ok: bool, messages: list[str]).
    """
    with open(file_path, "r", encoding="utf-8") as f:
        content = f.read()

    problems = list(linter.run(content, YamlLintConfig(REQUEST_LINT_CONFIG), filepath=file_path))
    messages = [f"{p.line}:{p.column} [{p.level}] {p.message} ({p.rule})" for p in problems]
    return not any(p.level == "error" for p in problems), messages
