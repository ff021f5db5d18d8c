"""
Azure DevOps document skins: work-item and test-plan data reconciled into
the row/cell model consumed by the document renderer.
"""

from .attachments import (
    NO_EXPLICIT_WIDTH,
    attachment_rows,
    calculate_column_width,
    classify_attachments,
    is_step_attachment,
)
from .config import Settings, configure_logging, load_settings
from .devops_client import DevOpsClient, QueryResult
from .exceptions import (
    ConfigurationError,
    DegradedDataWarning,
    SkinError,
    UnsupportedModeError,
    UpstreamFetchError,
)
from .field_map import FIELD_FORMATTERS, FIXED_COMMON_COLUMNS, area_path_to_node_name, common_columns, reconcile
from .history import format_local_time, merge_history, normalize_history, to_timestamp
from .html_utils import clean_html, html_to_plain_text
from .models import (
    AttachmentRef,
    Cell,
    HistoryEntry,
    LinkPair,
    PcrSnapshot,
    ReferenceValue,
    RelationRef,
    RequirementNode,
    RequirementTree,
    Row,
    ScalarValue,
    SourceTargetEntry,
    StepNode,
    SuiteNode,
    TestCaseNode,
    TraceSnapshot,
    WorkItemRef,
    to_field_value,
    work_item_from_api,
)
from .pair_rows import TraceMode, band_colors, build_pair_rows, parse_mode
from .relations import MOM_WORK_ITEM_TYPES, RequirementSource, adapt_bugs, adapt_linked_mom, adapt_requirements
from .request_service import GenerationRequest, lint_yaml, load_request, save_skin_yaml, validate_request
from .requirements_document import (
    MAX_NODES,
    MAX_NODES_EXTENDED,
    adapt_requirements_document,
    build_requirements_document,
    count_tree_nodes,
)
from .suite_tree import (
    FlattenResult,
    extract_step_comment,
    extract_step_status,
    flatten_suites,
    step_rows,
    suite_header_row,
    test_case_header_row,
)
from .test_plan_service import SkinOptions, TestPlanSkinBuilder, TraceTableRequest, build_test_plan_skin
from .trace_adapters import (
    adapt_linked_pcr_trace,
    adapt_linked_requirement_trace,
    adapt_open_pcr_trace,
    adapt_query_trace,
    adapt_requirement_analysis_trace,
)

__all__ = [
    'NO_EXPLICIT_WIDTH', 'attachment_rows', 'calculate_column_width', 'classify_attachments',
    'is_step_attachment',
    'Settings', 'configure_logging', 'load_settings',
    'DevOpsClient', 'QueryResult',
    'ConfigurationError', 'DegradedDataWarning', 'SkinError', 'UnsupportedModeError',
    'UpstreamFetchError',
    'FIELD_FORMATTERS', 'FIXED_COMMON_COLUMNS', 'area_path_to_node_name', 'common_columns',
    'reconcile',
    'format_local_time', 'merge_history', 'normalize_history', 'to_timestamp',
    'clean_html', 'html_to_plain_text',
    'AttachmentRef', 'Cell', 'HistoryEntry', 'LinkPair', 'PcrSnapshot', 'ReferenceValue',
    'RelationRef', 'RequirementNode', 'RequirementTree', 'Row', 'ScalarValue', 'SourceTargetEntry',
    'StepNode', 'SuiteNode', 'TestCaseNode', 'TraceSnapshot', 'WorkItemRef', 'to_field_value',
    'work_item_from_api',
    'TraceMode', 'band_colors', 'build_pair_rows', 'parse_mode',
    'MOM_WORK_ITEM_TYPES', 'RequirementSource', 'adapt_bugs', 'adapt_linked_mom',
    'adapt_requirements',
    'GenerationRequest', 'lint_yaml', 'load_request', 'save_skin_yaml', 'validate_request',
    'MAX_NODES', 'MAX_NODES_EXTENDED', 'adapt_requirements_document', 'build_requirements_document',
    'count_tree_nodes',
    'FlattenResult', 'extract_step_comment', 'extract_step_status', 'flatten_suites',
    'step_rows', 'suite_header_row', 'test_case_header_row',
    'SkinOptions', 'TestPlanSkinBuilder', 'TraceTableRequest', 'build_test_plan_skin',
    'adapt_linked_pcr_trace', 'adapt_linked_requirement_trace', 'adapt_open_pcr_trace',
    'adapt_query_trace', 'adapt_requirement_analysis_trace',
]
