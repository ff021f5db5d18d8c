"""
Shared test configuration.

Clears Azure DevOps credentials from the environment so that all tests
use the in-memory DevOpsClient backend.  This runs once per session,
before any test module is imported.
"""

import os
import sys

# Ensure docgen_skins is importable from all test files
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# ---------------------------------------------------------------------------
# Strip Azure DevOps credentials from the process environment so that
# load_dotenv() in config.py cannot inject them.  Setting the vars to empty
# strings means load_dotenv(override=False) sees them as already set.
# ---------------------------------------------------------------------------
_CREDENTIAL_VARS = [
    "AZURE_DEVOPS_ORG_NAME",
    "AZURE_DEVOPS_PROJECT_NAME",
    "AZURE_DEVOPS_PERSONAL_ACCESS_TOKEN",
    "AZURE_DEVOPS_API_VERSION",
    "DOCGEN_TIMEZONE",
    "DOCGEN_LOG_LEVEL",
]

for var in _CREDENTIAL_VARS:
    os.environ[var] = ""
