"""
Exceptions raised while building skin data.

* ``ConfigurationError`` aborts a whole generation (no plan, no project...).
* ``UnsupportedModeError`` is fatal to a single trace adapter call only.
* ``DegradedDataWarning`` is raised by low-level parsers and always caught by
  the caller, which logs it and falls back to a blank value.
* ``UpstreamFetchError`` wraps failures of the external readers.
"""


class SkinError(Exception):
    """Base class for all skin-building errors."""


class ConfigurationError(SkinError):
    """The generation request is missing a mandatory setting."""


class UnsupportedModeError(SkinError):
    """A trace adapter was asked for a mode it does not know."""

    def __init__(self, mode, supported=()):
        self.mode = mode
        self.supported = tuple(supported)
        message = f"Query mode not defined: {mode!r}"
        if self.supported:
            message += f" (expected one of: {', '.join(self.supported)})"
        super().__init__(message)


class DegradedDataWarning(SkinError):
    """A value could not be interpreted and will be rendered blank."""


class UpstreamFetchError(SkinError):
    """An external reader (Azure DevOps REST API) failed."""

    def __init__(self, operation, cause=None):
        self.operation = operation
        self.cause = cause
        message = f"Failed to {operation}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
