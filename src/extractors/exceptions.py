"""
Exceptions for extractor modules.
"""


class ExtractorError(Exception):
    """Base exception for extractor errors."""
    pass


class MissingToolError(ExtractorError):
    """Raised when a required external tool is not found."""

    def __init__(self, tool_name: str, install_hint: str = ""):
        self.tool_name = tool_name
        self.install_hint = install_hint
        message = f"Required tool '{tool_name}' not found"
        if install_hint:
            message += f"\n{install_hint}"
        super().__init__(message)


class StagingError(ExtractorError):
    """Raised when a source file cannot be copied into its workspace."""

    def __init__(self, source_path: str, reason: str = ""):
        self.source_path = source_path
        message = f"Unable to stage {source_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
