from typing import Optional


class ConfigError(ValueError):
    """Raised when the configuration cannot be loaded or is invalid."""


class ToolError(Exception):
    """
    Failure of an external tool invocation.
    Carries the tool's exit code and its captured standard error.
    """

    action = "Error running external tool"

    def __init__(self, subject: str, returncode: Optional[int], stderr: str = "", tool: Optional[str] = None):
        self.subject = subject
        self.returncode = returncode
        self.stderr = stderr or ""
        self.tool = tool
        super().__init__(
            f"{self.action}: {subject} (code: {returncode}, stderr: {self.stderr.strip()})"
        )


class EnumerationError(ToolError):
    action = "Error listing databases"


class DumpError(ToolError):
    action = "Error backing up database"


class CompressionError(ToolError):
    action = "Error compressing file"


class UploadError(ToolError):
    action = "Error uploading file to S3"
