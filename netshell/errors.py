"""Module errors: structured error taxonomy for netshell."""
#
# PURPOSE:
# Provides error codes, typed exceptions, and consistent error handling across
# the configuration, templating, extraction and execution layers.
#
# ERROR CODE FORMAT:
# - CONFIG_XXX: Configuration load/validation errors (fatal before any run)
# - TEMPLATE_XXX: Template syntax and resolution errors (scoped to one step)
# - EXEC_XXX: Script execution errors (scoped to one target)
# - CONN_XXX: Connection/authentication errors (scoped to one target)
# - EXTRACT_XXX: Variable extraction errors (logged, never fatal)
# - EVENT_XXX: Event delivery errors
# - SYSTEM_XXX: Anything else
#
# USAGE:
#   from netshell.errors import ConfigError, ErrorCode
#
#   raise ConfigError(
#       ErrorCode.CONFIG_INVALID,
#       "Step 'deploy' references unknown server 'web-3'",
#       details={"pipeline": "release"}
#   )
#

import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # Config Errors
    CONFIG_INVALID = "CONFIG_001"
    CONFIG_MISSING_REQUIRED = "CONFIG_002"
    CONFIG_FILE_NOT_FOUND = "CONFIG_003"
    CONFIG_PARSE_ERROR = "CONFIG_004"
    CONFIG_UNKNOWN_PIPELINE = "CONFIG_005"
    CONFIG_UNKNOWN_CLIENT = "CONFIG_006"

    # Template Errors
    TEMPLATE_SYNTAX = "TEMPLATE_001"
    TEMPLATE_UNRESOLVED = "TEMPLATE_002"
    TEMPLATE_TYPE = "TEMPLATE_003"

    # Execution Errors
    EXEC_NONZERO_EXIT = "EXEC_001"
    EXEC_SPAWN_FAILED = "EXEC_002"
    EXEC_TIMEOUT = "EXEC_003"
    EXEC_FAILED = "EXEC_004"

    # Connection Errors
    CONN_FAILED = "CONN_001"
    CONN_TIMEOUT = "CONN_002"
    CONN_AUTH_FAILED = "CONN_003"

    # Extraction Errors
    EXTRACT_NO_MATCH = "EXTRACT_001"
    EXTRACT_BAD_PATTERN = "EXTRACT_002"

    # Event Errors
    EVENT_SUBSCRIBER_ERROR = "EVENT_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"


class NetShellError(Exception):
    """
    Base exception class for netshell with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "TEMPLATE_002")
        message: Human-readable error message
        details: Optional dictionary with additional context
    """

    default_code: ErrorCode = ErrorCode.SYSTEM_INTERNAL_ERROR

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        message: str = "",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}

        # Build exception message with code for easy debugging
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetShellError":
        """
        Deserialize error from dictionary.

        Args:
            data: Dictionary with code, message, details

        Returns:
            Error instance of the calling class
        """
        return cls(ErrorCode(data["code"]), data["message"], data.get("details", {}))


class ConfigError(NetShellError):
    """Configuration could not be loaded or failed validation."""
    default_code = ErrorCode.CONFIG_INVALID


class TemplateError(NetShellError):
    """A template is malformed or references a value that cannot be rendered."""
    default_code = ErrorCode.TEMPLATE_SYNTAX


class ExecutionError(NetShellError):
    default_code = ErrorCode.EXEC_FAILED


class TargetConnectionError(NetShellError):
    default_code = ErrorCode.CONN_FAILED


class ExtractionError(NetShellError):
    default_code = ErrorCode.EXTRACT_NO_MATCH


# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> NetShellError:
    """
    Convert a generic exception to a NetShellError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while connecting to web-1")

    Returns:
        NetShellError with appropriate code and message
    """
    if isinstance(error, NetShellError):
        return error

    error_type = type(error).__name__

    if isinstance(error, TimeoutError) or "Timeout" in error_type:
        code = ErrorCode.EXEC_TIMEOUT
    elif isinstance(error, PermissionError) or "Permission" in error_type:
        code = ErrorCode.CONN_AUTH_FAILED
    elif isinstance(error, ConnectionError) or "Connection" in error_type:
        code = ErrorCode.CONN_FAILED
    else:
        code = ErrorCode.SYSTEM_INTERNAL_ERROR

    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    return NetShellError(
        code=code,
        message=message,
        details={
            "original_type": error_type,
            "original_message": str(error),
        },
    )


__all__ = [
    "ErrorCode",
    "NetShellError",
    "ConfigError",
    "TemplateError",
    "ExecutionError",
    "TargetConnectionError",
    "ExtractionError",
    "handle_error",
]
