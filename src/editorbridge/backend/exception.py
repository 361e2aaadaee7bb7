"""Custom exceptions for the editorbridge backend"""


class BridgeException(Exception):
    """Base exception for all editorbridge errors

    All custom exceptions should inherit from this class.
    The global exception handler will catch this and return ErrorResponse.

    Attributes:
        message: Human-readable error message
        code: Error code for client-side error handling
    """

    def __init__(self, message: str, code: str):
        """Initialize bridge exception

        Args:
            message: Human-readable error message
            code: Error code (e.g., "NOT_FOUND", "SPAWN_ERROR")
        """
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(BridgeException):
    """Validation error (invalid input data)

    Examples:
        - Root path is not a directory
        - Terminal id is empty
    """

    def __init__(self, message: str):
        super().__init__(message, "VALIDATION_ERROR")


class NotFoundError(BridgeException):
    """Resource not found error

    Examples:
        - No language server instance with this id
        - No terminal session with this id
        - Path given to project detection does not exist
    """

    def __init__(self, message: str):
        super().__init__(message, "NOT_FOUND")


class InternalError(BridgeException):
    """Internal server error (unexpected errors)"""

    def __init__(self, message: str):
        super().__init__(message, "INTERNAL_ERROR")


# ==================== Process Bridge Exceptions ====================


class ConfigurationError(BridgeException):
    """Unsupported or misconfigured language tag

    Examples:
        - start_lsp("cobol", ...) with no table entry for "cobol"
        - A [lsp.servers.X] override without a command
    """

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")


class SpawnError(BridgeException):
    """Child process could not be started

    Examples:
        - Binary missing from PATH
        - Permission denied
        - Pseudo-terminal allocation failed
        - Working directory does not exist
    """

    def __init__(self, message: str):
        super().__init__(message, "SPAWN_ERROR")


class ChannelIOError(BridgeException):
    """Read or write failure on a pipe, PTY or socket

    Examples:
        - Writing to the stdin of a language server that has exited
        - End of stream while a frame body was expected
    """

    def __init__(self, message: str):
        super().__init__(message, "IO_ERROR")


class ProtocolError(BridgeException):
    """Malformed Content-Length framing

    Examples:
        - Header without a Content-Length line
        - Content-Length of zero or not a number
        - Body that is not valid UTF-8
    """

    def __init__(self, message: str):
        super().__init__(message, "PROTOCOL_ERROR")


class ProjectUnknownError(BridgeException):
    """No ancestor directory carries a known project manifest"""

    def __init__(self, message: str = "unknown"):
        super().__init__(message, "UNKNOWN_PROJECT")
