"""Custom exceptions for schemadiff.

This module defines the error taxonomy surfaced to callers of the analysis
engine and the CLI. Every error raised on purpose derives from SchemaDiffError;
anything else escaping the library is a programming error.
"""


class SchemaDiffError(Exception):
    """Base exception for all schemadiff errors."""

    pass


class ParseError(SchemaDiffError):
    """Raised when schema content does not normalize for its declared format."""

    def __init__(self, message: str, format: str | None = None):
        """Initialize parse error.

        Args:
            message: Error message
            format: Declared schema format (e.g. "protobuf")
        """
        self.message = message
        self.format = format
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with the schema format prefix."""
        if self.format:
            return f"[{self.format}] {self.message}"
        return self.message


class FormatSpecificError(ParseError):
    """Raised when an underlying format library rejects the content.

    Wraps errors such as ``yaml.YAMLError`` or ``sqlglot.errors.ParseError``
    so callers only need to handle the schemadiff taxonomy.

    Attributes:
        original: The library exception that was wrapped
    """

    def __init__(self, message: str, format: str | None = None, original: Exception | None = None):
        """Initialize format-specific error.

        Args:
            message: Error message
            format: Declared schema format
            original: Underlying library exception
        """
        self.original = original
        if original is not None:
            message = f"{message}: {original}"
        super().__init__(message, format)


class ComparisonError(SchemaDiffError):
    """Raised when two normalized trees cannot be compared.

    Examples are an object root compared against a scalar root, schemas of
    different formats, or nesting deeper than the configured maximum depth.
    """

    pass


class InvalidFormatError(SchemaDiffError):
    """Raised when a schema format is unknown or has no registered adapter."""

    pass


class SchemaIOError(SchemaDiffError):
    """Raised when schema or change files cannot be read or written."""

    pass


class EncodingError(SchemaIOError):
    """Raised when file content cannot be decoded as text."""

    pass


class ConfigurationError(SchemaDiffError):
    """Raised when configuration is invalid or missing."""

    pass
