"""
Custom exceptions for schema construction and strict parsing.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from llm_schema.schema.types import ParseIssue


class LLMSchemaError(Exception):
    """Base exception for all llm-schema errors."""

    pass


class SchemaError(LLMSchemaError):
    """Raised by Schema.parse when input fails validation.

    Carries every collected issue, not just the first one.
    """

    def __init__(self, message: str, issues: list["ParseIssue"]):
        self.issues = issues
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if not self.issues:
            return base
        details = "; ".join(issue.describe() for issue in self.issues)
        return f"{base}: {details}"


class SchemaDefinitionError(LLMSchemaError):
    """Raised when the schema itself is misconfigured.

    Examples: an enum without values, an unparseable default date, or a
    definition that references itself.
    """

    pass
