"""Core types shared by the field framework, the parse engine and transforms.

Results are plain dataclasses so they can be logged, compared in tests and
serialized for a UI or an LLM repair loop without carrying exception objects.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


# --- Closed sets ---

FieldKind = Literal[
    "text",
    "markdown",
    "number",
    "boolean",
    "date",
    "enum",
    "entity",
    "array",
    "object",
]

FIELD_KINDS: tuple[str, ...] = (
    "text",
    "markdown",
    "number",
    "boolean",
    "date",
    "enum",
    "entity",
    "array",
    "object",
)

IssueCode = Literal[
    "invalid_type",
    "invalid_literal",
    "invalid_enum_value",
    "invalid_date",
    "invalid_format",
    "too_small",
    "too_big",
    "required",
]


# --- Parse issues ---


@dataclass
class ParseIssue:
    """A single validation problem located by its path from the schema root."""

    path: list[str]
    message: str
    code: IssueCode
    expected: str | None = None
    received: Any = None

    def describe(self) -> str:
        return f"{format_path(self.path)}: {self.message} ({self.code})"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def format_path(path: list[str]) -> str:
    """Render a path for humans. The empty path is the root value."""
    return "<root>" if not path else ".".join(path)


def append_path(path: list[str], segment: str | int) -> list[str]:
    return [*path, str(segment)]


def make_issue(
    path: list[str],
    message: str,
    code: IssueCode,
    expected: str | None = None,
    received: Any = None,
) -> ParseIssue:
    return ParseIssue(
        path=list(path), message=message, code=code, expected=expected, received=received
    )


def type_name(value: Any) -> str:
    """Short name of a value's type for issue reporting."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


# --- Results ---


@dataclass
class ParseSuccess(Generic[T]):
    """Successful parse carrying the typed output."""

    data: T
    success: Literal[True] = True


@dataclass
class ParseFailure:
    """Failed parse carrying every independently collected issue."""

    issues: list[ParseIssue] = field(default_factory=list)
    success: Literal[False] = False

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "issues": [issue.to_dict() for issue in self.issues]}


ParseResult = ParseSuccess[T] | ParseFailure


# --- Schema-level options ---


class SchemaOptions(BaseModel):
    """Normalized options bound to a Schema handle."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="Schema", description="Schema name used by exporters")
    description: str = Field(default="", description="Human description of the schema")
    version: str = Field(default="1.0.0", description="Schema version")
    strict: bool = Field(default=False, description="Reject unknown keys at the root")
    examples: list[dict[str, Any]] = Field(
        default_factory=list, description="Example payloads that satisfy the schema"
    )
