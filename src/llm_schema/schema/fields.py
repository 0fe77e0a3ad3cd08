"""Field descriptors and their constructors.

A schema is a dict of field descriptors. Every descriptor belongs to one of
nine closed kinds and implements the same contract:

  kind           -> one of FIELD_KINDS, fixed per class
  optional       -> resolved once by the constructor (see resolve_optional)
  has_default    -> True when a non-None default was supplied
  default_value  -> lazy producer, returns a fresh copy on each call
  parse          -> (value, path) -> ParseSuccess | ParseFailure, never raises
  to_prompt      -> one-line human description used by prompt generators

Constructors (text, md, number, boolean, date, enum_type, entity, array,
object_field) are the public way to build descriptors. Array and object
descriptors embed nested schema definitions, which is what makes the tree
recursive.
"""

import copy
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields
from datetime import date as date_type
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar, Literal, Union

from llm_schema.schema.errors import SchemaDefinitionError
from llm_schema.schema.types import (
    FieldKind,
    ParseFailure,
    ParseResult,
    ParseSuccess,
    append_path,
    make_issue,
    type_name,
)
from llm_schema.schema.validation import parse_definition


# --- Shared helpers ---


def resolve_optional(
    optional: bool | None = None,
    required: bool | None = None,
    default: Any = None,
) -> bool:
    """Resolve whether a field may be omitted.

    Precedence: optional=True wins, then required=True / required=False,
    then the presence of a default. Reordering these checks changes meaning.
    """
    if optional is True:
        return True
    if required is True:
        return False
    if required is False:
        return True
    return default is not None


def determine_number_precision(value: int | float) -> int:
    """Count decimal digits in the shortest decimal form of a number.

    Examples:
        2       -> 0
        2.0     -> 0
        0.125   -> 3
        1e-07   -> 7
    """
    if isinstance(value, int):
        return 0
    exponent = Decimal(repr(value)).normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        return 0
    return max(0, -exponent)


def determine_date(value: Any, from_unix: bool = False) -> datetime | None:
    """Resolve a date-like value to a datetime, or None if it is not one.

    Accepted forms, first match wins:
      - datetime / date instances (dates become UTC midnight, naive
        datetimes are taken as UTC)
      - numbers: milliseconds since epoch, or seconds when from_unix is set
      - ISO-8601 strings (naive values are taken as UTC)
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)

    if isinstance(value, date_type):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return None
        milliseconds = value * 1000 if from_unix else value
        try:
            return datetime.fromtimestamp(milliseconds / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    return None


def _fail(path: list[str], message: str, code, expected=None, received=None) -> ParseFailure:
    return ParseFailure(issues=[make_issue(path, message, code, expected, received)])


def _constraint_text(constraints: list[str]) -> str:
    return f" ({', '.join(constraints)})" if constraints else ""


# --- Base descriptor ---


@dataclass(frozen=True, kw_only=True)
class BaseField:
    """Attributes shared by every field kind."""

    kind: ClassVar[FieldKind]

    description: str | None = None
    optional: bool = False
    default: Any = None
    note: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def default_value(self) -> Any:
        """Produce the default. Each call returns an independent copy."""
        return copy.deepcopy(self.default)

    @property
    def options(self) -> dict[str, Any]:
        """Kind-specific options that were explicitly set.

        Consumed by exporters and prompt generators that project the schema
        tree into other formats.
        """
        result: dict[str, Any] = {}
        for item in fields(self):
            if item.name == "optional":
                continue
            value = getattr(self, item.name)
            if value is None:
                continue
            # Flags left at their declared default are not "set"
            if isinstance(item.default, bool) and value is item.default:
                continue
            result[item.name] = value
        return result

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        raise NotImplementedError

    def to_prompt(self, name: str) -> str:
        raise NotImplementedError

    def _requirement(self) -> str:
        return "optional" if self.optional else "required"

    def _description_suffix(self) -> str:
        return f" - {self.description}" if self.description else ""


# --- Leaf kinds ---


@dataclass(frozen=True, kw_only=True)
class TextField(BaseField):
    kind: ClassVar[FieldKind] = "text"

    min_length: int | None = None
    max_length: int | None = None
    pattern: re.Pattern[str] | None = None
    placeholder: str | None = None

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        if not isinstance(value, str):
            return _fail(path, "Expected text value", "invalid_type", "string", type_name(value))

        if self.min_length is not None and len(value) < self.min_length:
            return _fail(
                path,
                f"Expected at least {self.min_length} characters",
                "too_small",
                f">= {self.min_length}",
                len(value),
            )

        if self.max_length is not None and len(value) > self.max_length:
            return _fail(
                path,
                f"Expected at most {self.max_length} characters",
                "too_big",
                f"<= {self.max_length}",
                len(value),
            )

        if self.pattern is not None and not self.pattern.search(value):
            return _fail(
                path,
                "Value does not match required pattern",
                "invalid_format",
                f"/{self.pattern.pattern}/",
                value,
            )

        return ParseSuccess(value)

    def to_prompt(self, name: str) -> str:
        constraints: list[str] = []
        if self.min_length is not None:
            constraints.append(f"min {self.min_length} chars")
        if self.max_length is not None:
            constraints.append(f"max {self.max_length} chars")
        if self.pattern is not None:
            constraints.append(f"pattern /{self.pattern.pattern}/")
        return (
            f'"{name}": string ({self._requirement()})'
            f"{_constraint_text(constraints)}{self._description_suffix()}"
        )


@dataclass(frozen=True, kw_only=True)
class MarkdownField(BaseField):
    """Markdown content. Stored and validated as opaque text."""

    kind: ClassVar[FieldKind] = "markdown"

    max_length: int | None = None
    allow_html: bool = False
    allowed_markdown: Mapping[str, bool] | None = None
    toolbar: tuple[str, ...] | None = None
    live_preview: bool = False

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        if not isinstance(value, str):
            return _fail(
                path, "Expected markdown string", "invalid_type", "string", type_name(value)
            )

        if self.max_length is not None and len(value) > self.max_length:
            return _fail(
                path,
                f"Markdown exceeds maximum length {self.max_length}",
                "too_big",
                f"<= {self.max_length}",
                len(value),
            )

        return ParseSuccess(value)

    def to_prompt(self, name: str) -> str:
        constraints: list[str] = []
        if self.max_length is not None:
            constraints.append(f"max {self.max_length} chars")
        return (
            f'"{name}": markdown ({self._requirement()})'
            f"{_constraint_text(constraints)}{self._description_suffix()}"
        )


@dataclass(frozen=True, kw_only=True)
class NumberField(BaseField):
    kind: ClassVar[FieldKind] = "number"

    min: int | float | None = None
    max: int | float | None = None
    precision: int | None = None

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        # bool is an int subclass in Python but never a number here
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _fail(path, "Expected numeric value", "invalid_type", "number", type_name(value))

        if isinstance(value, float) and not math.isfinite(value):
            return _fail(path, "Expected finite numeric value", "invalid_type", "number", value)

        if self.min is not None and value < self.min:
            return _fail(path, f"Value must be >= {self.min}", "too_small", f">= {self.min}", value)

        if self.max is not None and value > self.max:
            return _fail(path, f"Value must be <= {self.max}", "too_big", f"<= {self.max}", value)

        if self.precision is not None and determine_number_precision(value) > self.precision:
            return _fail(
                path,
                f"Value exceeds precision of {self.precision} decimals",
                "invalid_format",
                f"<= {self.precision} decimals",
                value,
            )

        return ParseSuccess(value)

    def to_prompt(self, name: str) -> str:
        constraints: list[str] = []
        if self.min is not None:
            constraints.append(f"min {self.min}")
        if self.max is not None:
            constraints.append(f"max {self.max}")
        if self.precision is not None:
            constraints.append(f"precision {self.precision}")
        return (
            f'"{name}": number ({self._requirement()})'
            f"{_constraint_text(constraints)}{self._description_suffix()}"
        )


@dataclass(frozen=True, kw_only=True)
class BooleanField(BaseField):
    kind: ClassVar[FieldKind] = "boolean"

    labels: Mapping[str, str] | None = None

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        if not isinstance(value, bool):
            return _fail(path, "Expected boolean value", "invalid_type", "boolean", type_name(value))
        return ParseSuccess(value)

    def to_prompt(self, name: str) -> str:
        return f'"{name}": boolean ({self._requirement()}){self._description_suffix()}'


@dataclass(frozen=True, kw_only=True)
class DateField(BaseField):
    kind: ClassVar[FieldKind] = "date"

    format: Literal["date", "date-time"] | None = None
    from_unix: bool = False

    def default_value(self) -> datetime:
        # A broken default is a schema bug, not a data error
        resolved = determine_date(self.default, self.from_unix)
        if resolved is None:
            raise SchemaDefinitionError(f"Invalid default date value: {self.default!r}")
        return resolved

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        resolved = determine_date(value, self.from_unix)
        if resolved is None:
            return _fail(
                path,
                "Invalid date value. Expected ISO string, unix timestamp, or datetime instance.",
                "invalid_date",
                None,
                value,
            )
        return ParseSuccess(resolved)

    def to_prompt(self, name: str) -> str:
        label = "ISO date" if self.format == "date" else "ISO date-time"
        return f'"{name}": {label} string ({self._requirement()}){self._description_suffix()}'


@dataclass(frozen=True, kw_only=True)
class EnumField(BaseField):
    kind: ClassVar[FieldKind] = "enum"

    values: tuple[str, ...] = ()
    labels: Mapping[str, str] | None = None

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        if not isinstance(value, str):
            return _fail(
                path, "Expected string enum value", "invalid_type", "string", type_name(value)
            )

        if value not in self.values:
            return _fail(
                path,
                f"Value must be one of: {', '.join(self.values)}",
                "invalid_enum_value",
                " | ".join(self.values),
                value,
            )

        return ParseSuccess(value)

    def to_prompt(self, name: str) -> str:
        values_text = " | ".join(f"'{v}'" for v in self.values)
        return f'"{name}": {values_text} ({self._requirement()}){self._description_suffix()}'


@dataclass(frozen=True, kw_only=True)
class EntityField(BaseField):
    """String reference to an application entity, tagged with entity_type."""

    kind: ClassVar[FieldKind] = "entity"

    entity_type: str

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        if not isinstance(value, str):
            return _fail(
                path,
                "Expected entity identifier string",
                "invalid_type",
                "string",
                type_name(value),
            )
        return ParseSuccess(value)

    def to_prompt(self, name: str) -> str:
        return (
            f'"{name}": string ({self._requirement()}, entity: {self.entity_type})'
            f"{self._description_suffix()}"
        )


# --- Composite kinds ---


@dataclass(frozen=True, kw_only=True)
class ArrayField(BaseField):
    """List of objects, each parsed against item_definition."""

    kind: ClassVar[FieldKind] = "array"

    item_definition: dict[str, "FieldDefinition"] = field(default_factory=dict)
    min_items: int | None = None
    max_items: int | None = None
    unique_by: str | None = None
    strict: bool = False

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        if not isinstance(value, (list, tuple)):
            return _fail(path, "Expected array value", "invalid_type", "array", type_name(value))

        result = ParseFailure()
        items: list[Any] = []

        # Size problems are reported alongside item problems, not instead of them
        if self.min_items is not None and len(value) < self.min_items:
            result.issues.append(
                make_issue(
                    path,
                    f"Expected at least {self.min_items} items",
                    "too_small",
                    f">= {self.min_items}",
                    len(value),
                )
            )

        if self.max_items is not None and len(value) > self.max_items:
            result.issues.append(
                make_issue(
                    path,
                    f"Expected at most {self.max_items} items",
                    "too_big",
                    f"<= {self.max_items}",
                    len(value),
                )
            )

        for index, item in enumerate(value):
            nested = parse_definition(
                self.item_definition, item, append_path(path, index), strict=self.strict
            )
            if nested.success:
                items.append(nested.data)
            else:
                result.issues.extend(nested.issues)

        if result.issues:
            return result

        if self.unique_by:
            duplicate = _first_duplicate(items, self.unique_by)
            if duplicate is not None:
                return _fail(
                    path,
                    f'Array items must be unique by "{self.unique_by}"',
                    "invalid_format",
                    None,
                    duplicate,
                )

        return ParseSuccess(items)

    def to_prompt(self, name: str) -> str:
        constraints: list[str] = []
        if self.min_items is not None:
            constraints.append(f"min {self.min_items}")
        if self.max_items is not None:
            constraints.append(f"max {self.max_items}")
        return (
            f'"{name}": array ({self._requirement()})'
            f"{_constraint_text(constraints)}{self._description_suffix()}"
        )


def _first_duplicate(items: list[Any], key: str) -> Any:
    """Return the first repeated value of items[*][key], ignoring missing keys.

    Booleans never collide with numbers, so True and 1 are distinct.
    """
    seen: list[tuple[bool, Any]] = []
    for item in items:
        candidate = item.get(key) if isinstance(item, Mapping) else None
        if candidate is None:
            continue
        marker = (isinstance(candidate, bool), candidate)
        if marker in seen:
            return candidate
        seen.append(marker)
    return None


@dataclass(frozen=True, kw_only=True)
class ObjectField(BaseField):
    """Nested object parsed against its own shape definition."""

    kind: ClassVar[FieldKind] = "object"

    shape: dict[str, "FieldDefinition"] = field(default_factory=dict)
    strict: bool = False

    def parse(self, value: Any, path: list[str]) -> ParseResult:
        return parse_definition(self.shape, value, path, strict=self.strict)

    def to_prompt(self, name: str) -> str:
        return f'"{name}": object ({self._requirement()}){self._description_suffix()}'


FieldDefinition = Union[
    TextField,
    MarkdownField,
    NumberField,
    BooleanField,
    DateField,
    EnumField,
    EntityField,
    ArrayField,
    ObjectField,
]

SchemaDefinition = dict[str, FieldDefinition]


# --- Constructors ---


def text(
    *,
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: str | None = None,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | re.Pattern[str] | None = None,
    placeholder: str | None = None,
    note: str | None = None,
) -> TextField:
    """Plain text field with optional length and pattern constraints."""
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    return TextField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        min_length=min_length,
        max_length=max_length,
        pattern=compiled,
        placeholder=placeholder,
    )


def md(
    *,
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: str | None = None,
    max_length: int | None = None,
    allow_html: bool = False,
    allowed_markdown: Mapping[str, bool] | None = None,
    toolbar: Iterable[str] | None = None,
    live_preview: bool = False,
    note: str | None = None,
) -> MarkdownField:
    """Markdown field. Only max_length is enforced; the rest is editor metadata."""
    return MarkdownField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        max_length=max_length,
        allow_html=allow_html,
        allowed_markdown=dict(allowed_markdown) if allowed_markdown is not None else None,
        toolbar=tuple(toolbar) if toolbar is not None else None,
        live_preview=live_preview,
    )


markdown = md


def number(
    *,
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: int | float | None = None,
    min: int | float | None = None,
    max: int | float | None = None,
    precision: int | None = None,
    note: str | None = None,
) -> NumberField:
    return NumberField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        min=min,
        max=max,
        precision=precision,
    )


def boolean(
    *,
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: bool | None = None,
    labels: Mapping[str, str] | None = None,
    note: str | None = None,
) -> BooleanField:
    return BooleanField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        labels=dict(labels) if labels is not None else None,
    )


def date(
    *,
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: datetime | date_type | str | int | float | None = None,
    format: Literal["date", "date-time"] | None = None,
    from_unix: bool = False,
    note: str | None = None,
) -> DateField:
    """Date field. The default is resolved lazily, each time it is needed."""
    return DateField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        format=format,
        from_unix=from_unix,
    )


def enum_type(
    values: Iterable[str],
    *,
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: str | None = None,
    labels: Mapping[str, str] | None = None,
    note: str | None = None,
) -> EnumField:
    """Closed set of string literals, in declaration order.

    Raises:
        SchemaDefinitionError: If values is empty or contains non-strings.
    """
    allowed = tuple(values)
    if not allowed:
        raise SchemaDefinitionError("Enum field requires at least one value")
    if not all(isinstance(v, str) for v in allowed):
        raise SchemaDefinitionError(f"Enum values must be strings, got {allowed!r}")

    return EnumField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        values=allowed,
        labels=dict(labels) if labels is not None else None,
    )


def entity(
    entity_type: str,
    *,
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: str | None = None,
    note: str | None = None,
) -> EntityField:
    """String reference to an entity such as "person" or "project"."""
    return EntityField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        entity_type=entity_type,
    )


def array(
    *,
    schema: Mapping[str, FieldDefinition],
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: list[dict[str, Any]] | None = None,
    min_items: int | None = None,
    max_items: int | None = None,
    unique_by: str | None = None,
    strict: bool = False,
    note: str | None = None,
) -> ArrayField:
    """Array of objects whose items follow the given schema definition."""
    return ArrayField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        item_definition=dict(schema),
        min_items=min_items,
        max_items=max_items,
        unique_by=unique_by,
        strict=strict,
    )


def object_field(
    *,
    schema: Mapping[str, FieldDefinition],
    description: str | None = None,
    optional: bool | None = None,
    required: bool | None = None,
    default: dict[str, Any] | None = None,
    strict: bool = False,
    note: str | None = None,
) -> ObjectField:
    """Nested object with its own schema definition."""
    return ObjectField(
        description=description,
        optional=resolve_optional(optional, required, default),
        default=default,
        note=note,
        shape=dict(schema),
        strict=strict,
    )
