"""Schema handle: the public entry point for parsing and transforms.

A Schema binds one definition to normalized SchemaOptions. It is created once,
usually at module level, and shared by every call site:

    MeetingNotes = define_schema(
        {
            "title": text(description="Meeting title"),
            "summary": md(optional=True, max_length=2000),
            "priority": enum_type(["high", "medium", "low"], default="medium"),
        },
        name="MeetingNotes",
    )

    result = MeetingNotes.safe_parse(llm_output)
    if not result.success:
        for issue in result.issues:
            ...
"""

from collections.abc import Iterator, Mapping
from typing import Any

from loguru import logger

from llm_schema.config import get_config
from llm_schema.schema.errors import SchemaError
from llm_schema.schema.fields import FieldDefinition, SchemaDefinition
from llm_schema.schema.introspection import check_definition, iter_fields
from llm_schema.schema.transform import (
    ArrayStrategy,
    DiffResult,
    EntityRecord,
    MarkdownFieldRecord,
    SearchResult,
    collect_markdown_fields,
    diff_schema_data,
    extract_entities,
    merge_schema_data,
    search_schema_data,
)
from llm_schema.schema.types import ParseResult, SchemaOptions
from llm_schema.schema.validation import parse_root


class Schema:
    """A schema definition bound to its options.

    Immutable after construction and safe to share between threads.
    """

    def __init__(self, definition: Mapping[str, FieldDefinition], options: SchemaOptions):
        self._definition: SchemaDefinition = dict(definition)
        self._options = options

    def __repr__(self) -> str:
        return f"Schema(name={self._options.name!r}, fields={list(self._definition)!r})"

    @property
    def definition(self) -> SchemaDefinition:
        return self._definition

    @property
    def options(self) -> SchemaOptions:
        return self._options

    @property
    def name(self) -> str:
        return self._options.name

    # --- Parsing ---

    def safe_parse(self, value: Any) -> ParseResult[dict[str, Any]]:
        """Parse a mapping or JSON string. Never raises for bad data."""
        return parse_root(self._definition, value, self._options)

    def validate(self, value: Any) -> ParseResult[dict[str, Any]]:
        """Alias of safe_parse."""
        return self.safe_parse(value)

    def parse(self, value: Any) -> dict[str, Any]:
        """Parse a mapping or JSON string, raising on invalid data.

        Raises:
            SchemaError: Carrying every issue found, not just the first.
        """
        result = self.safe_parse(value)
        if not result.success:
            raise SchemaError("Failed to parse schema data", result.issues)
        return result.data

    # --- Introspection ---

    def get_definition(self) -> SchemaDefinition:
        return self._definition

    def iter_fields(self) -> Iterator[tuple[list[str], FieldDefinition]]:
        """Walk every field depth first, yielding (schema path, field)."""
        return iter_fields(self._definition, get_config().max_definition_depth)

    # --- Transforms ---

    def diff(self, previous: Mapping[str, Any], current: Mapping[str, Any]) -> DiffResult:
        return diff_schema_data(self, previous, current)

    def merge(
        self,
        base: Mapping[str, Any],
        updates: Mapping[str, Any],
        array_strategy: ArrayStrategy = "replace",
    ) -> dict[str, Any]:
        return merge_schema_data(self, base, updates, array_strategy=array_strategy)

    def search(
        self,
        data: Mapping[str, Any],
        query: str,
        case_sensitive: bool = False,
        match_markdown: bool = True,
        limit: int | None = None,
    ) -> list[SearchResult]:
        return search_schema_data(
            self,
            data,
            query,
            case_sensitive=case_sensitive,
            match_markdown=match_markdown,
            limit=limit,
        )

    def get_entities(
        self, data: Mapping[str, Any], entity_type: str | None = None
    ) -> list[EntityRecord]:
        return extract_entities(self, data, entity_type)

    def get_markdown_fields(self, data: Mapping[str, Any]) -> list[MarkdownFieldRecord]:
        return collect_markdown_fields(self, data)


def define_schema(
    definition: Mapping[str, FieldDefinition],
    options: SchemaOptions | Mapping[str, Any] | None = None,
    **option_kwargs: Any,
) -> Schema:
    """Build a Schema from a definition dict.

    Options can be given as a SchemaOptions, a dict, keyword arguments, or a
    mix; keyword arguments win.

    Raises:
        SchemaDefinitionError: If the definition is not an acyclic mapping of
            field descriptors.
    """
    check_definition(definition, get_config().max_definition_depth)

    if isinstance(options, SchemaOptions):
        merged = {**options.model_dump(), **option_kwargs}
    else:
        merged = {**dict(options or {}), **option_kwargs}
    normalized = SchemaOptions(**merged)

    logger.debug(f"Defined schema '{normalized.name}' with {len(definition)} top-level fields")
    return Schema(definition, normalized)
