"""Structural operations over parsed schema data.

Each operation walks the schema definition in lock-step with one or two data
instances and branches on field kind:

  diff                 -> added / removed / changed entries per path
  merge                -> type-aware overlay of updates onto a base
  search               -> substring hits over text-like leaves with excerpts
  extract_entities     -> entity leaves, optionally filtered by entity_type
  collect_markdown     -> markdown leaves

None of them validate. Data is assumed to have been parsed already; missing
or mistyped sub-values are treated as absent rather than raising.

Paths here are dot-joined strings ("actionItems.1.owner").
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

from llm_schema.config import get_config
from llm_schema.schema.fields import (
    ArrayField,
    EntityField,
    EnumField,
    FieldDefinition,
    MarkdownField,
    ObjectField,
    SchemaDefinition,
    TextField,
)
from llm_schema.schema.types import ParseResult

if TYPE_CHECKING:
    from llm_schema.schema.builder import Schema


ArrayStrategy = Literal["replace", "append"]


# --- Result Data Model ---


@dataclass
class DiffChange:
    """One differing path. before is None for additions, after for removals."""

    path: str
    before: Any = None
    after: Any = None


@dataclass
class DiffResult:
    added: list[DiffChange] = field(default_factory=list)
    removed: list[DiffChange] = field(default_factory=list)
    changed: list[DiffChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


@dataclass
class SearchResult:
    path: str
    value: Any
    excerpt: str


@dataclass
class EntityRecord:
    path: str
    type: str
    value: str


@dataclass
class MarkdownFieldRecord:
    path: str
    value: str
    field: MarkdownField


# --- Helpers ---


def join_path(parent: str, key: str | int) -> str:
    return f"{parent}.{key}" if parent else str(key)


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality. Booleans never equal numbers; datetimes compare by instant."""
    if a is b:
        return True

    if isinstance(a, datetime) and isinstance(b, datetime):
        return a == b

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))

    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        return all(key in b and deep_equal(value, b[key]) for key, value in a.items())

    if isinstance(a, (Mapping, list, tuple)) or isinstance(b, (Mapping, list, tuple)):
        return False

    return a == b


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _walk_leaves(
    definition: SchemaDefinition,
    data: Any,
    path: str = "",
) -> Iterator[tuple[FieldDefinition, Any, str]]:
    """Yield (field, value, path) for every present leaf in document order.

    Arrays are entered item by item, objects key by key. Absent values and
    mistyped containers are skipped.
    """
    record = _as_mapping(data)
    for key, schema_field in definition.items():
        value = record.get(key)
        if value is None:
            continue
        field_path = join_path(path, key)

        if isinstance(schema_field, ArrayField):
            if isinstance(value, (list, tuple)):
                for index, item in enumerate(value):
                    yield from _walk_leaves(
                        schema_field.item_definition, item, join_path(field_path, index)
                    )
            continue

        if isinstance(schema_field, ObjectField):
            if isinstance(value, Mapping):
                yield from _walk_leaves(schema_field.shape, value, field_path)
            continue

        yield schema_field, value, field_path


# --- Diff ---


def diff_schema_data(schema: "Schema", previous: Any, current: Any) -> DiffResult:
    """Compare two instances of the same schema.

    Arrays are compared index by index up to the longer length; a reordered
    list shows up as changed entries, not as a move.
    """
    result = DiffResult()
    previous_record = _as_mapping(previous)
    next_record = _as_mapping(current)

    for key, schema_field in schema.get_definition().items():
        _diff_field(schema_field, previous_record.get(key), next_record.get(key), key, result)

    logger.debug(
        f"Diff for schema '{schema.options.name}': {len(result.added)} added, "
        f"{len(result.removed)} removed, {len(result.changed)} changed"
    )
    return result


def _diff_field(
    schema_field: FieldDefinition,
    prev_value: Any,
    next_value: Any,
    path: str,
    result: DiffResult,
) -> None:
    if prev_value is None and next_value is None:
        return

    if prev_value is None:
        result.added.append(DiffChange(path=path, after=next_value))
        return

    if next_value is None:
        result.removed.append(DiffChange(path=path, before=prev_value))
        return

    if isinstance(schema_field, ArrayField):
        prev_items = prev_value if isinstance(prev_value, (list, tuple)) else []
        next_items = next_value if isinstance(next_value, (list, tuple)) else []

        for index in range(max(len(prev_items), len(next_items))):
            prev_item = prev_items[index] if index < len(prev_items) else None
            next_item = next_items[index] if index < len(next_items) else None
            item_path = join_path(path, index)

            if prev_item is None and next_item is not None:
                result.added.append(DiffChange(path=item_path, after=next_item))
            elif prev_item is not None and next_item is None:
                result.removed.append(DiffChange(path=item_path, before=prev_item))
            elif not deep_equal(prev_item, next_item):
                result.changed.append(
                    DiffChange(path=item_path, before=prev_item, after=next_item)
                )
        return

    if (
        isinstance(schema_field, ObjectField)
        and isinstance(prev_value, Mapping)
        and isinstance(next_value, Mapping)
    ):
        for key, nested_field in schema_field.shape.items():
            _diff_field(
                nested_field, prev_value.get(key), next_value.get(key), join_path(path, key), result
            )
        return

    if not deep_equal(prev_value, next_value):
        result.changed.append(DiffChange(path=path, before=prev_value, after=next_value))


# --- Merge ---


def merge_schema_data(
    schema: "Schema",
    base: Any,
    updates: Any,
    array_strategy: ArrayStrategy = "replace",
) -> dict[str, Any]:
    """Overlay updates onto base, returning a new dict.

    Args:
        schema: Schema both instances belong to.
        base: Starting data. Never mutated.
        updates: Partial data. Absent keys keep the base value.
        array_strategy: "replace" swaps arrays wholesale, "append" concatenates
            base items then update items.

    Raises:
        ValueError: If array_strategy is not "replace" or "append".
    """
    if array_strategy not in ("replace", "append"):
        raise ValueError(f"Unknown array strategy: {array_strategy!r}")

    base_record = _as_mapping(base)
    update_record = _as_mapping(updates)
    result = _merge_definition(schema.get_definition(), base_record, update_record, array_strategy)
    logger.debug(
        f"Merged {len(update_record)} update key(s) into schema '{schema.options.name}' data"
    )
    return result


def _merge_definition(
    definition: SchemaDefinition,
    base: Mapping[str, Any],
    updates: Mapping[str, Any],
    array_strategy: ArrayStrategy,
) -> dict[str, Any]:
    result = dict(base)
    for key, schema_field in definition.items():
        merged = _merge_field(schema_field, base.get(key), updates.get(key), array_strategy)
        # Keys absent on both sides stay absent
        if merged is None and key not in base:
            continue
        result[key] = merged
    return result


def _merge_field(
    schema_field: FieldDefinition,
    base_value: Any,
    update_value: Any,
    array_strategy: ArrayStrategy,
) -> Any:
    if update_value is None:
        return base_value

    if isinstance(schema_field, ArrayField):
        if not isinstance(base_value, (list, tuple)):
            return list(update_value) if isinstance(update_value, (list, tuple)) else update_value
        if not isinstance(update_value, (list, tuple)):
            return base_value
        if array_strategy == "append":
            return [*base_value, *update_value]
        return list(update_value)

    if isinstance(schema_field, ObjectField):
        if not isinstance(update_value, Mapping):
            return base_value
        return _merge_definition(
            schema_field.shape, _as_mapping(base_value), update_value, array_strategy
        )

    return update_value


# --- Search ---


def _contains(source: str, query: str, case_sensitive: bool) -> bool:
    if case_sensitive:
        return query in source
    return query.lower() in source.lower()


def build_excerpt(value: str, query: str, case_sensitive: bool = False) -> str:
    """Cut a window around the first match, marking truncated ends with an ellipsis."""
    config = get_config()
    haystack = value if case_sensitive else value.lower()
    needle = query if case_sensitive else query.lower()
    index = haystack.find(needle)
    if index == -1:
        return value[: config.excerpt_fallback_length]

    start = max(index - config.excerpt_context, 0)
    end = min(index + len(query) + config.excerpt_context, len(value))
    prefix = "…" if start > 0 else ""
    suffix = "…" if end < len(value) else ""
    return f"{prefix}{value[start:end]}{suffix}"


def search_schema_data(
    schema: "Schema",
    data: Any,
    query: str,
    case_sensitive: bool = False,
    match_markdown: bool = True,
    limit: int | None = None,
) -> list[SearchResult]:
    """Find text, enum, entity and markdown values containing query.

    The limit is checked after each top-level field and applied to the final
    list, so a single deep field may overshoot before truncation.
    """
    results: list[SearchResult] = []
    if not query.strip():
        return results

    record = _as_mapping(data)
    for key, schema_field in schema.get_definition().items():
        for leaf, value, path in _walk_leaves({key: schema_field}, record):
            if isinstance(leaf, (TextField, EntityField, EnumField)) or (
                isinstance(leaf, MarkdownField) and match_markdown
            ):
                text_value = str(value)
                if _contains(text_value, query, case_sensitive):
                    results.append(
                        SearchResult(
                            path=path,
                            value=value,
                            excerpt=build_excerpt(text_value, query, case_sensitive),
                        )
                    )
        if limit and len(results) >= limit:
            break

    logger.debug(f"Search for {query!r} in schema '{schema.options.name}': {len(results)} hit(s)")
    return results[:limit] if limit else results


# --- Extraction ---


def extract_entities(
    schema: "Schema",
    data: Any,
    entity_type: str | None = None,
) -> list[EntityRecord]:
    """Collect entity references in document order."""
    return [
        EntityRecord(path=path, type=leaf.entity_type, value=str(value))
        for leaf, value, path in _walk_leaves(schema.get_definition(), data)
        if isinstance(leaf, EntityField) and (not entity_type or leaf.entity_type == entity_type)
    ]


def collect_markdown_fields(schema: "Schema", data: Any) -> list[MarkdownFieldRecord]:
    """Collect markdown values with their field descriptors, in document order."""
    return [
        MarkdownFieldRecord(path=path, value=str(value), field=leaf)
        for leaf, value, path in _walk_leaves(schema.get_definition(), data)
        if isinstance(leaf, MarkdownField)
    ]


def validate_schema_data(schema: "Schema", data: Any) -> ParseResult[dict[str, Any]]:
    """Re-run validation on data, e.g. after a merge."""
    return schema.safe_parse(data)
