"""Reflective walks over schema definitions.

Parsing recurses with the input, so it always terminates. Tools that walk the
schema on its own (prompt renderers, exporters, the definition check in
define_schema) have no input to bound them and must guard against cycles and
runaway depth themselves.
"""

from collections.abc import Iterator, Mapping

from loguru import logger

from llm_schema.schema.errors import SchemaDefinitionError
from llm_schema.schema.fields import (
    ArrayField,
    BaseField,
    FieldDefinition,
    ObjectField,
    SchemaDefinition,
)


def nested_definition(field: FieldDefinition) -> SchemaDefinition | None:
    """Return the sub-definition of an array or object field, else None."""
    if isinstance(field, ArrayField):
        return field.item_definition
    if isinstance(field, ObjectField):
        return field.shape
    return None


def iter_fields(
    definition: Mapping[str, FieldDefinition],
    max_depth: int = 32,
) -> Iterator[tuple[list[str], FieldDefinition]]:
    """Yield (path, field) for every field in declaration order, depth first.

    Array items contribute no index segment: the path names the schema
    position, not a data position.

    Raises:
        SchemaDefinitionError: On a cyclic definition or one nested deeper
            than max_depth.
    """
    yield from _walk(definition, [], max_depth, active=set())


def _walk(
    definition: Mapping[str, FieldDefinition],
    path: list[str],
    max_depth: int,
    active: set[int],
) -> Iterator[tuple[list[str], FieldDefinition]]:
    if id(definition) in active:
        raise SchemaDefinitionError(f"Schema definition is cyclic at '{'.'.join(path)}'")
    if len(path) > max_depth:
        raise SchemaDefinitionError(
            f"Schema definition exceeds maximum depth {max_depth} at '{'.'.join(path)}'"
        )

    active.add(id(definition))
    try:
        for name, field in definition.items():
            field_path = [*path, name]
            yield field_path, field
            nested = nested_definition(field)
            if nested is not None:
                yield from _walk(nested, field_path, max_depth, active)
    finally:
        active.discard(id(definition))


def check_definition(definition: object, max_depth: int = 32) -> None:
    """Verify a definition is a well-formed, acyclic tree of field descriptors.

    Raises:
        SchemaDefinitionError: Describing the first problem found.
    """
    if not isinstance(definition, Mapping):
        raise SchemaDefinitionError(
            f"Schema definition must be a mapping, got {type(definition).__name__}"
        )

    _check_level("<root>", definition)
    for path, field in iter_fields(definition, max_depth):
        nested = nested_definition(field)
        if nested is not None:
            _check_level(".".join(path), nested)

    logger.trace(f"Checked schema definition with {len(definition)} top-level fields")


def _check_level(location: str, definition: Mapping[str, object]) -> None:
    for name, field in definition.items():
        if not isinstance(name, str):
            logger.warning(f"Non-string field name {name!r} in schema at '{location}'")
            raise SchemaDefinitionError(f"Field names must be strings, got {name!r} at '{location}'")
        if not isinstance(field, BaseField):
            logger.warning(f"Field '{name}' at '{location}' is not a field descriptor")
            raise SchemaDefinitionError(
                f"Field '{name}' at '{location}' must be a field descriptor, "
                f"got {type(field).__name__}"
            )
