"""Recursive parse engine.

Walks a schema definition against an input value and collects every issue
instead of stopping at the first one:

  - missing/None value, optional field with default -> default applied
  - missing/None value, optional field              -> key omitted
  - missing/None value, required field              -> "required" issue
  - present value                                   -> field.parse, issues appended
  - unknown key in strict mode                      -> "invalid_type" issue

Array and object fields call back into parse_definition for their nested
definitions, so issues from every depth land in one flat list ordered by
field declaration, depth first.
"""

import json
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from llm_schema.schema.types import (
    ParseFailure,
    ParseResult,
    ParseSuccess,
    SchemaOptions,
    append_path,
    make_issue,
    type_name,
)

if TYPE_CHECKING:
    from llm_schema.schema.fields import SchemaDefinition


def parse_definition(
    definition: "SchemaDefinition",
    value: Any,
    path: list[str],
    strict: bool = False,
) -> ParseResult[dict[str, Any]]:
    """Parse a value against a schema definition at the given path.

    Args:
        definition: Mapping of field name to field descriptor.
        value: Untrusted input. Must be a mapping to succeed.
        path: Path prefix of this definition relative to the schema root.
        strict: Report keys not declared in the definition.

    Returns:
        ParseSuccess with the assembled output dict, or ParseFailure with all
        collected issues.
    """
    if not isinstance(value, Mapping):
        return ParseFailure(
            issues=[make_issue(path, "Expected object value", "invalid_type", "object", type_name(value))]
        )

    output: dict[str, Any] = {}
    issues = []

    for key, field in definition.items():
        field_path = append_path(path, key)
        raw = value.get(key)

        # --- Absent values ---
        # Trigger: key missing or explicitly None
        # Why: LLM output uses null and omission interchangeably
        # Outcome: default applied, key omitted, or a "required" issue
        if raw is None:
            if field.optional:
                if field.has_default:
                    output[key] = field.default_value()
                continue
            issues.append(make_issue(field_path, "Field is required", "required"))
            continue

        result = field.parse(raw, field_path)
        if result.success:
            output[key] = result.data
        else:
            issues.extend(result.issues)

    # --- Unknown keys ---
    # Non-strict definitions ignore extras; LLMs often add helpful fields
    if strict:
        for key in value:
            if key not in definition:
                issues.append(
                    make_issue(
                        append_path(path, key),
                        "Unexpected field",
                        "invalid_type",
                        "undeclared",
                        type_name(value[key]),
                    )
                )

    if issues:
        return ParseFailure(issues=issues)

    return ParseSuccess(output)


def normalize_input(value: Any) -> ParseResult[Mapping[str, Any]]:
    """Accept a mapping as-is or decode a JSON document into one."""
    if isinstance(value, (str, bytes, bytearray)):
        try:
            value = json.loads(value)
        except (ValueError, RecursionError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            received = value if isinstance(value, str) else bytes(value).decode("utf-8", "replace")
            return ParseFailure(
                issues=[
                    make_issue(
                        [],
                        f"Failed to parse JSON input: {e}",
                        "invalid_format",
                        "json_object",
                        received,
                    )
                ]
            )

    if not isinstance(value, Mapping):
        return ParseFailure(
            issues=[make_issue([], "Expected object input", "invalid_type", "object", type_name(value))]
        )

    return ParseSuccess(value)


def parse_root(
    definition: "SchemaDefinition",
    value: Any,
    options: SchemaOptions,
) -> ParseResult[dict[str, Any]]:
    """Normalize raw input and parse it at the schema root."""
    normalized = normalize_input(value)
    if not normalized.success:
        logger.debug(f"Rejected input for schema '{options.name}': {normalized.issues[0].message}")
        return normalized

    result = parse_definition(definition, normalized.data, [], strict=options.strict)
    if result.success:
        logger.debug(f"Parsed input for schema '{options.name}'")
    else:
        logger.debug(f"Schema '{options.name}' rejected input with {len(result.issues)} issue(s)")
    return result
