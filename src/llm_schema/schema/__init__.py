"""Schema engine for llm-schema.

Field descriptors describe a tree-shaped data model; the parse engine checks
untrusted input against it and reports every problem in one pass; transforms
(diff, merge, search, entity and markdown extraction) re-walk the same tree.
"""

from llm_schema.schema.builder import Schema, define_schema
from llm_schema.schema.errors import LLMSchemaError, SchemaDefinitionError, SchemaError
from llm_schema.schema.fields import (
    ArrayField,
    BaseField,
    BooleanField,
    DateField,
    EntityField,
    EnumField,
    FieldDefinition,
    MarkdownField,
    NumberField,
    ObjectField,
    SchemaDefinition,
    TextField,
    array,
    boolean,
    date,
    entity,
    enum_type,
    markdown,
    md,
    number,
    object_field,
    text,
)
from llm_schema.schema.introspection import check_definition, iter_fields
from llm_schema.schema.transform import (
    DiffChange,
    DiffResult,
    EntityRecord,
    MarkdownFieldRecord,
    SearchResult,
    validate_schema_data,
)
from llm_schema.schema.types import (
    FIELD_KINDS,
    FieldKind,
    IssueCode,
    ParseFailure,
    ParseIssue,
    ParseResult,
    ParseSuccess,
    SchemaOptions,
    format_path,
)

__all__ = [
    # Builder
    "Schema",
    "define_schema",
    # Errors
    "LLMSchemaError",
    "SchemaDefinitionError",
    "SchemaError",
    # Fields
    "ArrayField",
    "BaseField",
    "BooleanField",
    "DateField",
    "EntityField",
    "EnumField",
    "FieldDefinition",
    "MarkdownField",
    "NumberField",
    "ObjectField",
    "SchemaDefinition",
    "TextField",
    "array",
    "boolean",
    "date",
    "entity",
    "enum_type",
    "markdown",
    "md",
    "number",
    "object_field",
    "text",
    # Introspection
    "check_definition",
    "iter_fields",
    # Transforms
    "DiffChange",
    "DiffResult",
    "EntityRecord",
    "MarkdownFieldRecord",
    "SearchResult",
    "validate_schema_data",
    # Types
    "FIELD_KINDS",
    "FieldKind",
    "IssueCode",
    "ParseFailure",
    "ParseIssue",
    "ParseResult",
    "ParseSuccess",
    "SchemaOptions",
    "format_path",
]
