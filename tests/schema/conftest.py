"""Pytest fixtures for schema tests."""

import pytest

from llm_schema.config import reset_config
from llm_schema.schema import (
    array,
    boolean,
    date,
    define_schema,
    entity,
    enum_type,
    md,
    number,
    object_field,
    text,
)


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Each test reads config from a clean environment."""
    for name in (
        "LLM_SCHEMA_LOG_LEVEL",
        "LLM_SCHEMA_EXCERPT_CONTEXT",
        "LLM_SCHEMA_EXCERPT_FALLBACK_LENGTH",
        "LLM_SCHEMA_MAX_DEFINITION_DEPTH",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def meeting_notes_schema():
    """Meeting notes schema covering every field kind."""
    return define_schema(
        {
            "title": text(description="Meeting title"),
            "summary": md(optional=True, max_length=2000),
            "actionItems": array(
                description="Action items with owners",
                schema={
                    "task": text(description="What to do"),
                    "owner": entity("person", description="Person responsible"),
                    "completed": boolean(default=False),
                },
            ),
            "priority": enum_type(["high", "medium", "low"], default="medium"),
            "durationMinutes": number(min=0, max=480, optional=True),
            "scheduledFor": date(optional=True),
            "venue": object_field(
                optional=True,
                schema={
                    "room": text(),
                    "host": entity("person", optional=True),
                    "notes": md(optional=True),
                },
            ),
        },
        name="MeetingNotes",
    )


@pytest.fixture
def todo_schema():
    """Small schema with a required title and defaulted nested booleans."""
    return define_schema(
        {
            "title": text(required=True),
            "items": array(
                schema={
                    "task": text(required=True),
                    "done": boolean(default=False),
                }
            ),
        }
    )
