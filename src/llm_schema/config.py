"""Configuration for llm-schema.

Settings come from the environment with the LLM_SCHEMA_ prefix, e.g.
LLM_SCHEMA_LOG_LEVEL=DEBUG or LLM_SCHEMA_EXCERPT_CONTEXT=40.
"""

import sys
from functools import lru_cache

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSchemaConfig(BaseSettings):
    """Runtime settings for parsing and transforms."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_SCHEMA_",
        extra="ignore",
    )

    log_level: str = Field(default="WARNING", description="Level for the stderr log sink")

    excerpt_context: int = Field(
        default=30,
        ge=0,
        description="Characters of context on each side of a search match",
    )

    excerpt_fallback_length: int = Field(
        default=160,
        ge=1,
        description="Excerpt length when the match position cannot be located",
    )

    max_definition_depth: int = Field(
        default=32,
        ge=1,
        description="Deepest nesting allowed when walking a schema definition",
    )


@lru_cache(maxsize=1)
def get_config() -> LLMSchemaConfig:
    """Return the process-wide config, read from the environment once."""
    return LLMSchemaConfig()


def reset_config() -> None:
    """Forget the cached config so the environment is read again."""
    get_config.cache_clear()


def init_logging(config: LLMSchemaConfig | None = None) -> None:
    """Route llm-schema logs to stderr at the configured level.

    Importing llm_schema configures nothing; applications call this when
    they want its output.
    """
    config = config or get_config()
    logger.remove()
    logger.add(sys.stderr, level=config.log_level.upper())
    logger.debug(f"llm-schema logging initialized at {config.log_level.upper()}")
