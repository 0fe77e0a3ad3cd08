"""llm-schema - typed schemas for structured LLM output."""

from llm_schema.schema import *  # noqa: F401,F403
from llm_schema.schema import __all__ as _schema_all

__version__ = "0.1.0"

__all__ = [*_schema_all, "__version__"]
