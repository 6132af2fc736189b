"""Analysis, validation and apply pipeline."""

from .analyzer import Analyzer
from .applier import Applier, CommandResult
from .validation import validate_schema, validate_schema_with_fallback

__all__ = ["Analyzer", "Applier", "CommandResult", "validate_schema", "validate_schema_with_fallback"]
