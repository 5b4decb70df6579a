"""
Context Module for the RadioCare chatbot.

This module provides:
- The reloadable context catalog (system prompts, keywords)
- Context selection (LLM with keyword fallback)
- Reply severity classification
"""

from .catalog import (
    ContextCatalog,
    ContextDefinition,
    CatalogSnapshot,
    ValidationResult,
    DEFAULT_CONTEXT_KEY,
    INSURANCE_CONTEXT_KEY,
)
from .severity import Severity, classify_severity
from .selector import ContextSelector, ContextSelection, fallback_context_selection

__all__ = [
    "ContextCatalog",
    "ContextDefinition",
    "CatalogSnapshot",
    "ValidationResult",
    "DEFAULT_CONTEXT_KEY",
    "INSURANCE_CONTEXT_KEY",
    "Severity",
    "classify_severity",
    "ContextSelector",
    "ContextSelection",
    "fallback_context_selection",
]
