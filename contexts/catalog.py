"""
Context Catalog for the RadioCare chatbot.

Loads the response contexts (display name, description, keywords and
system prompt per context key) from a JSON resource and serves them as an
immutable snapshot. A reload builds a fresh snapshot and swaps it in, so a
reader holding the previous snapshot keeps seeing a consistent catalog.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

METADATA_PREFIX = "_"
DEFAULT_CONTEXT_KEY = "general_medical"
INSURANCE_CONTEXT_KEY = "insurance_coverage"
REQUIRED_FIELDS = ("name", "description", "system_prompt")


@dataclass(frozen=True)
class ContextDefinition:
    """A single response context."""
    key: str
    name: str
    description: str
    keywords: Tuple[str, ...]
    system_prompt: str

    def to_summary(self) -> Dict[str, Any]:
        """Public view of the context (no system prompt)."""
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "keywords": list(self.keywords),
        }


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable view of the catalog at one point in time."""
    version: int
    contexts: Mapping[str, ContextDefinition]
    source: str
    is_fallback: bool = False
    info: Mapping[str, Any] = field(default_factory=dict)
    loaded_at: datetime = field(default_factory=datetime.utcnow)

    def get(self, key: str) -> Optional[ContextDefinition]:
        return self.contexts.get(key)

    def resolve(self, key: str) -> ContextDefinition:
        """Return the context for ``key``, or the default context."""
        definition = self.contexts.get(key)
        if definition is not None:
            return definition
        return self.contexts.get(DEFAULT_CONTEXT_KEY) or _builtin_general_medical()

    def keys(self) -> List[str]:
        return list(self.contexts.keys())

    def keyword_table(self) -> List[Tuple[str, Tuple[str, ...]]]:
        """(key, keywords) pairs in declaration order."""
        return [(key, ctx.keywords) for key, ctx in self.contexts.items()]

    def summaries(self) -> List[Dict[str, Any]]:
        return [ctx.to_summary() for ctx in self.contexts.values()]


@dataclass
class ValidationResult:
    """Outcome of a catalog validation pass."""
    valid: bool
    errors: List[str]
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.valid,
            "errors": list(self.errors),
            "contextCount": self.count,
        }


def _builtin_general_medical() -> ContextDefinition:
    return ContextDefinition(
        key=DEFAULT_CONTEXT_KEY,
        name="General Medical Support",
        description="General radiotherapy counseling",
        keywords=(),
        system_prompt=(
            "You are an experienced and compassionate radiotherapy counseling assistant.\n\n"
            "Your job is to:\n"
            "- Understand and respond to patients undergoing radiotherapy treatment.\n"
            "- Offer advice in a warm, conversational tone like a supportive medical counselor.\n"
            "- When symptoms indicate something concerning, kindly suggest seeking medical help.\n"
            "- Offer relevant guidance, home remedies, and radiotherapy-related tips.\n"
            "- Avoid diagnosis. Always include a soft disclaimer."
        ),
    )


def parse_catalog(raw: Mapping[str, Any]) -> Tuple[Dict[str, ContextDefinition], Dict[str, Any], List[str]]:
    """
    Split a raw catalog document into context definitions and metadata.

    Returns:
        Tuple of (contexts, metadata, structural errors)
    """
    contexts: Dict[str, ContextDefinition] = {}
    metadata: Dict[str, Any] = {}
    errors: List[str] = []

    for key, value in raw.items():
        if key.startswith(METADATA_PREFIX):
            metadata[key] = value
            continue
        if not isinstance(value, dict):
            errors.append(f"Context '{key}' must be an object")
            continue

        keywords = value.get("keywords") or []
        contexts[key] = ContextDefinition(
            key=key,
            name=str(value.get("name") or ""),
            description=str(value.get("description") or ""),
            keywords=tuple(str(k).lower() for k in keywords),
            system_prompt=str(value.get("system_prompt") or ""),
        )

    return contexts, metadata, errors


class ContextCatalog:
    """
    Reloadable catalog of response contexts.

    ``load()`` returns the cached snapshot's contexts, reading the resource
    on first use. A missing or unreadable resource never propagates: the
    catalog degrades to a single built-in ``general_medical`` context.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self._snapshot: Optional[CatalogSnapshot] = None
        self._version = 0
        self._structural_errors: List[str] = []

    @property
    def snapshot(self) -> CatalogSnapshot:
        """Current snapshot (loads on first access)."""
        if self._snapshot is None:
            self._snapshot = self._read()
        return self._snapshot

    def load(self) -> Mapping[str, ContextDefinition]:
        """Return the context mapping of the current snapshot."""
        return self.snapshot.contexts

    def reload(self) -> bool:
        """
        Re-read the catalog resource and swap in the new snapshot.

        A failed re-read keeps the previous snapshot in service.

        Returns:
            True if the resource was read successfully
        """
        fresh = self._read()
        if fresh.is_fallback and self._snapshot is not None:
            logger.error(f"Context reload failed, keeping catalog v{self._snapshot.version}")
            return False

        self._snapshot = fresh
        logger.info(f"Context catalog reloaded: v{fresh.version} ({len(fresh.contexts)} contexts)")
        return not fresh.is_fallback

    def validate(self, snapshot: Optional[CatalogSnapshot] = None) -> ValidationResult:
        """
        Check that every context carries a name, description and system prompt.

        Keyword lists are not checked. Results are reported, never raised.
        """
        snap = snapshot or self.snapshot
        errors: List[str] = []
        if snap is self._snapshot:
            errors.extend(self._structural_errors)

        for key, ctx in snap.contexts.items():
            for field_name in REQUIRED_FIELDS:
                if not getattr(ctx, field_name):
                    errors.append(f"Context '{key}' is missing required field: {field_name}")

        if snap.is_fallback:
            errors.append(f"Context catalog could not be loaded from {snap.source}")

        return ValidationResult(valid=not errors, errors=errors, count=len(snap.contexts))

    def _read(self) -> CatalogSnapshot:
        self._version += 1
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError("catalog root must be a JSON object")

            contexts, metadata, errors = parse_catalog(raw)
            if not contexts:
                raise ValueError("catalog defines no contexts")

            self._structural_errors = errors
            logger.info(f"Loaded {len(contexts)} contexts from {self.path}")
            return CatalogSnapshot(
                version=self._version,
                contexts=MappingProxyType(contexts),
                source=str(self.path),
                info=MappingProxyType(dict(metadata.get("_info") or {})),
            )

        except (OSError, ValueError) as e:
            logger.error(f"Failed to load context catalog from {self.path}: {e}")
            fallback = _builtin_general_medical()
            return CatalogSnapshot(
                version=self._version,
                contexts=MappingProxyType({fallback.key: fallback}),
                source=str(self.path),
                is_fallback=True,
            )
