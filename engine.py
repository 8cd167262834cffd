"""Auto-fill resolution engine: extraction result in, safe form writes out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from autofill.coercion import REJECTED, CoercionContext, coerce_value
from autofill.core import resolve_field
from autofill.merge import merge_candidates
from autofill.types import (
    DropdownOption,
    DropdownOptionSets,
    FieldKind,
    FormDefinition,
    FormType,
    ResolvedField,
)
from registry import FormRegistry, build_default_registry

logger = logging.getLogger(__name__)

ReadValues = Callable[[], Mapping[str, Any]]
WriteValue = Callable[[str, Any], None]


class AutoFillError(Exception):
    """Raised when the engine is asked for a form type it has no schema for."""


def format_populated_message(count: int) -> str:
    return f"Populated {count} field(s) from document analysis."


@dataclass(frozen=True)
class AutoFillResult:
    form_type: Optional[FormType]
    resolved: Tuple[ResolvedField, ...] = ()
    writes: Dict[str, Any] = field(default_factory=dict)
    written_keys: frozenset = field(default_factory=frozenset)

    @property
    def populated_count(self) -> int:
        return len(self.written_keys)

    @property
    def message(self) -> Optional[str]:
        if not self.populated_count:
            return None
        return format_populated_message(self.populated_count)

    @classmethod
    def skipped(cls) -> "AutoFillResult":
        return cls(form_type=None)


def _option_set(raw: Sequence[Any] | None, field_key: str) -> Tuple[DropdownOption, ...]:
    if not raw:
        return ()
    options: List[DropdownOption] = []
    for item in raw:
        try:
            options.append(DropdownOption.from_value(item))
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed dropdown option %r for field %s", item, field_key)
    return tuple(options)


class AutoFillEngine:
    """Reconcile extraction output against per-form-type schemas."""

    def __init__(
        self,
        registry: Optional[FormRegistry] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.registry = registry or build_default_registry()
        self._clock = clock

    def resolve_form_type(self, category: Optional[str], subcategory: Optional[str]) -> Optional[FormType]:
        form_type = self.registry.resolve_form_type(category, subcategory)
        if form_type is None:
            logger.info("No form type for category=%r subcategory=%r; skipping auto-fill", category, subcategory)
        return form_type

    def definition(self, form_type: FormType | str) -> FormDefinition:
        definition = self.registry.get(form_type)
        if definition is None:
            raise AutoFillError(f"No form definition for form type {form_type!r}")
        return definition

    def resolve_fields(
        self,
        form_type: FormType | str,
        extraction: Any,
        dropdown_options: DropdownOptionSets | None = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[ResolvedField]:
        """Map, coerce and validate every extracted entry; pure.

        Unresolvable labels and invalid values are dropped. When several
        labels land on one key, the first one that validates wins.
        """
        definition = self.definition(form_type)
        if not isinstance(extraction, Mapping):
            logger.warning("Extraction result for %s is not a mapping; nothing to resolve", definition.form_type.value)
            return []
        now = now or self._clock()
        dropdown_options = dropdown_options or {}

        accepted: Dict[str, ResolvedField] = {}
        for raw_label, raw_value in extraction.items():
            key = resolve_field(raw_label, definition.aliases)
            if key is None:
                logger.debug("Unmapped label %r for %s", raw_label, definition.form_type.value)
                continue
            if key in accepted:
                continue
            spec = definition.field_spec(key)
            if spec is None:
                continue
            options = _option_set(dropdown_options.get(key), key) if spec.kind is FieldKind.ENUM else ()
            value = coerce_value(raw_value, spec, CoercionContext(now=now, options=options))
            if value is REJECTED:
                continue
            accepted[key] = ResolvedField(key=key, value=value, source_label=str(raw_label))
        return list(accepted.values())

    def plan(
        self,
        form_type: FormType | str,
        extraction: Any,
        snapshot: Mapping[str, Any],
        *,
        dropdown_options: DropdownOptionSets | None = None,
        overwrite: bool = False,
        now: Optional[datetime] = None,
    ) -> AutoFillResult:
        """Compute the writes for one session without touching any form."""
        definition = self.definition(form_type)
        resolved = self.resolve_fields(definition.form_type, extraction, dropdown_options, now=now)
        merged = merge_candidates(snapshot or {}, resolved, overwrite=overwrite)
        return AutoFillResult(
            form_type=definition.form_type,
            resolved=tuple(resolved),
            writes=merged.writes,
            written_keys=merged.written_keys,
        )

    def apply(
        self,
        form_type: FormType | str,
        extraction: Any,
        read_values: ReadValues,
        write_value: WriteValue,
        *,
        dropdown_options: DropdownOptionSets | None = None,
        overwrite: bool = False,
        now: Optional[datetime] = None,
    ) -> AutoFillResult:
        """Resolve, read the form once, merge, then write through the setter."""
        definition = self.definition(form_type)
        resolved = self.resolve_fields(definition.form_type, extraction, dropdown_options, now=now)
        snapshot = read_values() or {}
        merged = merge_candidates(snapshot, resolved, overwrite=overwrite)
        for key, value in merged.writes.items():
            write_value(key, value)
        logger.info(
            "Auto-fill %s: %d resolved, %d written",
            definition.form_type.value,
            len(resolved),
            len(merged.writes),
        )
        return AutoFillResult(
            form_type=definition.form_type,
            resolved=tuple(resolved),
            writes=merged.writes,
            written_keys=merged.written_keys,
        )

    def autofill(
        self,
        extraction: Any,
        read_values: ReadValues,
        write_value: WriteValue,
        *,
        form_type: FormType | str | None = None,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        dropdown_options: DropdownOptionSets | None = None,
        overwrite: bool = False,
        now: Optional[datetime] = None,
    ) -> AutoFillResult:
        """Full pipeline; an unresolvable form type skips auto-fill entirely."""
        resolved_type = FormType.parse(form_type) if form_type is not None else None
        if form_type is not None and resolved_type is None:
            raise AutoFillError(f"Unknown form type {form_type!r}")
        if resolved_type is None:
            resolved_type = self.resolve_form_type(category, subcategory)
        if resolved_type is None:
            return AutoFillResult.skipped()
        return self.apply(
            resolved_type,
            extraction,
            read_values,
            write_value,
            dropdown_options=dropdown_options,
            overwrite=overwrite,
            now=now,
        )


# Initialize a singleton engine for application use.
autofill_engine = AutoFillEngine()
