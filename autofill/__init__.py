"""Document-extraction auto-fill resolution package."""

from .coercion import REJECTED, CoercionContext, coerce_value, register_validator
from .core import normalize_field_label, normalize_label, resolve_field, resolve_form_type
from .merge import is_empty, merge_candidates
from .session import AutoFillSession, FormAutoFill, HighlightTracker, SessionState
from .types import DropdownOption, FieldKind, FieldSpec, FormDefinition, FormType, ResolvedField

__all__ = [
    "REJECTED",
    "AutoFillSession",
    "CoercionContext",
    "DropdownOption",
    "FieldKind",
    "FieldSpec",
    "FormAutoFill",
    "FormDefinition",
    "FormType",
    "HighlightTracker",
    "ResolvedField",
    "SessionState",
    "coerce_value",
    "is_empty",
    "merge_candidates",
    "normalize_field_label",
    "normalize_label",
    "register_validator",
    "resolve_field",
    "resolve_form_type",
]
