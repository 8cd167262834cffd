"""Label normalization plus taxonomy and field-label resolution."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Sequence, Tuple

from .types import FormType

_DISALLOWED_RE = re.compile(r"[^a-z0-9 ]")
_WHITESPACE_RE = re.compile(r"\s+")

TaxonomyEntry = Tuple[str, str, FormType]


def normalize_label(value: object) -> str:
    """Lowercase, keep only ``[a-z0-9 ]``, collapse whitespace and trim."""
    if value is None:
        return ""
    text = _WHITESPACE_RE.sub(" ", str(value).lower())
    text = _DISALLOWED_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_field_label(value: object) -> str:
    """Like :func:`normalize_label`, but underscores separate words."""
    if value is None:
        return ""
    return normalize_label(str(value).replace("_", " "))


def resolve_form_type(
    category: Optional[str],
    subcategory: Optional[str],
    entries: Sequence[TaxonomyEntry],
) -> Optional[FormType]:
    """Map a (category, subcategory) pair to a form type, or None.

    Exact lookup first; then both sides are normalized and the first
    declared entry that compares equal wins.
    """
    if not category or not subcategory:
        return None
    for declared_category, declared_sub, form_type in entries:
        if declared_category == category and declared_sub == subcategory:
            return form_type

    wanted = (normalize_label(category), normalize_label(subcategory))
    if not wanted[0] or not wanted[1]:
        return None
    for declared_category, declared_sub, form_type in entries:
        if (normalize_label(declared_category), normalize_label(declared_sub)) == wanted:
            return form_type
    return None


def resolve_field(raw_label: object, aliases: Iterable[Tuple[str, str]]) -> Optional[str]:
    """Resolve one extracted label to a canonical key using the alias table.

    Tiers, first success wins:
      1. exact string match on an alias key
      2. normalized match
      3. substring containment either way between normalized forms,
         scanned in declaration order
    """
    if raw_label is None:
        return None
    table = tuple(aliases)
    label = str(raw_label)

    for alias, key in table:
        if alias == label:
            return key

    normalized = normalize_field_label(label)
    if not normalized:
        return None

    normalized_table = [(normalize_field_label(alias), key) for alias, key in table]
    for alias_norm, key in normalized_table:
        if alias_norm == normalized:
            return key

    for alias_norm, key in normalized_table:
        if not alias_norm:
            continue
        if alias_norm in normalized or normalized in alias_norm:
            return key
    return None
