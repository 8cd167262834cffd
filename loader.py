"""Loader utilities for form-definition and taxonomy YAML files."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import yaml

from autofill.types import FieldKind, FieldSpec, FormDefinition, FormType

PACKAGE_ROOT = Path(__file__).resolve().parent
FORMS_DIR = Path(os.getenv("FORMS_DIR") or PACKAGE_ROOT / "forms")
TAXONOMY_PATH = Path(os.getenv("TAXONOMY_PATH") or PACKAGE_ROOT / "config" / "taxonomy.yaml")

TaxonomyEntry = Tuple[str, str, FormType]


def _load_yaml_file(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _parse_field(key: Any, raw: Any, source: str) -> FieldSpec:
    if isinstance(raw, str):
        raw = {"kind": raw}
    if not isinstance(raw, Mapping):
        raise ValueError(f"{source}: field {key!r} must be a kind name or a mapping")
    try:
        kind = FieldKind(str(raw.get("kind", "")).strip().lower())
    except ValueError as exc:
        raise ValueError(f"{source}: field {key!r} has unknown kind {raw.get('kind')!r}") from exc
    return FieldSpec(
        key=str(key),
        kind=kind,
        non_negative=bool(raw.get("non_negative", False)),
        fuzzy=bool(raw.get("fuzzy", False)),
    )


def parse_form_definition(raw: Any, source: str = "<memory>") -> FormDefinition:
    """Validate one form-definition payload and build its immutable definition."""
    if not isinstance(raw, Mapping):
        raise ValueError(f"Form definition must be a mapping: {source}")
    form_type = FormType.parse(raw.get("form_type"))
    if form_type is None:
        raise ValueError(f"{source}: unknown form_type {raw.get('form_type')!r}")

    raw_fields = raw.get("fields") or {}
    if not isinstance(raw_fields, Mapping) or not raw_fields:
        raise ValueError(f"{source}: 'fields' must be a non-empty mapping")
    fields = tuple(_parse_field(key, spec, source) for key, spec in raw_fields.items())
    declared = {spec.key for spec in fields}

    raw_aliases = raw.get("aliases") or {}
    if not isinstance(raw_aliases, Mapping):
        raise ValueError(f"{source}: 'aliases' must be a mapping of label -> field key")
    aliases: List[Tuple[str, str]] = []
    for label, key in raw_aliases.items():
        if str(key) not in declared:
            raise ValueError(f"{source}: alias {label!r} targets undeclared field {key!r}")
        aliases.append((str(label), str(key)))

    return FormDefinition(
        form_type=form_type,
        label=str(raw.get("label") or form_type.value),
        fields=fields,
        aliases=tuple(aliases),
        source=source,
    )


@lru_cache(maxsize=4)
def load_form_definitions(forms_dir: Path | str | None = None) -> Dict[FormType, FormDefinition]:
    """Load every ``*.yaml`` form definition in the directory."""
    directory = Path(forms_dir) if forms_dir else FORMS_DIR
    if not directory.exists():
        raise FileNotFoundError(f"Form definitions directory not found: {directory}")

    definitions: Dict[FormType, FormDefinition] = {}
    for path in sorted(directory.glob("*.yaml")):
        definition = parse_form_definition(_load_yaml_file(path), source=path.name)
        if definition.form_type in definitions:
            other = definitions[definition.form_type].source
            raise ValueError(f"Duplicate form_type {definition.form_type.value!r} in {path.name} and {other}")
        definitions[definition.form_type] = definition
    if not definitions:
        raise ValueError(f"No form definition files found in {directory}")
    return definitions


def parse_taxonomy(raw: Any, source: str = "<memory>") -> List[TaxonomyEntry]:
    """Flatten ``{category: {subcategory: form_type}}`` keeping declaration order."""
    categories = raw.get("categories") if isinstance(raw, Mapping) else None
    if not isinstance(categories, Mapping):
        raise ValueError(f"Taxonomy must contain a 'categories' mapping: {source}")

    entries: List[TaxonomyEntry] = []
    for category, subcategories in categories.items():
        if not isinstance(subcategories, Mapping):
            raise ValueError(f"{source}: category {category!r} must map subcategories to form types")
        for subcategory, form_name in subcategories.items():
            form_type = FormType.parse(form_name)
            if form_type is None:
                raise ValueError(f"{source}: {category!r}/{subcategory!r} maps to unknown form type {form_name!r}")
            entries.append((str(category), str(subcategory), form_type))
    return entries


@lru_cache(maxsize=4)
def load_taxonomy(taxonomy_path: Path | str | None = None) -> Tuple[TaxonomyEntry, ...]:
    """Load the category/subcategory taxonomy as an ordered tuple of entries."""
    path = Path(taxonomy_path) if taxonomy_path else TAXONOMY_PATH
    if not path.exists():
        raise FileNotFoundError(f"Taxonomy file not found: {path}")
    return tuple(parse_taxonomy(_load_yaml_file(path), source=path.name))


def reload_caches() -> None:
    """Clear cached loaders (useful for tests)."""
    load_form_definitions.cache_clear()
    load_taxonomy.cache_clear()
