"""In-memory registry of form definitions and the document taxonomy."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from autofill.core import resolve_form_type
from autofill.types import FormDefinition, FormType
from loader import TaxonomyEntry, load_form_definitions, load_taxonomy


class FormRegistry:
    """Indexes form definitions by form type and answers taxonomy lookups."""

    def __init__(
        self,
        definitions: Iterable[FormDefinition] | None = None,
        taxonomy: Iterable[TaxonomyEntry] | None = None,
    ) -> None:
        if definitions is None:
            definitions = load_form_definitions().values()
        self._definitions: Dict[FormType, FormDefinition] = {d.form_type: d for d in definitions}
        self._taxonomy: Tuple[TaxonomyEntry, ...] = tuple(taxonomy) if taxonomy is not None else load_taxonomy()

    @property
    def form_types(self) -> Sequence[FormType]:
        return tuple(self._definitions.keys())

    @property
    def taxonomy(self) -> Tuple[TaxonomyEntry, ...]:
        return self._taxonomy

    def definitions(self) -> List[FormDefinition]:
        return list(self._definitions.values())

    def get(self, form_type: FormType | str | None) -> Optional[FormDefinition]:
        parsed = FormType.parse(form_type) if form_type is not None else None
        if parsed is None:
            return None
        return self._definitions.get(parsed)

    def resolve_form_type(self, category: Optional[str], subcategory: Optional[str]) -> Optional[FormType]:
        """Map classifier labels to a form type that has a definition."""
        form_type = resolve_form_type(category, subcategory, self._taxonomy)
        if form_type is None or form_type not in self._definitions:
            return None
        return form_type


def build_default_registry(
    forms_dir: Path | str | None = None,
    taxonomy_path: Path | str | None = None,
) -> FormRegistry:
    """Construct a registry using on-disk YAML configuration."""
    return FormRegistry(
        definitions=load_form_definitions(forms_dir).values(),
        taxonomy=load_taxonomy(taxonomy_path),
    )
