"""Value types shared across the auto-fill pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

ExtractionResult = Mapping[str, Any]
OptionId = Union[int, str]


class FormType(str, Enum):
    """Closed set of form schemas that can receive auto-filled values."""

    PAPERS = "papers"
    JOURNAL_ARTICLES = "journal-articles"
    BOOKS = "books"
    RESEARCH = "research"
    PATENTS = "patents"
    POLICY = "policy"
    ECONTENT = "econtent"
    CONSULTANCY = "consultancy"
    COLLABORATIONS = "collaborations"
    VISITS = "visits"
    FINANCIAL = "financial"
    JRF_SRF = "jrf-srf"
    PHD = "phd"
    COPYRIGHTS = "copyrights"
    REFRESHER = "refresher"
    ACADEMIC_PROGRAMS = "academic-programs"
    ACADEMIC_BODIES = "academic-bodies"
    COMMITTEES = "committees"
    PERFORMANCE = "performance"
    AWARDS = "awards"
    EXTENSION = "extension"
    TALKS = "talks"
    ARTICLES = "articles"
    ACADEMIC_BOOKS = "academic-books"
    MAGAZINES = "magazines"
    TECHNICAL = "technical"

    @classmethod
    def parse(cls, value: Any) -> Optional["FormType"]:
        """Return the member for ``value`` or None when it names no form."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    ENUM = "enum"
    URL = "url"
    YEAR = "year"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class DropdownOption:
    id: OptionId
    name: str

    @classmethod
    def from_value(cls, value: Any) -> "DropdownOption":
        """Build an option from a mapping, a 2-tuple or an existing option."""
        if isinstance(value, DropdownOption):
            return value
        if isinstance(value, Mapping):
            return cls(id=value["id"], name=str(value.get("name") or ""))
        option_id, name = value
        return cls(id=option_id, name=str(name))


@dataclass(frozen=True)
class FieldSpec:
    """Declared kind of one canonical field plus kind-specific switches."""

    key: str
    kind: FieldKind
    non_negative: bool = False
    fuzzy: bool = False


@dataclass(frozen=True)
class FormDefinition:
    """Schema of one form type: its fields and its ordered alias table."""

    form_type: FormType
    label: str
    fields: Tuple[FieldSpec, ...]
    aliases: Tuple[Tuple[str, str], ...]
    source: str = ""

    def field_spec(self, key: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.key == key:
                return spec
        return None

    @property
    def field_keys(self) -> Tuple[str, ...]:
        return tuple(spec.key for spec in self.fields)


@dataclass(frozen=True)
class ResolvedField:
    key: str
    value: Any
    source_label: str = ""


@dataclass(frozen=True)
class MergeResult:
    """Ordered writes chosen by the merge policy and the keys they touch."""

    writes: Dict[str, Any] = field(default_factory=dict)
    written_keys: frozenset = field(default_factory=frozenset)


DropdownOptionSets = Mapping[str, Sequence[Any]]
