"""Per-kind value coercion and validation.

Every validator takes the raw extracted value, the field spec, and a
``CoercionContext`` and returns either the coerced value or ``REJECTED``.
Validators never raise for bad input; a rejection simply means "no value".
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import AnyUrl, TypeAdapter, ValidationError

from .core import normalize_label
from .types import DropdownOption, FieldKind, FieldSpec

logger = logging.getLogger(__name__)


class _Rejected:
    """Sentinel for a value that failed validation."""

    _instance: Optional["_Rejected"] = None

    def __new__(cls) -> "_Rejected":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "REJECTED"


REJECTED = _Rejected()


@dataclass
class CoercionContext:
    now: datetime
    options: Sequence[DropdownOption] = field(default_factory=tuple)


Validator = Callable[[Any, FieldSpec, CoercionContext], Any]

VALIDATORS: Dict[FieldKind, Validator] = {}


def register_validator(kind: FieldKind) -> Callable[[Validator], Validator]:
    def _wrap(fn: Validator) -> Validator:
        VALIDATORS[kind] = fn
        return fn

    return _wrap


def coerce_value(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    """Dispatch to the validator registered for ``spec.kind``."""
    validator = VALIDATORS.get(spec.kind)
    if validator is None or value is None:
        return REJECTED
    result = validator(value, spec, context)
    if result is REJECTED:
        logger.debug("Rejected %s value %r for field %s", spec.kind.value, value, spec.key)
    return result


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float, Decimal)) and not isinstance(value, bool)


@register_validator(FieldKind.TEXT)
def validate_text(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    if not _is_scalar(value):
        return REJECTED
    text = str(value).strip()
    return text if text else REJECTED


_THOUSANDS_RE = re.compile(r"[,_\s]")
# Largest decimal exponent kept; anything beyond is not a form value.
MAX_EXPONENT = 15


def parse_number(value: Any) -> Optional[float | int]:
    """Parse ``value`` as a finite number, stripping thousands separators.

    Magnitudes of 1e16 and above (or below 1e-15, other than zero) are
    rejected before any integer conversion.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if abs(value) < 10 ** (MAX_EXPONENT + 1) else None
    if isinstance(value, (float, Decimal)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = _THOUSANDS_RE.sub("", value)
        if not cleaned:
            return None
        try:
            number = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    if number.is_zero():
        return 0
    if abs(number.adjusted()) > MAX_EXPONENT:
        return None
    if number == number.to_integral_value():
        return int(number)
    result = float(number)
    return result if math.isfinite(result) else None


@register_validator(FieldKind.NUMBER)
def validate_number(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    number = parse_number(value)
    if number is None:
        return REJECTED
    if spec.non_negative and number < 0:
        return REJECTED
    return number


_ORDINAL_RE = re.compile(r"(\d+)(st|nd|rd|th)\b", re.IGNORECASE)
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})([/.\-])(\d{1,2})\2(\d{4})$")
_YEAR_FIRST_DATE_RE = re.compile(r"^(\d{4})([/.\-])(\d{1,2})\2(\d{1,2})$")
_YEAR_ONLY_RE = re.compile(r"^\d{4}$")
# Month-only layouts resolve to the first of the month.
_TEXT_DATE_FORMATS = ("%d %B %Y", "%d %b %Y", "%B %d %Y", "%b %d %Y", "%B %Y", "%b %Y")
MIN_YEAR = 1900
MAX_YEAR = 2099


def _day_first(first: int, second: int, year: int) -> Optional[date]:
    # Day-first is the common layout; month-first is the fallback.
    for day, month in ((first, second), (second, first)):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> Optional[date]:
    """Parse the date layouts found in analyzed documents, or return None.

    A bare year resolves to January 1st.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = _ORDINAL_RE.sub(r"\1", value).strip()
    if not text:
        return None

    parsed: Optional[date] = None
    iso = text[:10] if re.match(r"^\d{4}-\d{2}-\d{2}(?:$|[T ])", text) else None
    numeric = _NUMERIC_DATE_RE.match(text)
    year_first = _YEAR_FIRST_DATE_RE.match(text)
    if iso:
        try:
            parsed = date.fromisoformat(iso)
        except ValueError:
            return None
    elif year_first:
        try:
            parsed = date(int(year_first.group(1)), int(year_first.group(3)), int(year_first.group(4)))
        except ValueError:
            return None
    elif numeric:
        parsed = _day_first(int(numeric.group(1)), int(numeric.group(3)), int(numeric.group(4)))
    elif _YEAR_ONLY_RE.match(text):
        parsed = date(int(text), 1, 1) if MIN_YEAR <= int(text) <= MAX_YEAR else None
    else:
        compact = re.sub(r"[,\s]+", " ", text)
        for fmt in _TEXT_DATE_FORMATS:
            try:
                parsed = datetime.strptime(compact, fmt).date()
                break
            except ValueError:
                continue

    if parsed is None or not (MIN_YEAR <= parsed.year <= MAX_YEAR):
        return None
    return parsed


@register_validator(FieldKind.DATE)
def validate_date(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    parsed = parse_date(value)
    if parsed is None:
        return REJECTED
    if parsed > context.now.date():
        return REJECTED
    return parsed.isoformat()


LEVEL_SYNONYMS: Dict[str, List[str]] = {
    "international": ["international", "global", "world", "abroad"],
    "national": ["national", "nation", "country", "india"],
    "state": ["state", "provincial", "regional"],
    "university": ["university", "institutional", "institute"],
    "college": ["college", "department", "departmental"],
    "local": ["local", "district", "city"],
}

# Checked in order, so "hybrid" wins when the text names several modes.
MODE_SYNONYMS: Dict[str, List[str]] = {
    "hybrid": ["hybrid", "blended"],
    "virtual": ["virtual", "online", "webinar"],
    "physical": ["physical", "offline", "in person"],
}

OPTION_SYNONYMS = (LEVEL_SYNONYMS, MODE_SYNONYMS)


def _option_with_id(candidate: Any, options: Sequence[DropdownOption]) -> Optional[DropdownOption]:
    number = parse_number(candidate)
    for option in options:
        if option.id == candidate:
            return option
        if number is not None and parse_number(option.id) == number:
            return option
    return None


def _fuzzy_option(text: str, options: Sequence[DropdownOption]) -> Optional[DropdownOption]:
    normalized = normalize_label(text)
    if not normalized:
        return None
    contained = []
    for option in options:
        option_norm = normalize_label(option.name)
        if option_norm and (option_norm in normalized or normalized in option_norm):
            contained.append((len(option_norm), option))
    if contained:
        # "International" must win over "National" for "international conference".
        return max(contained, key=lambda item: item[0])[1]
    for synonyms in OPTION_SYNONYMS:
        for canonical, variations in synonyms.items():
            if any(variation in normalized for variation in variations):
                for option in options:
                    if canonical in normalize_label(option.name):
                        return option
    return None


def match_option(value: Any, spec: FieldSpec, options: Sequence[DropdownOption]) -> Optional[DropdownOption]:
    """Find the option that ``value`` denotes, or None."""
    if not options or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return _option_with_id(value, options)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    folded = text.casefold()
    for option in options:
        if option.name.strip().casefold() == folded:
            return option
    normalized = normalize_label(text)
    if normalized:
        for option in options:
            if normalize_label(option.name) == normalized:
                return option
    option = _option_with_id(text, options)
    if option is not None:
        return option
    if spec.fuzzy:
        return _fuzzy_option(text, options)
    return None


@register_validator(FieldKind.ENUM)
def validate_enum(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    option = match_option(value, spec, context.options)
    return REJECTED if option is None else option.id


_URL_ADAPTER = TypeAdapter(AnyUrl)


@register_validator(FieldKind.URL)
def validate_url(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    if not isinstance(value, str):
        return REJECTED
    text = value.strip()
    if not text or " " in text:
        return REJECTED
    try:
        url = _URL_ADAPTER.validate_python(text)
    except ValidationError:
        return REJECTED
    if not url.host:
        return REJECTED
    return text


@register_validator(FieldKind.YEAR)
def validate_year(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    if not _is_scalar(value):
        return REJECTED
    digits = re.sub(r"\D", "", str(value))
    return digits if len(digits) == 4 else REJECTED


# Matched as whole normalized phrases.
TRUE_WORDS = {"yes", "y", "true", "1", "paid", "reviewed", "included"}
FALSE_WORDS = {"no", "n", "false", "0", "unpaid", "not paid", "not reviewed", "not included", "excluded"}


@register_validator(FieldKind.BOOLEAN)
def validate_boolean(value: Any, spec: FieldSpec, context: CoercionContext) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if not isinstance(value, str):
        return REJECTED
    word = normalize_label(value)
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    return REJECTED
