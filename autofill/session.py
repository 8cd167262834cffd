"""Per-form auto-fill sessions: tokens, state machine and highlight tracking.

One ``FormAutoFill`` belongs to one form instance. Every extraction request
gets a new session token; a result is merged only when its token is still
the latest one, so a slow extraction that was superseded is dropped even if
it finishes after a newer session already merged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, FrozenSet, Iterable, Mapping, Optional, Tuple

from .types import DropdownOptionSets, FormType, ResolvedField

if TYPE_CHECKING:  # pragma: no cover
    from engine import AutoFillEngine, AutoFillResult

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    RESOLVING = "resolving"
    MERGED = "merged"


class HighlightTracker:
    """Set of field keys that were written by the machine, for UI emphasis."""

    def __init__(self) -> None:
        self._keys: FrozenSet[str] = frozenset()

    @property
    def keys(self) -> FrozenSet[str]:
        return self._keys

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def clear(self) -> None:
        self._keys = frozenset()

    def replace(self, keys: Iterable[str]) -> None:
        self._keys = frozenset(keys)

    def discard(self, key: str) -> None:
        self._keys = self._keys - {key}


@dataclass(frozen=True)
class AutoFillSession:
    token: int
    form_type: Optional[FormType] = None
    extraction: Mapping[str, Any] = field(default_factory=dict)
    resolved: Tuple[ResolvedField, ...] = ()
    written_keys: FrozenSet[str] = frozenset()


class FormAutoFill:
    """Owns the auto-fill lifecycle of a single form instance.

    ``read_values`` returns the current form values and ``write_value`` sets
    one field; both belong to the caller. ``reset_values``, when given, clears
    the whole form for :meth:`clear_fields`.
    """

    def __init__(
        self,
        read_values: Callable[[], Mapping[str, Any]],
        write_value: Callable[[str, Any], None],
        *,
        engine: Optional["AutoFillEngine"] = None,
        form_type: FormType | str | None = None,
        dropdown_options: DropdownOptionSets | None = None,
        overwrite: bool = False,
        reset_values: Optional[Callable[[], None]] = None,
    ) -> None:
        from engine import AutoFillError, autofill_engine

        self.engine = engine if engine is not None else autofill_engine
        self.form_type = FormType.parse(form_type) if form_type is not None else None
        if form_type is not None and self.form_type is None:
            raise AutoFillError(f"Unknown form type {form_type!r}")
        self.dropdown_options = dropdown_options or {}
        self.overwrite = overwrite
        self._read_values = read_values
        self._write_value = write_value
        self._reset_values = reset_values
        self._token = 0
        self._state = SessionState.IDLE
        self._session: Optional[AutoFillSession] = None
        self.highlights = HighlightTracker()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def token(self) -> int:
        return self._token

    @property
    def session(self) -> Optional[AutoFillSession]:
        return self._session

    @property
    def highlighted(self) -> FrozenSet[str]:
        return self.highlights.keys

    def is_auto_filled(self, key: str) -> bool:
        return key in self.highlights

    def begin_extraction(self) -> int:
        """Start a new session and return its token; prior highlights are cleared."""
        self._token += 1
        self._session = None
        self.highlights.clear()
        self._state = SessionState.EXTRACTING
        return self._token

    def complete_extraction(
        self,
        token: int,
        extraction: Any,
        *,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional["AutoFillResult"]:
        """Merge an extraction result if ``token`` is still current.

        Returns None for a stale token, or when the session is not waiting on
        an extraction (already merged, cleared or cancelled); the result is
        discarded silently.
        """
        if token != self._token:
            logger.info("Discarding stale extraction result (token %d, latest %d)", token, self._token)
            return None
        if self._state is not SessionState.EXTRACTING:
            logger.info("Discarding extraction result for token %d in state %s", token, self._state.value)
            return None

        self._state = SessionState.RESOLVING
        result = self.engine.autofill(
            extraction,
            self._read_values,
            self._write_value,
            form_type=self.form_type,
            category=category,
            subcategory=subcategory,
            dropdown_options=self.dropdown_options,
            overwrite=self.overwrite,
            now=now,
        )
        if result.form_type is None:
            self._state = SessionState.IDLE
            return result

        self.highlights.replace(result.written_keys)
        self._session = AutoFillSession(
            token=token,
            form_type=result.form_type,
            extraction=dict(extraction) if isinstance(extraction, Mapping) else {},
            resolved=result.resolved,
            written_keys=result.written_keys,
        )
        self._state = SessionState.MERGED
        return result

    async def run(
        self,
        extract: Callable[[], Awaitable[Any]],
        *,
        category: Optional[str] = None,
        subcategory: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional["AutoFillResult"]:
        """Await ``extract`` and merge its result unless a newer session started."""
        token = self.begin_extraction()
        try:
            extraction = await extract()
        except Exception:
            if token == self._token:
                self._state = SessionState.IDLE
            raise
        return self.complete_extraction(
            token,
            extraction,
            category=category,
            subcategory=subcategory,
            now=now,
        )

    def field_edited(self, key: str) -> None:
        """A manual edit removes only that field's highlight."""
        self.highlights.discard(key)

    def clear_fields(self) -> None:
        """Clear every form value and every highlight together."""
        if self._reset_values is not None:
            self._reset_values()
        else:
            form_type = self.form_type or (self._session.form_type if self._session else None)
            if form_type is not None:
                for key in self.engine.definition(form_type).field_keys:
                    self._write_value(key, "")
        self._end_session()

    def cancel(self) -> None:
        """Drop the session; any in-flight extraction becomes stale."""
        self._end_session()

    def submitted(self) -> None:
        """A successful submission ends the session like a cancel."""
        self.cancel()

    def _end_session(self) -> None:
        self._token += 1
        self._session = None
        self.highlights.clear()
        self._state = SessionState.IDLE
