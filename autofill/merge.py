"""Fill-empty-only merge policy."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from .types import MergeResult, ResolvedField


def is_empty(value: Any) -> bool:
    """True for None, the empty string, and zero-length collections."""
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


def merge_candidates(
    snapshot: Mapping[str, Any],
    candidates: Iterable[ResolvedField],
    *,
    overwrite: bool = False,
) -> MergeResult:
    """Select the candidates that may be written against ``snapshot``.

    ``snapshot`` is read once by the caller immediately before merging; a key
    missing from it counts as empty. With ``overwrite`` every candidate is
    written regardless of the current value.
    """
    writes: Dict[str, Any] = {}
    for candidate in candidates:
        if candidate.key in writes:
            continue
        if overwrite or is_empty(snapshot.get(candidate.key)):
            writes[candidate.key] = candidate.value
    return MergeResult(writes=writes, written_keys=frozenset(writes))
