# =============================================================================
# lms_core/offline/mapping.py
# Field-name reconciliation tables
# =============================================================================
"""
Declarative mapping from heterogeneous server records to the internal schema.

The API returns the same entity with snake_case, camelCase or nested field
names depending on the endpoint. Each resource declares one ``FieldMap``:

    COURSE_FIELDS = FieldMap(
        FieldSpec("course_id", aliases=("courseId", "course.id"), convert=as_int),
        FieldSpec("progress", default=0, convert=as_int),
    )

For every field the internal name is tried first, then each alias in order;
the first key that is present with a non-null value wins. Dotted aliases
read nested objects. Missing fields receive the documented default.
"""

from __future__ import annotations
import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from lms_core.errors import MalformedResponseError


_MISSING = object()


def get_path(record: Mapping[str, Any], path: str) -> Any:
    """Read ``a.b.c`` from nested mappings, returning _MISSING when absent."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


@dataclass(frozen=True)
class FieldSpec:
    """One internal field and where to find it in a raw record."""
    name: str
    aliases: Tuple[str, ...] = ()
    default: Any = None
    convert: Optional[Callable[[Any], Any]] = None
    extract: Optional[Callable[[Mapping[str, Any]], Any]] = None

    def resolve(self, raw: Mapping[str, Any]) -> Any:
        if self.extract is not None:
            value = self.extract(raw)
        else:
            value = _MISSING
            for candidate in (self.name,) + tuple(self.aliases):
                found = get_path(raw, candidate)
                if found is not _MISSING and found is not None:
                    value = found
                    break

        if value is _MISSING or value is None:
            # Mutable defaults must never be shared between records
            return copy.deepcopy(self.default)

        if self.convert is not None:
            return self.convert(value)
        return value


class FieldMap:
    """Ordered collection of FieldSpecs for one resource kind."""

    def __init__(self, *specs: FieldSpec):
        self.specs = specs

    @property
    def names(self) -> List[str]:
        return [spec.name for spec in self.specs]

    def apply(self, raw: Mapping[str, Any]) -> Dict[str, Any]:
        if not isinstance(raw, Mapping):
            raise MalformedResponseError(
                "Record is not an object",
                expected="object",
                actual=type(raw).__name__,
            )

        result = {}
        for spec in self.specs:
            try:
                result[spec.name] = spec.resolve(raw)
            except (TypeError, ValueError) as e:
                raise MalformedResponseError(
                    f"Cannot read field '{spec.name}'",
                    expected=spec.name,
                    actual=repr(e),
                )
        return result


# =============================================================================
# CONVERTERS
# =============================================================================

def as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        return int(round(value))
    return int(str(value).strip())


def as_float(value: Any) -> float:
    return float(value)


def as_str(value: Any) -> str:
    return str(value)


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def as_id(value: Any):
    """Ids are integers where the server sends digits, strings otherwise."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else text


def as_int_list(value: Any) -> List[int]:
    if isinstance(value, (list, tuple)):
        return [as_int(v) for v in value]
    return []


def nested(field_map: FieldMap) -> Callable[[Any], Dict[str, Any]]:
    """Convert a nested raw object with its own FieldMap."""
    def convert(value: Any) -> Dict[str, Any]:
        return field_map.apply(value)
    return convert


def nested_list(field_map: FieldMap) -> Callable[[Any], List[Dict[str, Any]]]:
    """Convert a list of nested raw objects with their own FieldMap."""
    def convert(value: Any) -> List[Dict[str, Any]]:
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"expected list, got {type(value).__name__}")
        return [field_map.apply(item) for item in value]
    return convert


def attachment_from(
    url_keys: Iterable[str],
    type_keys: Iterable[str],
) -> Callable[[Mapping[str, Any]], Any]:
    """Build the (url, mime type) pair from two flat raw fields."""
    url_keys = tuple(url_keys)
    type_keys = tuple(type_keys)

    def extract(raw: Mapping[str, Any]) -> Any:
        nested_value = raw.get("attachment")
        if isinstance(nested_value, Mapping) and nested_value.get("url"):
            return {
                "url": nested_value["url"],
                "mime_type": nested_value.get("mime_type") or nested_value.get("type"),
            }

        url = next(
            (v for v in (get_path(raw, k) for k in url_keys) if v not in (_MISSING, None, "")),
            None,
        )
        if url is None:
            return None
        mime_type = next(
            (v for v in (get_path(raw, k) for k in type_keys) if v not in (_MISSING, None, "")),
            None,
        )
        return {"url": url, "mime_type": mime_type}

    return extract


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================

def unwrap_records(payload: Any, resource: str) -> List[Mapping[str, Any]]:
    """
    Accept a list of records, a ``{"data": [...]}`` envelope, or a single
    object (treated as a one-element collection).
    """
    if isinstance(payload, Mapping) and "data" in payload:
        payload = payload["data"]

    if isinstance(payload, Mapping):
        payload = [payload]

    if not isinstance(payload, list):
        raise MalformedResponseError(
            f"Unexpected payload for {resource}",
            resource=resource,
            expected="list of objects",
            actual=type(payload).__name__,
        )

    for item in payload:
        if not isinstance(item, Mapping):
            raise MalformedResponseError(
                f"Unexpected record in {resource} payload",
                resource=resource,
                expected="object",
                actual=type(item).__name__,
            )
    return payload


def chronological(records: List[Dict[str, Any]], key: str = "created_at") -> List[Dict[str, Any]]:
    """Stable sort by timestamp; unparsable timestamps keep their position at the end."""
    if len(records) < 2:
        return records
    stamps = pd.to_datetime(
        pd.Series([r.get(key) for r in records], dtype="object"),
        errors="coerce",
        utc=True,
        format="mixed",
    )
    order = stamps.reset_index(drop=True).sort_values(kind="mergesort", na_position="last").index
    return [records[i] for i in order]
