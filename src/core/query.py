"""Document query helpers (core domain).

A small Mongo-style condition language shared by storage adapters so that the
core can describe "which records" without knowing how they are stored.

Supported:
- conditions on dotted paths with $eq, $ne, $in, $nin, $gt, $gte, $lt, $lte, $exists
- a bare value as shorthand for $eq
- sort specs of {field: "asc" | "desc"}
- mutations $set and $addToSet
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from core.errors import QueryError
from core.models import format_timestamp

_MISSING = object()


def resolve_path(record: Mapping[str, Any], path: str) -> Any:
    """Return the value at a dotted path or a sentinel when absent."""

    value: Any = record
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _comparable(value: Any) -> Any:
    # Timestamps are persisted as ISO strings; compare datetimes in that form.
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


def _equals(value: Any, operand: Any) -> bool:
    operand = _comparable(operand)
    if value is _MISSING:
        return operand is None
    if isinstance(value, list) and not isinstance(operand, list):
        return any(_comparable(item) == operand for item in value)
    return _comparable(value) == operand


def _is_in(value: Any, operands: Iterable[Any]) -> bool:
    return any(_equals(value, operand) for operand in operands)


def _compare(value: Any, operand: Any, op: str) -> bool:
    if value is _MISSING or value is None:
        return False
    candidates = value if isinstance(value, list) else [value]
    operand = _comparable(operand)
    for candidate in candidates:
        candidate = _comparable(candidate)
        try:
            if op == "$gt" and candidate > operand:
                return True
            if op == "$gte" and candidate >= operand:
                return True
            if op == "$lt" and candidate < operand:
                return True
            if op == "$lte" and candidate <= operand:
                return True
        except TypeError:
            continue
    return False


def _match_operators(value: Any, spec: Mapping[str, Any]) -> bool:
    for op, operand in spec.items():
        if op == "$eq":
            ok = _equals(value, operand)
        elif op == "$ne":
            ok = not _equals(value, operand)
        elif op == "$in":
            ok = _is_in(value, operand)
        elif op == "$nin":
            ok = not _is_in(value, operand)
        elif op in {"$gt", "$gte", "$lt", "$lte"}:
            ok = _compare(value, operand, op)
        elif op == "$exists":
            ok = (value is not _MISSING) == bool(operand)
        else:
            raise QueryError(f"Unsupported query operator: {op}")
        if not ok:
            return False
    return True


def _is_operator_spec(spec: Any) -> bool:
    return isinstance(spec, Mapping) and bool(spec) and all(
        str(key).startswith("$") for key in spec
    )


def matches(record: Mapping[str, Any], conditions: Optional[Mapping[str, Any]]) -> bool:
    """Return True when the record satisfies every condition."""

    for path, spec in (conditions or {}).items():
        value = resolve_path(record, path)
        if _is_operator_spec(spec):
            if not _match_operators(value, spec):
                return False
        elif not _equals(value, spec):
            return False
    return True


def _sort_key(value: Any) -> tuple:
    # Missing and null values sort first, like Mongo's ascending order.
    if value is _MISSING or value is None:
        return (0, "")
    value = _comparable(value)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    return (3, str(value))


def sort_records(records: List[dict], sort: Optional[Mapping[str, str]]) -> List[dict]:
    """Sort records by a {field: direction} spec; earlier fields take priority."""

    ordered = list(records)
    # Stable sorts applied from the least to the most significant key.
    for path, direction in reversed(list((sort or {}).items())):
        direction = str(direction).lower()
        if direction not in {"asc", "desc"}:
            raise QueryError(f"Unsupported sort direction for {path}: {direction}")
        ordered.sort(
            key=lambda record: _sort_key(resolve_path(record, path)),
            reverse=direction == "desc",
        )
    return ordered


def _set_path(record: dict, path: str, value: Any) -> None:
    parts = path.split(".")
    target = record
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def apply_mutation(record: Mapping[str, Any], mutation: Mapping[str, Mapping[str, Any]]) -> dict:
    """Return a copy of the record with the mutation applied.

    $addToSet appends only when the value is not already present, so applying
    it twice leaves the record unchanged.
    """

    updated = copy.deepcopy(dict(record))
    for op, fields in mutation.items():
        if op == "$set":
            for path, value in fields.items():
                _set_path(updated, path, _comparable(value))
        elif op == "$addToSet":
            for path, value in fields.items():
                current = resolve_path(updated, path)
                if current is _MISSING or current is None:
                    current = []
                elif not isinstance(current, list):
                    raise QueryError(f"$addToSet target is not a list: {path}")
                value = _comparable(value)
                if value not in current:
                    current = [*current, value]
                _set_path(updated, path, current)
        else:
            raise QueryError(f"Unsupported mutation operator: {op}")
    return updated


def page(records: List[dict], skip: int = 0, limit: Optional[int] = None) -> List[dict]:
    """Slice an ordered result set."""

    start = max(skip, 0)
    if limit is None:
        return records[start:]
    return records[start : start + max(limit, 0)]
