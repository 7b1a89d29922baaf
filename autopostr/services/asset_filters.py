# autopostr/services/asset_filters.py
"""
Predicate DSL for the asset library.

A filter is a list of `(field, op, value)` conditions joined with `all` or
`any`. Conditions are interpreted against asset attributes; user input is
only ever compared, never compiled or evaluated.
"""
import operator
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Sequence

FIELD_TYPES: Dict[str, type] = {
    "name": str,
    "type": str,
    "url": str,
    "size": int,
    "rotation_enabled": bool,
    "created_at": datetime,
}

_ORDERED = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}
_TEXT = {
    "contains": lambda a, b: b.casefold() in a.casefold(),
    "startswith": lambda a, b: a.casefold().startswith(b.casefold()),
    "endswith": lambda a, b: a.casefold().endswith(b.casefold()),
}
OPERATORS = ("eq", "ne", "in", *_TEXT, *_ORDERED)


class FilterError(ValueError):
    pass


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any


def _coerce(field: str, value: Any) -> Any:
    kind = FIELD_TYPES[field]
    if kind is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
    elif kind is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value)
    elif kind is datetime:
        if isinstance(value, datetime):
            return value.replace(tzinfo=None)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
            except ValueError:
                pass
    elif isinstance(value, str):
        return value
    raise FilterError(f"Value {value!r} does not fit field '{field}'")


def compile_condition(condition: Condition) -> Callable[[Any], bool]:
    """Validate one condition and return a predicate over assets."""
    field, op = condition.field, condition.op
    if field not in FIELD_TYPES:
        raise FilterError(f"Unknown field '{field}'")
    if op not in OPERATORS:
        raise FilterError(f"Unknown operator '{op}'")

    if op == "in":
        if not isinstance(condition.value, (list, tuple)):
            raise FilterError("Operator 'in' expects a list")
        choices = [_coerce(field, v) for v in condition.value]
        return lambda asset: getattr(asset, field) in choices

    value = _coerce(field, condition.value)
    if op == "eq":
        return lambda asset: getattr(asset, field) == value
    if op == "ne":
        return lambda asset: getattr(asset, field) != value
    if op in _TEXT:
        if FIELD_TYPES[field] is not str:
            raise FilterError(f"Operator '{op}' only applies to text fields")
        check = _TEXT[op]
        return lambda asset: check(getattr(asset, field) or "", value)
    if FIELD_TYPES[field] is bool:
        raise FilterError(f"Operator '{op}' does not apply to '{field}'")
    compare = _ORDERED[op]
    return lambda asset: getattr(asset, field) is not None and compare(getattr(asset, field), value)


def build_predicate(conditions: Sequence[Condition], match: str = "all") -> Callable[[Any], bool]:
    if match not in ("all", "any"):
        raise FilterError("match must be 'all' or 'any'")
    predicates = [compile_condition(c) for c in conditions]
    if not predicates:
        return lambda asset: True
    if match == "all":
        return lambda asset: all(p(asset) for p in predicates)
    return lambda asset: any(p(asset) for p in predicates)


def apply_filter(assets: Iterable[Any], conditions: Sequence[Condition], match: str = "all") -> List[Any]:
    predicate = build_predicate(conditions, match)
    return [asset for asset in assets if predicate(asset)]
