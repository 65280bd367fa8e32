from __future__ import annotations

import re
from typing import Any, Callable, List, Mapping, Sequence, Tuple

import structlog

from ..core.models import LessonUnit, Predicate, PredicateOutcome
from ..errors import CatalogError, ValidatorError

log = structlog.get_logger(__name__)

VALIDATOR_ERROR_MESSAGE = "validator error"

# (source, logs, snapshot) -> bool
Check = Callable[[str, Tuple[str, ...], str], bool]


def coerce_outcome(value: Any) -> PredicateOutcome:
    """Accept the return shapes lesson predicates use in practice."""
    if isinstance(value, PredicateOutcome):
        return value
    if isinstance(value, bool):
        return PredicateOutcome(success=value)
    if isinstance(value, Mapping) and isinstance(value.get("success"), bool):
        return PredicateOutcome(success=value["success"], message=str(value.get("message") or ""))
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], bool):
        return PredicateOutcome(success=value[0], message=str(value[1] or ""))
    raise ValidatorError(f"predicate returned {type(value).__name__}")


class PredicateRunner:
    """Calls a lesson's predicate; a predicate that blows up is a failed check, never an error page."""

    def run(self, lesson: LessonUnit, source: str, logs: Sequence[str], snapshot: str) -> PredicateOutcome:
        try:
            return coerce_outcome(lesson.validate(source, tuple(logs), snapshot))
        except Exception:
            log.exception("predicate.failed", lesson=lesson.id)
            return PredicateOutcome(success=False, message=VALIDATOR_ERROR_MESSAGE)


# ---------- declarative predicates for catalog content ----------

def _strings(value: Any, key: str) -> List[str]:
    items = value if isinstance(value, list) else [value]
    if not items or not all(isinstance(v, str) for v in items):
        raise CatalogError(f"{key!r} expects a string or a list of strings")
    return items


def _children(node: Mapping[str, Any], key: str) -> List[Check]:
    items = node[key]
    if not isinstance(items, list) or not items:
        raise CatalogError(f"{key!r} expects a non-empty list")
    return [_compile(item) for item in items]


def _text_check(needles: List[str], ignore_case: bool, count: int) -> Callable[[str], bool]:
    if ignore_case:
        needles = [n.lower() for n in needles]

    def check(text: str) -> bool:
        haystack = text.lower() if ignore_case else text
        return any(haystack.count(n) >= count for n in needles)

    return check


def _compile(node: Any) -> Check:
    if not isinstance(node, Mapping):
        raise CatalogError(f"predicate node must be a mapping, got {type(node).__name__}")

    if "all" in node:
        parts = _children(node, "all")
        return lambda s, l, r: all(p(s, l, r) for p in parts)
    if "any" in node:
        parts = _children(node, "any")
        return lambda s, l, r: any(p(s, l, r) for p in parts)
    if "not" in node:
        inner = _compile(node["not"])
        return lambda s, l, r: not inner(s, l, r)

    ignore_case = bool(node.get("ignore_case", False))
    count = int(node.get("count", 1))

    if "contains" in node:
        on_source = _text_check(_strings(node["contains"], "contains"), ignore_case, count)
        return lambda s, l, r: on_source(s)
    if "snapshot_contains" in node:
        on_snapshot = _text_check(_strings(node["snapshot_contains"], "snapshot_contains"), ignore_case, count)
        return lambda s, l, r: on_snapshot(r)
    if "log_contains" in node:
        on_line = _text_check(_strings(node["log_contains"], "log_contains"), ignore_case, 1)
        return lambda s, l, r: any(on_line(line) for line in l)
    if "regex" in node:
        try:
            pattern = re.compile(node["regex"], re.IGNORECASE if ignore_case else 0)
        except (re.error, TypeError) as e:
            raise CatalogError(f"bad regex {node['regex']!r}: {e}") from e
        return lambda s, l, r: len(pattern.findall(s)) >= count
    if "min_logs" in node:
        minimum = int(node["min_logs"])
        return lambda s, l, r: len(l) >= minimum

    raise CatalogError(f"unknown predicate node: {sorted(node)}")


def build_predicate(spec: Mapping[str, Any]) -> Predicate:
    """
    Build a pure predicate from catalog data.

    ``spec`` is one check node plus optional ``message`` (shown on success) and
    ``hint`` (shown on failure)::

        {"any": [{"contains": "display: flex"}, {"contains": "display:flex"}],
         "message": "Flexbox activated!"}
    """
    if not isinstance(spec, Mapping):
        raise CatalogError("validate must be a mapping")
    node = {k: v for k, v in spec.items() if k not in ("message", "hint")}
    check = _compile(node)
    message = str(spec.get("message") or "")
    hint = str(spec.get("hint") or "")

    def validate(source: str, logs: Sequence[str], snapshot: str) -> PredicateOutcome:
        if check(source, tuple(logs), snapshot):
            return PredicateOutcome(success=True, message=message)
        return PredicateOutcome(success=False, message=hint)

    return validate
