from __future__ import annotations

import datetime
import decimal
import uuid

from core.schemas import DERIVED_PREFIX

# The record identity is persisted even though it carries the marker.
PERMANENT_KEYS = frozenset({"_id"})
SCALAR_TYPES = (str, int, float, bool, type(None), datetime.date, datetime.time, decimal.Decimal, uuid.UUID)

_OMIT = object()


def clone_permanent(value, registry=None):
    """Deep copy ``value`` keeping only data that is safe to hand to the browser.

    Dropped: keys carrying the derived marker (except the record id), fields
    a registered widget schema declares as not persisted, callables and other
    non-serializable objects, and any reference back into the structure
    being copied.
    """
    result = _clone(value, registry, set())
    return None if result is _OMIT else result


def _derived_names(value: dict, registry) -> frozenset:
    if registry is None:
        return frozenset()
    manager = registry.get(value.get("type"))
    return manager.schema.derived_names() if manager else frozenset()


def _clone(value, registry, ancestors: set):
    if isinstance(value, SCALAR_TYPES):
        return value
    if not isinstance(value, (dict, list, tuple)):
        return _OMIT
    if id(value) in ancestors:
        return _OMIT

    ancestors.add(id(value))
    try:
        if isinstance(value, dict):
            derived = _derived_names(value, registry)
            clone = {}
            for key, child in value.items():
                if not isinstance(key, str) or key in derived:
                    continue
                if key.startswith(DERIVED_PREFIX) and key not in PERMANENT_KEYS:
                    continue
                copied = _clone(child, registry, ancestors)
                if copied is not _OMIT:
                    clone[key] = copied
            return clone
        items = (_clone(child, registry, ancestors) for child in value)
        return [item for item in items if item is not _OMIT]
    finally:
        ancestors.discard(id(value))
